import csv
import io
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .schemas import Shipment

logger = logging.getLogger(__name__)

MAX_CSV_BYTES = 5 * 1024 * 1024

# canonical field -> accepted CSV headers (first non-empty wins)
COLUMN_ALIASES = {
    "item_name": ["item_name", "name"],
    "item_id": ["item_id", "id"],
    "declared_value": ["declared_value", "value"],
    "weight": ["weight"],
    "destination_country": ["destination_country", "country"],
    "origin_country": ["origin_country", "origin"],
    "commodity_code": ["commodity_code", "hs_code"],
    "sender_name": ["sender_name"],
    "sender_address": ["sender_address"],
    "recipient_name": ["recipient_name"],
    "recipient_address": ["recipient_address"],
}


class IntakeError(ValueError):
    """Uploaded shipment data could not be read."""


def _pick(row: Dict[str, Any], aliases: List[str]) -> Optional[str]:
    for key in aliases:
        val = row.get(key)
        if val is not None and str(val).strip():
            return str(val).strip()
    return None


def clean_value(raw: Optional[str]) -> Optional[str]:
    """'$5,000.00' -> '5000.00'"""
    if raw is None:
        return None
    return re.sub(r"[$,]", "", raw).strip() or None


def clean_weight(raw: Optional[str]) -> Optional[str]:
    """'12 kg' / '3lbs' -> bare number text"""
    if raw is None:
        return None
    return re.sub(r"\s*(kgs?|lbs?)\b", "", raw, flags=re.IGNORECASE).strip() or None


def normalize_row(row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Map one CSV row onto shipment fields; rows with no item name are dropped."""
    # header matching is case/whitespace tolerant
    row = {str(k).strip().lower(): v for k, v in row.items() if k is not None}
    data = {field: _pick(row, aliases) for field, aliases in COLUMN_ALIASES.items()}
    if not data["item_name"]:
        return None
    data["declared_value"] = clean_value(data["declared_value"])
    data["weight"] = clean_weight(data["weight"])
    data["destination_country"] = data["destination_country"] or ""
    return data


def parse_shipments_csv(content: bytes) -> List[Shipment]:
    if len(content) > MAX_CSV_BYTES:
        raise IntakeError("CSV file is too large")
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise IntakeError("CSV file must be UTF-8 encoded") from exc

    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames:
        raise IntakeError("CSV file has no header row")

    shipments: List[Shipment] = []
    try:
        for line_no, row in enumerate(reader, start=2):
            data = normalize_row(row)
            if data is None:
                continue
            try:
                shipments.append(Shipment.model_validate(data))
            except ValidationError as exc:
                raise IntakeError(f"Row {line_no} is not a valid shipment: {exc.errors()[0]['msg']}") from exc
    except csv.Error as exc:
        raise IntakeError(f"Error parsing CSV: {exc}") from exc

    logger.info("Parsed %d shipment(s) from CSV", len(shipments))
    return shipments
