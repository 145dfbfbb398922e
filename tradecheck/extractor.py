# tradecheck/extractor.py
# Commercial invoice PDF -> shipment draft
# - Extracts selectable text via pypdf
# - Label-based regex for the fields the compliance check needs
# - Returns the draft plus debug info (which fields were found, text preview)

import io
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from .intake import IntakeError
from .schemas import ShipmentDraft

logger = logging.getLogger(__name__)

MAX_PDF_BYTES = 10 * 1024 * 1024


# ---------------------------
# Text extraction
# ---------------------------

def extract_pdf_text(file_bytes: bytes) -> str:
    """Extract selectable text from PDF pages (digital PDFs)."""
    try:
        reader = PdfReader(io.BytesIO(file_bytes))
        parts: List[str] = []
        for page in reader.pages:
            parts.append(page.extract_text() or "")
    except (PdfReadError, ValueError, OSError) as exc:
        raise IntakeError("Uploaded file is not a readable PDF") from exc
    return "\n".join(parts).strip()


def _normalize_text(text: str) -> str:
    # non-breaking spaces and runs of blanks; newlines are kept for label regexes
    text = (text or "").replace("\u00a0", " ")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


# ---------------------------
# Regex helpers
# ---------------------------

def _find_first(patterns: List[str], text: str) -> Optional[str]:
    for pat in patterns:
        m = re.search(pat, text, flags=re.IGNORECASE | re.MULTILINE)
        if m:
            val = m.group(1).strip()
            return val if val else None
    return None


def _to_float(s: Optional[str]) -> Optional[float]:
    if not s:
        return None
    s = re.sub(r"[^\d\.,\-+]", "", s.strip())
    if not s:
        return None
    # commas are thousands separators ("5,000" / "5,000.50")
    s = s.replace(",", "")
    try:
        return float(s)
    except ValueError:
        return None


def _guess_currency(text: str) -> Optional[str]:
    cur = _find_first([r"\bCurrency\s*[:#]?\s*([A-Z]{3})\b"], text)
    if cur:
        return cur.upper()
    for c in ["USD", "EUR", "GBP", "INR", "AED", "CNY", "JPY", "CAD", "AUD", "SGD"]:
        if re.search(rf"\b{c}\b", text, flags=re.IGNORECASE):
            return c
    return None


def _extract_weight(text: str) -> Optional[float]:
    """
    Gross weight preferred, then net, then any "Weight:" label.
    Handles "Gross Weight: 1200 KG" / "Gross Weight 1,200 KGS" / "Weight 12.5".
    """
    for label in (r"Gross\s*Weight", r"Net\s*Weight", r"Weight"):
        m = re.search(rf"\b{label}\s*(?:\([^)]*\))?\s*[:\-]?\s*([\d\.,]+)", text, flags=re.IGNORECASE)
        if m:
            val = _to_float(m.group(1))
            if val is not None:
                return val
    return None


def _line_value(text: str, labels: List[str]) -> Optional[str]:
    # "Label: value" up to end of line
    for lab in labels:
        m = re.search(rf"\b{lab}\s*[:\-]\s*(.+)", text, flags=re.IGNORECASE)
        if m:
            val = m.group(1).strip().split("\n")[0].strip()
            if val:
                return val
    return None


# ---------------------------
# Field extraction
# ---------------------------

def extract_shipment_fields(text: str) -> Dict[str, Any]:
    text = text or ""

    item_name = _line_value(text, [
        r"Description\s+of\s+Goods",
        r"Goods\s+Description",
        r"Product\s+Description",
        r"Description",
        r"Product",
        r"Item",
    ])
    item_id = _find_first([
        r"\b(?:SKU|Item\s*(?:No|Number|ID)|Part\s*(?:No|Number))\s*[:#\-]?\s*([A-Z0-9][A-Z0-9\-\/]+)\b",
    ], text)

    total_s = _find_first([
        r"\bTotal\s*(?:Invoice\s*)?(?:Amount|Value)\s*[:\-]?\s*(?:[A-Z]{3}\s*)?\$?\s*([\d,]+\.\d+|[\d,]+)",
        r"\bGrand\s*Total\s*[:\-]?\s*(?:[A-Z]{3}\s*)?\$?\s*([\d,]+\.\d+|[\d,]+)",
        r"\bDeclared\s*Value\s*[:\-]?\s*(?:[A-Z]{3}\s*)?\$?\s*([\d,]+\.\d+|[\d,]+)",
        r"\bTotal\s*[:\-]?\s*(?:[A-Z]{3}\s*)?\$?\s*([\d,]+\.\d+|[\d,]+)",
    ], text)

    destination = _line_value(text, [
        r"Country\s+of\s+(?:Final\s+)?Destination",
        r"Destination\s+Country",
        r"Final\s+Destination",
        r"Ship\s+To\s+Country",
    ])
    origin = _line_value(text, [
        r"Country\s+of\s+Origin",
        r"Origin\s+Country",
    ])
    hs = _find_first([
        r"\b(?:HS|HTS)\s*(?:Code)?\s*[:#\-]?\s*(\d{4}(?:[\.\s]?\d{2}){0,3})\b",
        r"\bCommodity\s*Code\s*[:#\-]?\s*(\d{4}(?:[\.\s]?\d{2}){0,3})\b",
    ], text)

    return {
        "item_name": item_name,
        "item_id": item_id,
        "declared_value": _to_float(total_s),
        "currency": _guess_currency(text),
        "weight": _extract_weight(text),
        "destination_country": destination,
        "origin_country": origin,
        "commodity_code": hs.replace(" ", "") if hs else None,
    }


# ---------------------------
# Main entry used by API
# ---------------------------

def extract_shipment_with_debug(file_bytes: bytes) -> Tuple[ShipmentDraft, Dict[str, Any]]:
    """
    Returns (draft, debug_info).
    debug_info shows which fields were found so the caller can ask for the rest.
    """
    if not file_bytes:
        raise IntakeError("Uploaded file is empty")
    if len(file_bytes) > MAX_PDF_BYTES:
        raise IntakeError("PDF file is too large")

    text = _normalize_text(extract_pdf_text(file_bytes))
    fields = extract_shipment_fields(text)
    draft = ShipmentDraft(**fields)

    fields_found = {k: v is not None for k, v in fields.items()}
    logger.info(
        "Invoice extraction found %d/%d fields (%d chars)",
        sum(fields_found.values()), len(fields_found), len(text),
    )
    debug = {
        "extraction_method": "pdf_text" if text else "empty",
        "text_chars": len(text),
        "text_preview": text[:1500],
        "fields_found": fields_found,
    }
    return draft, debug
