import asyncio
import logging
from typing import Any, List, Optional, Sequence

from pydantic import ValidationError

from .rules import evaluate_shipment
from .schemas import (
    ComplianceIssue,
    ComplianceResult,
    ComplianceRule,
    RestrictedCountry,
    RestrictedItem,
    Shipment,
)
from .scoring import details_for

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 100


def _fallback_result(shipment: Shipment, exc: Exception) -> ComplianceResult:
    issues = [ComplianceIssue(
        rule_name="Evaluation Error",
        description="This shipment could not be evaluated automatically. Manual review required.",
        reason=f"{type(exc).__name__}: {exc}",
        priority="MEDIUM",
    )]
    return ComplianceResult(
        status="REVIEW",
        shipment=shipment,
        details=details_for("REVIEW", issues),
        issues=issues,
    )


async def _evaluate_one(
    index: int,
    shipment: Shipment,
    rules: Sequence[ComplianceRule],
    restricted_countries: Sequence[RestrictedCountry],
    restricted_items: Sequence[RestrictedItem],
) -> ComplianceResult:
    try:
        return await asyncio.to_thread(
            evaluate_shipment, shipment, rules, restricted_countries, restricted_items
        )
    except Exception as exc:
        logger.exception("Evaluation failed for shipment #%d (%s)", index, shipment.item_name)
        return _fallback_result(shipment, exc)


async def evaluate_batch(
    shipments: Sequence[Shipment],
    rules: Sequence[ComplianceRule],
    restricted_countries: Sequence[RestrictedCountry],
    restricted_items: Sequence[RestrictedItem],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> List[ComplianceResult]:
    """
    Evaluate shipments chunk by chunk; shipments inside a chunk run concurrently.
    Output order matches input order. A shipment that fails to evaluate comes
    back as REVIEW with an "Evaluation Error" issue instead of failing the batch.
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")

    # snapshot once; every evaluation reads the same immutable collections
    rules = tuple(rules)
    restricted_countries = tuple(restricted_countries)
    restricted_items = tuple(restricted_items)

    results: List[ComplianceResult] = []
    for start in range(0, len(shipments), chunk_size):
        chunk = shipments[start:start + chunk_size]
        logger.debug("Evaluating chunk %d-%d of %d", start, start + len(chunk), len(shipments))
        chunk_results = await asyncio.gather(*(
            _evaluate_one(start + offset, shipment, rules, restricted_countries, restricted_items)
            for offset, shipment in enumerate(chunk)
        ))
        results.extend(chunk_results)
    return results


def _placeholder_shipment(raw: Any) -> Shipment:
    data = raw if isinstance(raw, dict) else {}
    return Shipment(
        item_name=str(data.get("item_name") or "Unknown item"),
        item_id=data.get("item_id") if isinstance(data.get("item_id"), (str, int)) else None,
        destination_country=str(data.get("destination_country") or ""),
    )


def invalid_shipment_result(raw: Any, exc: ValidationError) -> ComplianceResult:
    err = exc.errors()[0]
    field = ".".join(str(p) for p in err.get("loc", ())) or "shipment"
    issues = [ComplianceIssue(
        rule_name="Invalid Shipment",
        description="Shipment data is incomplete or malformed. Manual review required.",
        reason=f"{field}: {err.get('msg')}",
        priority="MEDIUM",
    )]
    return ComplianceResult(
        status="REVIEW",
        shipment=_placeholder_shipment(raw),
        details=details_for("REVIEW", issues),
        issues=issues,
    )


async def evaluate_payloads(
    payloads: Sequence[Any],
    rules: Sequence[ComplianceRule],
    restricted_countries: Sequence[RestrictedCountry],
    restricted_items: Sequence[RestrictedItem],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> List[ComplianceResult]:
    """
    Like evaluate_batch, for raw request items: each item is validated on its
    own and a malformed one becomes an "Invalid Shipment" REVIEW result in
    its slot instead of failing the request.
    """
    slots: List[Optional[ComplianceResult]] = []
    valid: List[Shipment] = []
    for index, raw in enumerate(payloads):
        try:
            valid.append(Shipment.model_validate(raw))
            slots.append(None)
        except ValidationError as exc:
            logger.warning("Shipment #%d is invalid: %s", index, exc.errors()[0].get("msg"))
            slots.append(invalid_shipment_result(raw, exc))

    evaluated = iter(await evaluate_batch(
        valid, rules, restricted_countries, restricted_items, chunk_size=chunk_size
    ))
    return [slot if slot is not None else next(evaluated) for slot in slots]
