from collections import Counter
from typing import Dict, List, Optional, Sequence

from .schemas import ComplianceIssue, ComplianceResult, Status

STATUS_ORDER: List[Status] = ["REJECTED", "FLAGGED", "REVIEW", "COMPLIANT"]

COMPLIANT_DETAILS = "Shipment is compliant with all rules."


def resolve_status(issues: Sequence[ComplianceIssue]) -> Status:
    """REJECTED is decided by the item check itself, never here."""
    if not issues:
        return "COMPLIANT"
    if any(i.priority == "HIGH" for i in issues):
        return "FLAGGED"
    return "REVIEW"


def details_for(
    status: Status,
    issues: Sequence[ComplianceIssue],
    prohibited_item: Optional[str] = None,
) -> str:
    if status == "REJECTED":
        return f"Shipment contains prohibited item: {prohibited_item}. Export is not allowed."
    if status == "COMPLIANT":
        return COMPLIANT_DETAILS
    return f"Shipment is flagged for {len(issues)} issue(s)."


def summarize(results: Sequence[ComplianceResult]) -> Dict[str, int]:
    counts = Counter(r.status for r in results)
    summary = {status: counts.get(status, 0) for status in STATUS_ORDER}
    summary["total"] = len(results)
    return summary
