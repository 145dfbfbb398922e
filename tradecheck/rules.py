import math
from typing import Iterable, List, Optional, Sequence

from .schemas import (
    ComplianceIssue,
    ComplianceResult,
    ComplianceRule,
    ProductConditions,
    RestrictedCountry,
    RestrictedItem,
    Shipment,
    ValueConditions,
    WeightConditions,
)
from .scoring import details_for, resolve_status

DEFAULT_VALUE_DOCUMENTATION = ["Commercial Invoice"]
DEFAULT_WEIGHT_UNIT = "kg"


def _exceeds(value: Optional[float], bound: Optional[float]) -> bool:
    """Strict `value > bound`, only when both sides are finite numbers."""
    if value is None or bound is None:
        return False
    if not (math.isfinite(value) and math.isfinite(bound)):
        return False
    return value > bound


def _norm(s: Optional[str]) -> str:
    return (s or "").strip().lower()


def _fmt_number(x: float) -> str:
    return str(int(x)) if float(x).is_integer() else str(x)


def _active(rules: Iterable[ComplianceRule]) -> List[ComplianceRule]:
    return [r for r in rules if r.is_active]


# ---------------------------
# Individual checks
# ---------------------------

def match_restricted_item(
    item_name: str, restricted_items: Sequence[RestrictedItem]
) -> Optional[RestrictedItem]:
    """First restricted item whose name appears inside the shipment item name."""
    name = (item_name or "").lower()
    for item in restricted_items:
        needle = (item.item_name or "").lower()
        if needle and needle in name:
            return item
    return None


def match_restricted_country(
    destination: str, restricted_countries: Sequence[RestrictedCountry]
) -> Optional[RestrictedCountry]:
    dest = _norm(destination)
    if not dest:
        return None
    for country in restricted_countries:
        if _norm(country.country_code) == dest:
            return country
        if country.country_name and _norm(country.country_name) == dest:
            return country
    return None


def _restricted_item_issue(shipment: Shipment, item: RestrictedItem) -> ComplianceIssue:
    requirements = f". {item.requirements}" if item.requirements else ""
    return ComplianceIssue(
        rule_name=f"{item.severity} ITEM",
        description=(
            f"This item ({shipment.item_name}) matches a {item.severity.lower()} item: "
            f"{item.item_name}. {item.description or ''}{requirements}"
        ),
        source_link=item.source_link,
        priority="HIGH",
    )


def _country_issue(country: RestrictedCountry) -> ComplianceIssue:
    name = country.country_name or country.country_code.strip()
    return ComplianceIssue(
        rule_name="Restricted Country",
        description=f"{name} has restriction level: {country.restriction_level or 'UNSPECIFIED'}",
        reason=country.restriction_reason or "Country is restricted",
        priority="HIGH",
    )


def check_value(shipment: Shipment, rules: Sequence[ComplianceRule]) -> Optional[ComplianceIssue]:
    rule = next((r for r in rules if r.rule_type == "VALUE"), None)
    if rule is None:
        return None
    cond = rule.rule_conditions
    if not isinstance(cond, ValueConditions):
        return None
    if not _exceeds(shipment.declared_value, cond.threshold):
        return None

    docs = cond.documentation_required or DEFAULT_VALUE_DOCUMENTATION
    return ComplianceIssue(
        rule_name="High Value Shipment",
        description=(
            f"Value exceeds ${_fmt_number(cond.threshold)}. "
            f"Additional documentation required: {', '.join(docs)}"
        ),
        priority="MEDIUM",
    )


def check_weight(shipment: Shipment, rules: Sequence[ComplianceRule]) -> Optional[ComplianceIssue]:
    rule = next((r for r in rules if r.rule_type == "WEIGHT"), None)
    if rule is None:
        return None
    cond = rule.rule_conditions
    if not isinstance(cond, WeightConditions):
        return None
    if not _exceeds(shipment.weight, cond.max_weight):
        return None

    unit = cond.unit or DEFAULT_WEIGHT_UNIT
    return ComplianceIssue(
        rule_name="Excess Weight",
        description=(
            f"Weight exceeds {_fmt_number(cond.max_weight)}{unit}. "
            "Consider splitting shipment or using specialized shipping service."
        ),
        priority="MEDIUM",
    )


def _name_matches(product_name: str, item_name: str) -> bool:
    product = product_name.lower()
    item = item_name.lower()
    if not product or not item:
        return False
    return product in item or item in product


def _country_in(country: Optional[str], allowed: Sequence[str]) -> bool:
    target = (country or "").lower()
    return any(c and c.lower() == target for c in allowed)


def product_rule_applies(rule: ComplianceRule, shipment: Shipment) -> bool:
    cond = rule.rule_conditions
    if not isinstance(cond, ProductConditions):
        # typed rules carry no route filters
        return True

    if cond.to_countries and not _country_in(shipment.destination_country, cond.to_countries):
        return False
    if cond.from_countries and shipment.origin_country:
        if not _country_in(shipment.origin_country, cond.from_countries):
            return False
    return True


def check_product_rules(
    shipment: Shipment, rules: Sequence[ComplianceRule]
) -> List[ComplianceIssue]:
    issues: List[ComplianceIssue] = []
    for rule in rules:
        if not rule.product_name or not _name_matches(rule.product_name, shipment.item_name):
            continue
        if not product_rule_applies(rule, shipment):
            continue

        details = rule.description or f"Trade restriction applies to {rule.product_name}"
        cond = rule.rule_conditions
        if isinstance(cond, ProductConditions):
            if cond.tariff_rate:
                details += f" Tariff rate: {cond.tariff_rate}"
            if cond.effective_date:
                details += f" Effective: {cond.effective_date}"

        issues.append(ComplianceIssue(
            rule_name=f"{rule.rule_type} on {rule.product_name}",
            description=details,
            source_link=rule.source_link,
            last_verified=rule.last_verified,
            priority="MEDIUM",
        ))
    return issues


# ---------------------------
# Evaluator
# ---------------------------

def evaluate_shipment(
    shipment: Shipment,
    rules: Sequence[ComplianceRule],
    restricted_countries: Sequence[RestrictedCountry],
    restricted_items: Sequence[RestrictedItem],
) -> ComplianceResult:
    """
    Priority-ordered screening of one shipment.
    A PROHIBITED item match rejects immediately; every other check accumulates
    issues and the status is derived from the issue set at the end.
    """
    rules = _active(rules)
    issues: List[ComplianceIssue] = []

    # 1) Restricted items (first match wins)
    item = match_restricted_item(shipment.item_name, restricted_items)
    if item is not None:
        issues.append(_restricted_item_issue(shipment, item))
        if item.severity == "PROHIBITED":
            return ComplianceResult(
                status="REJECTED",
                shipment=shipment,
                details=details_for("REJECTED", issues, prohibited_item=item.item_name),
                issues=issues,
            )

    # 2) Restricted destination
    country = match_restricted_country(shipment.destination_country, restricted_countries)
    if country is not None:
        issues.append(_country_issue(country))

    # 3) Declared value threshold
    value_issue = check_value(shipment, rules)
    if value_issue:
        issues.append(value_issue)

    # 4) Weight threshold
    weight_issue = check_weight(shipment, rules)
    if weight_issue:
        issues.append(weight_issue)

    # 5) Product-specific trade rules
    issues.extend(check_product_rules(shipment, rules))

    status = resolve_status(issues)
    return ComplianceResult(
        status=status,
        shipment=shipment,
        details=details_for(status, issues),
        issues=issues,
    )
