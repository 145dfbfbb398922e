from typing import Any, Dict

from .schemas import RuleCreate, lenient_float


class RuleDraftError(ValueError):
    pass


def build_conditions(draft: RuleCreate) -> Dict[str, Any]:
    """Typed rule_conditions payload for a new admin rule, with the standard defaults."""
    if draft.rule_type == "VALUE":
        limit = lenient_float(draft.value_threshold)
        if limit is None:
            raise RuleDraftError("Value threshold must be a valid number")
        return {
            "threshold": limit,
            "currency": "USD",
            "documentation_required": ["commercial_invoice", "customs_declaration"],
        }

    if draft.rule_type == "WEIGHT":
        limit = lenient_float(draft.weight_threshold)
        if limit is None:
            raise RuleDraftError("Weight threshold must be a valid number")
        return {"max_weight": limit, "unit": "kg", "carrier_restrictions": limit > 30}

    if draft.rule_type == "COUNTRY":
        if not (draft.country_code or "").strip():
            raise RuleDraftError("Country code is required")
        return {
            "country_code": draft.country_code.strip().upper(),
            "restriction_level": "HIGH",
            "requires_license": True,
        }

    if draft.rule_type == "ITEM":
        if not (draft.item_name or "").strip():
            raise RuleDraftError("Item name is required")
        return {"item_name": draft.item_name.strip(), "restriction_level": "HIGH", "category": "RESTRICTED"}

    # DOCUMENTATION
    if not (draft.document_type or "").strip():
        raise RuleDraftError("Document type is required")
    return {
        "document_type": draft.document_type.strip(),
        "required_for": ["international_shipping", "high_value_items"],
    }


def build_rule_row(draft: RuleCreate) -> Dict[str, Any]:
    if not draft.rule_name.strip() or not draft.rule_description.strip():
        raise RuleDraftError("Rule name and description are required")
    return {
        "rule_name": draft.rule_name.strip(),
        "rule_description": draft.rule_description.strip(),
        "rule_type": draft.rule_type,
        "rule_conditions": build_conditions(draft),
        "is_active": True,
    }
