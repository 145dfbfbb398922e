import pytest

from tradecheck.admin import RuleDraftError, build_conditions, build_rule_row
from tradecheck.schemas import ComplianceRule, RuleCreate, ValueConditions


def test_value_rule_row():
    row = build_rule_row(RuleCreate(
        rule_name=" High value ", rule_description="Over $2,500", rule_type="VALUE", value_threshold="2,500"
    ))
    assert row["rule_name"] == "High value"
    assert row["is_active"] is True
    assert row["rule_conditions"] == {
        "threshold": 2500.0,
        "currency": "USD",
        "documentation_required": ["commercial_invoice", "customs_declaration"],
    }
    rule = ComplianceRule.model_validate(row)
    assert isinstance(rule.rule_conditions, ValueConditions)
    assert rule.description == "Over $2,500"


@pytest.mark.parametrize("limit, carrier", [(45, True), (30, False)])
def test_weight_conditions(limit, carrier):
    cond = build_conditions(RuleCreate(rule_type="WEIGHT", weight_threshold=limit))
    assert cond == {"max_weight": float(limit), "unit": "kg", "carrier_restrictions": carrier}


def test_country_item_and_documentation_conditions():
    assert build_conditions(RuleCreate(rule_type="COUNTRY", country_code=" ir "))["country_code"] == "IR"
    item = build_conditions(RuleCreate(rule_type="ITEM", item_name="Fireworks"))
    assert item == {"item_name": "Fireworks", "restriction_level": "HIGH", "category": "RESTRICTED"}
    docs = build_conditions(RuleCreate(rule_type="DOCUMENTATION", document_type="EEI"))
    assert docs["required_for"] == ["international_shipping", "high_value_items"]


@pytest.mark.parametrize("draft", [
    RuleCreate(rule_name="", rule_description="x", value_threshold=1),
    RuleCreate(rule_name="x", rule_description="x", value_threshold="lots"),
    RuleCreate(rule_name="x", rule_description="x", rule_type="WEIGHT"),
    RuleCreate(rule_name="x", rule_description="x", rule_type="COUNTRY"),
    RuleCreate(rule_name="x", rule_description="x", rule_type="ITEM", item_name="  "),
    RuleCreate(rule_name="x", rule_description="x", rule_type="DOCUMENTATION"),
])
def test_incomplete_drafts_are_rejected(draft):
    with pytest.raises(RuleDraftError):
        build_rule_row(draft)
