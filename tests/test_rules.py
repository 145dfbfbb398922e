import pytest

from tradecheck.rules import evaluate_shipment, match_restricted_country, match_restricted_item
from tradecheck.schemas import (
    ComplianceRule,
    ProductConditions,
    RestrictedCountry,
    RestrictedItem,
    Shipment,
    ValueConditions,
    WeightConditions,
)
from tradecheck.scoring import COMPLIANT_DETAILS

from tests.helpers.fakes import value_rule, weight_rule


def rules(*rows):
    return [ComplianceRule.model_validate(r) for r in rows]


def items(*rows):
    return [RestrictedItem.model_validate(r) for r in rows]


def countries(*rows):
    return [RestrictedCountry.model_validate(r) for r in rows]


def test_no_matching_rules_is_compliant():
    s = Shipment(item_name="Cotton Shirts", declared_value=50, weight=1, destination_country="DE")
    res = evaluate_shipment(s, rules(value_rule(1000), weight_rule(50)), [], [])
    assert res.status == "COMPLIANT"
    assert res.issues == []
    assert res.details == COMPLIANT_DETAILS


def test_empty_collections_are_compliant():
    s = Shipment(item_name="Books", destination_country="US")
    res = evaluate_shipment(s, [], [], [])
    assert res.status == "COMPLIANT"


def test_lithium_batteries_high_value_is_review():
    s = Shipment(item_name="Lithium Batteries", declared_value=5000, weight=10, destination_country="US")
    res = evaluate_shipment(s, rules(value_rule(1000)), [], [])
    assert res.status == "REVIEW"
    assert [i.rule_name for i in res.issues] == ["High Value Shipment"]
    assert res.issues[0].priority == "MEDIUM"
    assert res.issues[0].description == (
        "Value exceeds $1000. Additional documentation required: Commercial Invoice"
    )


def test_ivory_carving_is_rejected_with_single_issue():
    s = Shipment(item_name="Ivory Carving", destination_country="US")
    res = evaluate_shipment(
        s, [], [], items({"item_name": "ivory", "severity": "PROHIBITED"})
    )
    assert res.status == "REJECTED"
    assert len(res.issues) == 1
    assert "prohibited item" in res.details
    assert res.issues[0].rule_name == "PROHIBITED ITEM"


def test_prohibited_match_suppresses_every_other_check():
    s = Shipment(item_name="Ivory Carving", declared_value=99999, weight=999, destination_country="KP")
    res = evaluate_shipment(
        s,
        rules(value_rule(1000), weight_rule(50)),
        countries({"country_code": "KP"}),
        items({"item_name": "ivory", "severity": "PROHIBITED"}),
    )
    assert res.status == "REJECTED"
    assert len(res.issues) == 1


def test_restricted_item_alone_is_flagged():
    s = Shipment(item_name="Camera Drone X1", declared_value=500, destination_country="CN")
    res = evaluate_shipment(
        s,
        rules(value_rule(1000)),
        [],
        items({"item_name": "drone", "severity": "restricted", "requirements": "Export license"}),
    )
    assert res.status == "FLAGGED"
    assert len(res.issues) == 1
    issue = res.issues[0]
    assert issue.rule_name == "RESTRICTED ITEM"
    assert issue.priority == "HIGH"
    assert "Export license" in issue.description
    assert res.details == "Shipment is flagged for 1 issue(s)."


def test_value_and_weight_over_thresholds_is_review_with_two_issues():
    s = Shipment(item_name="Machine Parts", declared_value=2000, weight=80, destination_country="FR")
    res = evaluate_shipment(s, rules(value_rule(1000), weight_rule(50)), [], [])
    assert res.status == "REVIEW"
    assert [i.rule_name for i in res.issues] == ["High Value Shipment", "Excess Weight"]
    assert res.issues[1].description.startswith("Weight exceeds 50kg.")


def test_thresholds_are_strict():
    s = Shipment(item_name="Parts", declared_value=1000, weight=50, destination_country="FR")
    res = evaluate_shipment(s, rules(value_rule(1000), weight_rule(50)), [], [])
    assert res.status == "COMPLIANT"


def test_restricted_country_match_ignores_case_and_whitespace():
    s = Shipment(item_name="Books", destination_country="US")
    res = evaluate_shipment(
        s, [], countries({"country_code": " us ", "restriction_level": "MEDIUM"}), []
    )
    assert res.status == "FLAGGED"
    assert res.issues[0].rule_name == "Restricted Country"
    assert res.issues[0].reason == "Country is restricted"


def test_restricted_country_matches_by_name():
    found = match_restricted_country(
        "north korea", countries({"country_code": "KP", "country_name": "North Korea"})
    )
    assert found is not None and found.country_code == "KP"
    assert match_restricted_country("", countries({"country_code": "KP"})) is None


def test_first_matching_restricted_item_wins():
    ordered = items(
        {"item_name": "battery", "severity": "RESTRICTED"},
        {"item_name": "lithium battery", "severity": "PROHIBITED"},
    )
    assert match_restricted_item("Lithium Battery Pack", ordered).item_name == "battery"
    s = Shipment(item_name="Lithium Battery Pack", destination_country="US")
    assert evaluate_shipment(s, [], [], ordered).status == "FLAGGED"


@pytest.mark.parametrize("value", ["abc", "", None, float("nan"), float("inf"), True])
def test_malformed_declared_value_fails_closed(value):
    s = Shipment(item_name="Widgets", declared_value=value, destination_country="US")
    assert s.declared_value is None
    res = evaluate_shipment(s, rules(value_rule(1000)), [], [])
    assert res.status == "COMPLIANT"


def test_malformed_threshold_fails_closed():
    s = Shipment(item_name="Widgets", declared_value=5000, weight=500, destination_country="US")
    res = evaluate_shipment(s, rules(value_rule("n/a"), weight_rule(None)), [], [])
    assert res.status == "COMPLIANT"


def test_numeric_strings_are_accepted():
    s = Shipment(item_name="Widgets", declared_value="5,000", weight="12.5", destination_country="US")
    assert s.declared_value == 5000.0
    assert s.weight == 12.5
    res = evaluate_shipment(s, rules(value_rule("1000")), [], [])
    assert res.status == "REVIEW"


def test_inactive_rules_are_ignored():
    inactive = dict(value_rule(10), is_active=False)
    s = Shipment(item_name="Widgets", declared_value=5000, destination_country="US")
    assert evaluate_shipment(s, rules(inactive), [], []).status == "COMPLIANT"


def test_custom_documentation_and_unit_appear_in_issues():
    s = Shipment(item_name="Crate", declared_value=5000, weight=100, destination_country="US")
    res = evaluate_shipment(
        s,
        rules(
            value_rule(1000, documentation_required=["EEI filing", "Packing list"]),
            weight_rule(70, unit="lb"),
        ),
        [],
        [],
    )
    assert "EEI filing, Packing list" in res.issues[0].description
    assert "70lb" in res.issues[1].description


def test_product_rule_matches_name_and_route():
    tariff = {
        "id": 9,
        "rule_type": "tariff",
        "product_name": "steel",
        "description": "Section 232 duties apply.",
        "source_link": "https://example.gov/232",
        "rule_conditions": {"to_countries": ["US"], "tariff_rate": "25%", "effective_date": "2025-03-12"},
    }
    s = Shipment(item_name="Steel Pipes", destination_country="us")
    res = evaluate_shipment(s, rules(tariff), [], [])
    assert res.status == "REVIEW"
    issue = res.issues[0]
    assert issue.rule_name == "TARIFF on steel"
    assert issue.description == "Section 232 duties apply. Tariff rate: 25% Effective: 2025-03-12"
    assert issue.source_link == "https://example.gov/232"

    elsewhere = Shipment(item_name="Steel Pipes", destination_country="DE")
    assert evaluate_shipment(elsewhere, rules(tariff), [], []).status == "COMPLIANT"


def test_product_rule_origin_filter_only_applies_when_origin_known():
    ban = {
        "rule_type": "BAN",
        "product_name": "shrimp",
        "rule_conditions": {"from_countries": ["IN"]},
    }
    unknown_origin = Shipment(item_name="Frozen Shrimp", destination_country="US")
    other_origin = Shipment(item_name="Frozen Shrimp", destination_country="US", origin_country="VN")
    assert evaluate_shipment(unknown_origin, rules(ban), [], []).status == "REVIEW"
    assert evaluate_shipment(other_origin, rules(ban), [], []).status == "COMPLIANT"
    assert "Trade restriction applies to shrimp" in (
        evaluate_shipment(unknown_origin, rules(ban), [], []).issues[0].description
    )


def test_issues_follow_check_order():
    s = Shipment(item_name="Drone Steel Frame", declared_value=5000, weight=100, destination_country="KP")
    res = evaluate_shipment(
        s,
        rules(
            value_rule(1000),
            weight_rule(50),
            {"rule_type": "TARIFF", "product_name": "steel"},
        ),
        countries({"country_code": "KP", "country_name": "North Korea"}),
        items({"item_name": "drone", "severity": "RESTRICTED"}),
    )
    assert [i.rule_name for i in res.issues] == [
        "RESTRICTED ITEM",
        "Restricted Country",
        "High Value Shipment",
        "Excess Weight",
        "TARIFF on steel",
    ]
    assert res.status == "FLAGGED"
    assert res.details == "Shipment is flagged for 5 issue(s)."


def test_rule_conditions_are_typed_by_rule_type():
    assert isinstance(ComplianceRule.model_validate(value_rule(1)).rule_conditions, ValueConditions)
    assert isinstance(ComplianceRule.model_validate(weight_rule(1)).rule_conditions, WeightConditions)
    quota = ComplianceRule.model_validate({"rule_type": "quota", "rule_conditions": None})
    assert quota.rule_type == "QUOTA"
    assert isinstance(quota.rule_conditions, ProductConditions)


def test_legacy_rule_description_is_used():
    rule = ComplianceRule.model_validate(
        {"rule_type": "TARIFF", "product_name": "rice", "rule_description": "Export duty"}
    )
    assert rule.description == "Export duty"


def test_product_rule_matches_when_item_name_is_inside_product_name():
    quota = {"rule_type": "QUOTA", "product_name": "steel pipes", "rule_conditions": {"to_countries": ["US"]}}
    s = Shipment(item_name="Steel", destination_country="US")
    res = evaluate_shipment(s, rules(quota), [], [])
    assert res.status == "REVIEW"
    assert res.issues[0].rule_name == "QUOTA on steel pipes"

    unrelated = Shipment(item_name="Copper", destination_country="US")
    assert evaluate_shipment(unrelated, rules(quota), [], []).status == "COMPLIANT"


def test_product_rule_applies_when_origin_is_listed():
    ban = {
        "rule_type": "BAN",
        "product_name": "shrimp",
        "rule_conditions": {"from_countries": ["IN", "TH"], "to_countries": ["US"]},
    }
    listed = Shipment(item_name="Frozen Shrimp", destination_country="US", origin_country="in")
    res = evaluate_shipment(listed, rules(ban), [], [])
    assert res.status == "REVIEW"
    assert res.issues[0].rule_name == "BAN on shrimp"

    wrong_destination = Shipment(item_name="Frozen Shrimp", destination_country="CA", origin_country="IN")
    assert evaluate_shipment(wrong_destination, rules(ban), [], []).status == "COMPLIANT"
