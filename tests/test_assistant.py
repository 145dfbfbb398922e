import pytest

from tradecheck.assistant import (
    DOCUMENT_DISCLAIMER,
    NO_PREDICTION,
    NO_RESULTS_SUMMARY,
    SUMMARY_FAILED,
    ComplianceAssistant,
    UnsupportedDocumentType,
    applicable_restrictions,
)
from tradecheck.schemas import ComplianceRule, DocumentRequest, RestrictedItem, ResearchResult, Shipment

from tests.helpers.fakes import FakeGenerator, value_rule

ITEMS = [
    RestrictedItem(id=1, item_name="drone", severity="RESTRICTED", description="Controls apply to China"),
    RestrictedItem(id=2, item_name="camera drone", severity="RESTRICTED", description="Banned in India"),
    RestrictedItem(id=1, item_name="drone", severity="RESTRICTED", description="Controls apply to China"),
    RestrictedItem(id=3, item_name="ivory", severity="PROHIBITED", description="Banned in China"),
]


def test_applicable_restrictions_match_product_and_country():
    found = applicable_restrictions(["Drone"], "china", ITEMS)
    assert [i.id for i in found] == [1]


def test_predict_includes_shipment_and_rules_in_prompt():
    gen = FakeGenerator(text="<p>Use a commercial invoice.</p>")
    shipment = Shipment(item_name="Lithium Batteries", declared_value=5000, destination_country="US")
    out = ComplianceAssistant(gen).predict(shipment, [ComplianceRule.model_validate(value_rule())])
    assert out == "<p>Use a commercial invoice.</p>"
    assert "Lithium Batteries" in gen.prompts[0]
    assert "High value" in gen.prompts[0]


def test_predict_falls_back_on_empty_answer():
    shipment = Shipment(item_name="Tea", destination_country="GB")
    assert ComplianceAssistant(FakeGenerator(text="")).predict(shipment, []) == NO_PREDICTION


def test_generate_document_strips_fences_and_lists_restrictions():
    gen = FakeGenerator(text="```html\n<h1>Certificate of Origin</h1>\n```")
    request = DocumentRequest(
        products=["drone"], fromCountry="India", toCountry="China", documentType="certificate-of-origin"
    )
    doc = ComplianceAssistant(gen).generate_document(request, ITEMS)
    assert doc["document"] == "<h1>Certificate of Origin</h1>"
    assert doc["disclaimer"] == DOCUMENT_DISCLAIMER
    assert [r["item_name"] for r in doc["restrictions"]] == ["drone"]
    assert "drone: RESTRICTED" in gen.prompts[0]


def test_generate_document_rejects_unknown_type():
    request = DocumentRequest(products=["tea"], fromCountry="IN", toCountry="US", documentType="bill-of-lading")
    with pytest.raises(UnsupportedDocumentType):
        ComplianceAssistant(FakeGenerator()).generate_document(request, [])


def test_research_parses_and_truncates_results():
    gen = FakeGenerator(data={"results": [
        {"title": "A", "content": "a", "source": "WTO", "relevance": 1.7, "publishedDate": "2024-01-01"},
        {"title": "B", "content": "b", "source": "USTR", "relevance": "0.4"},
        "junk",
        {"title": "C", "content": "c", "source": "EU"},
    ]})
    results = ComplianceAssistant(gen).research("steel tariffs", max_results=2, categories=["tariffs"])
    assert [r.title for r in results] == ["A", "B"]
    assert results[0].relevance == 1.0
    assert results[0].published_date == "2024-01-01"
    assert results[1].relevance == 0.4
    assert "Focus on these categories: tariffs" in gen.prompts[0]


def test_summarize_research():
    results = [ResearchResult(title="A", content="a", source="WTO")]
    assert ComplianceAssistant(FakeGenerator(text="sum")).summarize_research("q", results) == "sum"
    assert ComplianceAssistant(FakeGenerator()).summarize_research("q", []) == NO_RESULTS_SUMMARY
    assert ComplianceAssistant(FakeGenerator(fail=True)).summarize_research("q", results) == SUMMARY_FAILED


def test_screen_item_non_compliant_becomes_prohibited_draft():
    gen = FakeGenerator(data={
        "status": "non-compliant",
        "item": "Rough Diamonds",
        "details": "Kimberley Process certification missing.",
        "metadata": {"regionRestrictions": ["EU", "US"], "regulationType": "ban", "effectiveDate": "2024-03-01"},
    })
    verdict = ComplianceAssistant(gen).screen_item("Rough Diamonds")
    assert verdict.status == "NON-COMPLIANT"
    draft = verdict.restricted_item
    assert draft.severity == "PROHIBITED"
    assert draft.category == "ban"
    assert draft.effective_date == "2024-03-01"
    assert draft.description.endswith("Regions: EU, US")


def test_screen_item_compliant_has_no_draft():
    gen = FakeGenerator(data={"status": "COMPLIANT", "details": "No restrictions."})
    verdict = ComplianceAssistant(gen).screen_item("Tea")
    assert verdict.status == "COMPLIANT"
    assert verdict.item == "Tea"
    assert verdict.restricted_item is None


@pytest.mark.parametrize("gen", [
    FakeGenerator(fail=True),
    FakeGenerator(data={"status": "MAYBE"}),
])
def test_screen_item_falls_back_to_warning(gen):
    verdict = ComplianceAssistant(gen).screen_item("Widgets")
    assert verdict.status == "WARNING"
    assert verdict.restricted_item.severity == "RESTRICTED"
    assert verdict.metadata["confidence"] == 50


def test_research_tolerates_null_fields():
    gen = FakeGenerator(data={"results": [
        {"title": "T", "content": None, "source": None, "url": None, "publishedDate": None},
        {"title": "Q", "relevance": "high"},
    ]})
    results = ComplianceAssistant(gen).research("steel tariffs")
    assert [r.title for r in results] == ["T", "Q"]
    assert results[0].source == ""
    assert results[0].content == ""
    assert results[0].url is None
    assert results[1].relevance == 0.0
