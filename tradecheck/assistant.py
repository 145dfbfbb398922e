# AI narrative generators: guidance, documents, research, help chat, item screening.
# All model access goes through a TextGenerator so the HTTP layer can inject one.

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from .llm import GenerationError, TextGenerator
from .schemas import (
    ComplianceRule,
    DocumentRequest,
    RestrictedItem,
    RestrictedItemCreate,
    ResearchResult,
    ScreenResponse,
    Shipment,
)

logger = logging.getLogger(__name__)

NO_PREDICTION = "No specific compliance recommendations available at this time."
NO_RESULTS_SUMMARY = "No research results to summarize."
SUMMARY_FAILED = "Failed to generate summary."
DOCUMENT_DISCLAIMER = "This document is AI-generated. Review by a compliance officer is recommended."

DOCUMENT_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "certificate-of-origin": {
        "title": "Certificate of Origin",
        "sections": [
            "exporter_details",
            "importer_details",
            "product_details",
            "origin_declaration",
            "applicable_restrictions",
            "certification",
        ],
    },
    "commercial-invoice": {
        "title": "Commercial Invoice",
        "sections": [
            "seller_details",
            "buyer_details",
            "invoice_details",
            "product_listing",
            "trade_restriction_declarations",
            "terms_and_conditions",
        ],
    },
    "export-declaration": {
        "title": "Export Declaration",
        "sections": [
            "exporter_information",
            "export_control_classification",
            "shipment_details",
            "product_description",
            "compliance_statements",
            "authorization",
        ],
    },
}


class UnsupportedDocumentType(ValueError):
    pass


def applicable_restrictions(
    products: Sequence[str], to_country: str, restricted_items: Sequence[RestrictedItem]
) -> List[RestrictedItem]:
    """
    Restricted items that match any product (exact or substring, case-insensitive)
    and whose description mentions the destination country.
    """
    wanted = [p.lower() for p in products if p]
    country = (to_country or "").lower()
    seen = set()
    out: List[RestrictedItem] = []
    for item in restricted_items:
        name = item.item_name.lower()
        if not any(name == p or p in name for p in wanted):
            continue
        key = item.id if item.id is not None else name
        if key in seen:
            continue
        seen.add(key)
        if country and country in (item.description or "").lower():
            out.append(item)
    return out


def _kv_lines(d: Dict[str, Any]) -> str:
    return "\n".join(f"{k}: {v}" for k, v in d.items())


class ComplianceAssistant:
    def __init__(self, generator: TextGenerator):
        self.generator = generator

    # ---------------------------
    # Per-shipment guidance
    # ---------------------------

    def predict(self, shipment: Shipment, rules: Sequence[ComplianceRule]) -> str:
        rule_lines = "\n".join(
            f"{r.rule_name or r.rule_type}: {r.description or 'No description'}" for r in rules
        ) or "No specific rules found."
        value = "Not provided" if shipment.declared_value is None else f"${shipment.declared_value}"
        weight = "Not provided" if shipment.weight is None else f"{shipment.weight} kg"

        prompt = f"""
You are a compliance expert specializing in international shipping regulations.

PRODUCT INFORMATION:
- Product Name: {shipment.item_name}
- Commodity Code (if available): {shipment.commodity_code or 'Not provided'}
- Declared Value: {value}
- Weight: {weight}
- Destination Country: {shipment.destination_country}

EXISTING RULES IN THE SYSTEM:
{rule_lines}

Please provide specific compliance recommendations for shipping this product to {shipment.destination_country}.
Focus on:
1. Documentation requirements specific to this product and destination
2. Packaging requirements
3. Labeling requirements
4. Import duties and taxes expectations
5. Any special permits or certifications needed

If there are no special requirements beyond standard shipping procedures, state "NO SPECIAL REQUIREMENTS" and provide brief general guidance.

Format your response in HTML paragraphs that can be included directly in a report. Keep it concise (max 250 words) and professional.
"""
        text = self.generator.generate_text(prompt)
        return text or NO_PREDICTION

    # ---------------------------
    # Document generation
    # ---------------------------

    def generate_document(
        self, request: DocumentRequest, restricted_items: Sequence[RestrictedItem]
    ) -> Dict[str, Any]:
        template = DOCUMENT_TEMPLATES.get(request.document_type or "")
        if template is None:
            raise UnsupportedDocumentType(request.document_type)

        restrictions = applicable_restrictions(request.products, request.to_country, restricted_items)
        products = "\n".join(f"{i}. {p}" for i, p in enumerate(request.products, start=1))
        if restrictions:
            restriction_lines = "\n".join(
                f"- {r.item_name}: {r.severity}, {r.requirements or 'No specific requirements'}"
                for r in restrictions
            )
        else:
            restriction_lines = "No specific restrictions identified."

        prompt = f"""
Generate a formal {template['title']} document based on the following information:

PRODUCTS:
{products}

TRADE ROUTE:
From: {request.from_country}
To: {request.to_country}

APPLICABLE RESTRICTIONS:
{restriction_lines}

SHIPMENT DETAILS:
{_kv_lines(request.shipment_details)}

COMPANY DETAILS:
{_kv_lines(request.company_details)}

DOCUMENT SECTIONS:
{chr(10).join(template['sections'])}

Please create a properly formatted, legally-accurate {template['title']} that includes appropriate language for all identified trade restrictions. Document should be formatted in HTML with proper semantic elements.

Create a professional, legally-appropriate document that would satisfy customs requirements. Include appropriate legal disclaimers, certifications, and declarations based on the trade restrictions identified.
"""
        document = self.generator.generate_text(prompt)
        document = document.replace("```html", "").replace("```", "").strip()
        logger.info(
            "Generated %s for %d product(s), %d restriction(s)",
            request.document_type, len(request.products), len(restrictions),
        )
        return {
            "document": document,
            "restrictions": [
                {
                    "id": r.id,
                    "item_name": r.item_name,
                    "severity": r.severity,
                    "requirements": r.requirements,
                }
                for r in restrictions
            ],
            "document_type": request.document_type,
            "disclaimer": DOCUMENT_DISCLAIMER,
        }

    # ---------------------------
    # Research
    # ---------------------------

    def research(
        self, query: str, max_results: int = 5, categories: Optional[Sequence[str]] = None
    ) -> List[ResearchResult]:
        focus = f"Focus on these categories: {', '.join(categories)}" if categories else ""
        prompt = f"""
Research the following query in depth: "{query}"

Please provide detailed findings including:
1. The most relevant information about this topic
2. Key facts and data points
3. Different perspectives if applicable
4. Recent developments on this subject

{focus}

Return at most {max_results} findings. For each research finding, provide:
- A descriptive title
- The main content/information
- The source of the information
- Relevance score (0.0-1.0)

Format your response as JSON:
{{
  "results": [
    {{
      "title": "string",
      "content": "string",
      "url": "string",
      "source": "string",
      "publishedDate": "YYYY-MM-DD",
      "relevance": number
    }}
  ]
}}
"""
        data = self.generator.generate_json(prompt)
        raw = data.get("results") or []
        results: List[ResearchResult] = []
        for row in raw:
            if not isinstance(row, dict):
                continue
            try:
                results.append(ResearchResult.model_validate(row))
            except ValidationError as exc:
                logger.warning("Skipping malformed research finding: %s", exc.errors())
        logger.info("Research for %r returned %d result(s)", query, len(results))
        return results[:max_results]

    def summarize_research(self, query: str, results: Sequence[ResearchResult]) -> str:
        if not results:
            return NO_RESULTS_SUMMARY
        payload = json.dumps([r.model_dump(by_alias=True) for r in results[:5]])
        prompt = f"""
Summarize the following research findings for the query: "{query}"

Research data:
{payload}

Provide a concise but comprehensive summary of these findings.
"""
        try:
            return self.generator.generate_text(prompt)
        except GenerationError:
            logger.exception("Summary generation failed")
            return SUMMARY_FAILED

    # ---------------------------
    # Help chat
    # ---------------------------

    def chat(self, message: str) -> str:
        prompt = f"""I need help with a compliance question related to trade compliance systems.

As a compliance assistant, please help me with: {message}

When answering, focus on:
- How to check shipments for compliance issues
- How to interpret compliance flags and warnings
- Understanding restricted items and countries
- Navigating compliance dashboards"""
        return self.generator.generate_text(prompt)

    # ---------------------------
    # Item screening -> restricted item draft
    # ---------------------------

    def screen_item(self, item_name: str) -> ScreenResponse:
        prompt = f"""
You are a trade compliance specialist verifying news about tariffs, sanctions, or trade barriers.

Analyze this product for import/export compliance: "{item_name}"

Determine if this product has CONFIRMED import/export restrictions.
Be conservative - only confirm restrictions if they are definitely real and in effect or announced.

Return ONLY valid JSON with this format:
{{
  "status": "COMPLIANT" or "NON-COMPLIANT" or "WARNING",
  "item": "{item_name}",
  "details": "clear explanation of compliance status with specific trade restrictions",
  "metadata": {{
    "regionRestrictions": ["country1", "country2"],
    "regulationType": "tariff/ban/quota/etc.",
    "tariffRate": "percentage or flat rate if applicable",
    "effectiveDate": "when restriction takes effect",
    "confidence": "percentage between 0-100 representing confidence in this assessment"
  }}
}}
"""
        try:
            data = self.generator.generate_json(prompt)
            verdict = ScreenResponse(
                status=str(data.get("status", "WARNING")).upper(),
                item=str(data.get("item") or item_name),
                details=str(data.get("details") or ""),
                metadata=data.get("metadata") if isinstance(data.get("metadata"), dict) else {},
            )
        except (GenerationError, ValueError):
            logger.warning("Screening for %r fell back to default verdict", item_name, exc_info=True)
            verdict = ScreenResponse(
                status="WARNING",
                item=item_name,
                details="Could not verify trade restriction details due to technical issues.",
                metadata={"regionRestrictions": [], "regulationType": "unknown", "confidence": 50},
            )

        if verdict.status != "COMPLIANT":
            regions = verdict.metadata.get("regionRestrictions") or []
            description = verdict.details
            if regions:
                description = f"{description} Regions: {', '.join(str(r) for r in regions)}"
            verdict.restricted_item = RestrictedItemCreate(
                item_name=item_name,
                severity="PROHIBITED" if verdict.status == "NON-COMPLIANT" else "RESTRICTED",
                category=str(verdict.metadata.get("regulationType") or "") or None,
                description=description,
                effective_date=str(verdict.metadata.get("effectiveDate") or "") or None,
            )
        return verdict
