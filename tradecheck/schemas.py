import math
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator

Status = Literal["REJECTED", "FLAGGED", "REVIEW", "COMPLIANT"]
Priority = Literal["HIGH", "MEDIUM", "LOW"]
Severity = Literal["PROHIBITED", "RESTRICTED"]


def lenient_float(x: Any) -> Optional[float]:
    """Numbers or numeric strings; anything else (incl. NaN/inf) becomes None."""
    if x is None or isinstance(x, bool):
        return None
    if isinstance(x, str):
        x = x.strip().replace(",", "")
        if not x:
            return None
    try:
        val = float(x)
    except (TypeError, ValueError):
        return None
    return val if math.isfinite(val) else None


def _str_list(x: Any) -> List[str]:
    if x is None:
        return []
    if isinstance(x, str):
        return [x]
    if isinstance(x, (list, tuple)):
        return [str(v) for v in x if v is not None]
    return []


LenientFloat = Annotated[Optional[float], BeforeValidator(lenient_float)]
StrList = Annotated[List[str], BeforeValidator(_str_list)]


# ---------------------------
# Shipment
# ---------------------------

class Shipment(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    item_name: str
    item_id: Optional[str] = None
    declared_value: LenientFloat = None
    weight: LenientFloat = None
    destination_country: str
    origin_country: Optional[str] = None
    commodity_code: Optional[str] = None

    # carried through from CSV intake, never evaluated
    sender_name: Optional[str] = None
    sender_address: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_address: Optional[str] = None

    @field_validator("item_id", "commodity_code", "origin_country", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


# ---------------------------
# Rule conditions (one variant per rule type)
# ---------------------------

class _Conditions(BaseModel):
    model_config = ConfigDict(extra="allow")


class ValueConditions(_Conditions):
    threshold: LenientFloat = None
    currency: str = "USD"
    documentation_required: StrList = Field(default_factory=list)


class WeightConditions(_Conditions):
    max_weight: LenientFloat = None
    unit: Optional[str] = None
    carrier_restrictions: bool = False


class CountryConditions(_Conditions):
    country_code: Optional[str] = None
    restriction_level: Optional[str] = None
    requires_license: bool = False


class ItemConditions(_Conditions):
    item_name: Optional[str] = None
    restriction_level: Optional[str] = None
    category: Optional[str] = None


class DocumentationConditions(_Conditions):
    document_type: Optional[str] = None
    required_for: StrList = Field(default_factory=list)


class ProductConditions(_Conditions):
    from_countries: StrList = Field(default_factory=list)
    to_countries: StrList = Field(default_factory=list)
    tariff_rate: Optional[str] = None
    effective_date: Optional[str] = None

    @field_validator("tariff_rate", "effective_date", mode="before")
    @classmethod
    def _stringify(cls, v):
        return None if v is None or v == "" else str(v)


RuleConditions = Union[
    ValueConditions,
    WeightConditions,
    CountryConditions,
    ItemConditions,
    DocumentationConditions,
    ProductConditions,
]

CONDITIONS_BY_TYPE = {
    "VALUE": ValueConditions,
    "WEIGHT": WeightConditions,
    "COUNTRY": CountryConditions,
    "ITEM": ItemConditions,
    "DOCUMENTATION": DocumentationConditions,
}


def conditions_model(rule_type: str):
    # free-form types (TARIFF, BAN, QUOTA, ...) are product rules
    return CONDITIONS_BY_TYPE.get((rule_type or "").upper(), ProductConditions)


class ComplianceRule(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[Union[int, str]] = None
    rule_name: Optional[str] = None
    rule_type: str
    product_name: Optional[str] = None
    description: Optional[str] = None
    rule_conditions: RuleConditions = Field(default_factory=ProductConditions)
    is_active: bool = True
    source_link: Optional[str] = None
    last_verified: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _tag_conditions(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        rule_type = str(data.get("rule_type") or "").strip().upper()
        data["rule_type"] = rule_type
        if "description" not in data and data.get("rule_description"):
            data["description"] = data["rule_description"]
        raw = data.get("rule_conditions")
        model = conditions_model(rule_type)
        if isinstance(raw, model):
            return data
        if isinstance(raw, BaseModel):
            raw = raw.model_dump()
        data["rule_conditions"] = model.model_validate(raw if isinstance(raw, dict) else {})
        return data

    @field_validator("last_verified", mode="before")
    @classmethod
    def _verified_str(cls, v):
        return None if v is None else str(v)


class RestrictedCountry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    country_code: str
    country_name: Optional[str] = None
    restriction_level: Optional[str] = None
    restriction_reason: Optional[str] = None


class RestrictedItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[Union[int, str]] = None
    item_name: str
    severity: Severity
    category: Optional[str] = None
    description: Optional[str] = None
    requirements: Optional[str] = None
    source_link: Optional[str] = None
    effective_date: Optional[str] = None

    @field_validator("severity", mode="before")
    @classmethod
    def _upper(cls, v):
        return str(v).strip().upper() if v is not None else v

    @field_validator("effective_date", mode="before")
    @classmethod
    def _date_str(cls, v):
        return None if v is None else str(v)


# ---------------------------
# Evaluation output
# ---------------------------

class ComplianceIssue(BaseModel):
    rule_name: str
    description: str
    reason: Optional[str] = None
    source_link: Optional[str] = None
    last_verified: Optional[str] = None
    priority: Optional[Priority] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ComplianceResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: Status
    shipment: Shipment
    details: str
    issues: List[ComplianceIssue] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=_utcnow, alias="lastUpdated")


# ---------------------------
# API payloads
# ---------------------------

class CheckRequest(BaseModel):
    shipment: Optional[Shipment] = None


class BulkCheckRequest(BaseModel):
    # items are validated one by one so a bad shipment does not reject the batch
    shipments: Optional[List[Any]] = None


class ReportRequest(BaseModel):
    results: List[ComplianceResult]


class ShipmentDraft(BaseModel):
    """Shipment fields recovered from an invoice; anything may be missing."""
    item_name: Optional[str] = None
    item_id: Optional[str] = None
    declared_value: Optional[float] = None
    currency: Optional[str] = None
    weight: Optional[float] = None
    destination_country: Optional[str] = None
    origin_country: Optional[str] = None
    commodity_code: Optional[str] = None


class ExtractResponse(BaseModel):
    shipment: ShipmentDraft
    debug: Dict[str, Any] = Field(default_factory=dict)


class RuleCreate(BaseModel):
    rule_name: str = ""
    rule_description: str = ""
    rule_type: Literal["VALUE", "WEIGHT", "COUNTRY", "ITEM", "DOCUMENTATION"] = "VALUE"
    value_threshold: Optional[Union[float, str]] = None
    weight_threshold: Optional[Union[float, str]] = None
    country_code: Optional[str] = None
    item_name: Optional[str] = None
    document_type: Optional[str] = None


class RestrictedItemCreate(BaseModel):
    item_name: str
    severity: Severity
    category: Optional[str] = None
    description: Optional[str] = None
    requirements: Optional[str] = None
    source_link: Optional[str] = None
    effective_date: Optional[str] = None


class PredictResponse(BaseModel):
    prediction: str
    timestamp: datetime = Field(default_factory=_utcnow)


class DocumentRequest(BaseModel):
    products: List[str] = Field(default_factory=list)
    from_country: Optional[str] = Field(default=None, alias="fromCountry")
    to_country: Optional[str] = Field(default=None, alias="toCountry")
    document_type: Optional[str] = Field(default=None, alias="documentType")
    shipment_details: Dict[str, Any] = Field(default_factory=dict, alias="shipmentDetails")
    company_details: Dict[str, Any] = Field(default_factory=dict, alias="companyDetails")

    model_config = ConfigDict(populate_by_name=True)


class DocumentResponse(BaseModel):
    success: bool = True
    document: str
    restrictions: List[Dict[str, Any]] = Field(default_factory=list)
    document_type: str = Field(alias="documentType")
    disclaimer: str

    model_config = ConfigDict(populate_by_name=True)


class ResearchFilters(BaseModel):
    max_results: int = Field(default=5, alias="maxResults", ge=1, le=50)
    categories: List[str] = Field(default_factory=list)
    start_date: Optional[str] = Field(default=None, alias="startDate")
    end_date: Optional[str] = Field(default=None, alias="endDate")

    model_config = ConfigDict(populate_by_name=True)


class ResearchRequest(BaseModel):
    query: Optional[str] = None
    filters: ResearchFilters = Field(default_factory=ResearchFilters)
    include_summary: bool = Field(default=False, alias="includeSummary")

    model_config = ConfigDict(populate_by_name=True)


class ResearchResult(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: str = ""
    content: str = ""
    url: Optional[str] = None
    source: str = ""
    published_date: Optional[str] = Field(default=None, alias="publishedDate")
    relevance: float = 0.0

    @field_validator("title", "content", "source", mode="before")
    @classmethod
    def _null_to_empty(cls, v):
        return "" if v is None else str(v)

    @field_validator("url", "published_date", mode="before")
    @classmethod
    def _optional_str(cls, v):
        return None if v is None or v == "" else str(v)

    @field_validator("relevance", mode="before")
    @classmethod
    def _relevance(cls, v):
        val = lenient_float(v)
        return 0.0 if val is None else max(0.0, min(1.0, val))


class ResearchResponse(BaseModel):
    success: bool = True
    count: int
    results: List[ResearchResult]
    summary: Optional[str] = None


class ChatRequest(BaseModel):
    message: Optional[str] = None


class ChatResponse(BaseModel):
    response: str
    success: bool = True


class ScreenRequest(BaseModel):
    item_name: str


class ScreenResponse(BaseModel):
    status: Literal["COMPLIANT", "NON-COMPLIANT", "WARNING"]
    item: str
    details: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    restricted_item: Optional[RestrictedItemCreate] = None


class TariffRequest(BaseModel):
    value: float = Field(ge=0)
    importing_country: str
    category: Optional[str] = None
    region: Optional[str] = None
    description: Optional[str] = None
    hs_code: Optional[str] = None


class TariffEstimate(BaseModel):
    import_tariff: float
    value_added_tax: float
    total_tax_rate: float
    estimated_duty: float
    estimated_vat: float
    estimated_total_cost: float
    currency: str = "USD"
    local_currency: str
    local_total_cost: float
