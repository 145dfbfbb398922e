import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from starlette.concurrency import run_in_threadpool

from .admin import RuleDraftError, build_rule_row
from .assistant import ComplianceAssistant, UnsupportedDocumentType
from .batch import evaluate_batch, evaluate_payloads
from .config import Settings, configure_logging, get_settings
from .extractor import extract_shipment_with_debug
from .intake import IntakeError, parse_shipments_csv
from .llm import GeminiClient, GenerationError, TextGenerator
from .report import html_response, render_results_pdf, report_filename
from .rules import evaluate_shipment
from .schemas import (
    BulkCheckRequest,
    ChatRequest,
    ChatResponse,
    CheckRequest,
    ComplianceResult,
    ComplianceRule,
    DocumentRequest,
    DocumentResponse,
    ExtractResponse,
    PredictResponse,
    ReportRequest,
    ResearchFilters,
    ResearchRequest,
    ResearchResponse,
    RestrictedCountry,
    RestrictedItem,
    RestrictedItemCreate,
    RuleCreate,
    ScreenRequest,
    ScreenResponse,
    Shipment,
    TariffEstimate,
    TariffRequest,
)
from .store import InMemoryRuleStore, RuleSnapshot, RuleStore, StoreError, supabase_store
from .tariffs import UnknownCountry, estimate, supported_countries

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------
# Dependencies
# ---------------------------

def get_store(request: Request) -> RuleStore:
    store = request.app.state.store
    if store is None:
        raise HTTPException(status_code=503, detail="Rule store is not configured")
    return store


def get_assistant(request: Request) -> ComplianceAssistant:
    generator = request.app.state.generator
    if generator is None:
        raise HTTPException(status_code=503, detail="AI generation is not configured")
    return ComplianceAssistant(generator)


async def _snapshot(store: RuleStore) -> RuleSnapshot:
    return await run_in_threadpool(store.snapshot)


async def _check_many(request: Request, shipments: List[Shipment], store: RuleStore) -> List[ComplianceResult]:
    snap = await _snapshot(store)
    results = await evaluate_batch(
        shipments,
        snap.rules,
        snap.restricted_countries,
        snap.restricted_items,
        chunk_size=request.app.state.settings.batch_chunk_size,
    )
    request.app.state.last_results = results
    return results


async def _read_csv_upload(file: UploadFile) -> List[Shipment]:
    shipments = parse_shipments_csv(await file.read())
    if not shipments:
        raise HTTPException(status_code=400, detail="CSV contains no shipments")
    return shipments


# ---------------------------
# API: Compliance checks
# ---------------------------

@router.get("/health")
def health():
    return {"ok": True}


@router.post("/v1/compliance/check", response_model=ComplianceResult)
async def check(body: CheckRequest, request: Request, store: RuleStore = Depends(get_store)):
    if body.shipment is None:
        raise HTTPException(status_code=400, detail="Shipment data is required")
    snap = await _snapshot(store)
    result = evaluate_shipment(body.shipment, snap.rules, snap.restricted_countries, snap.restricted_items)
    request.app.state.last_results = [result]
    return result


@router.post("/v1/compliance/check-bulk", response_model=List[ComplianceResult])
async def check_bulk(body: BulkCheckRequest, request: Request, store: RuleStore = Depends(get_store)):
    if not body.shipments:
        raise HTTPException(
            status_code=400,
            detail="Invalid data format. Expected a non-empty array of shipments.",
        )
    logger.info("Bulk check of %d shipment(s)", len(body.shipments))
    snap = await _snapshot(store)
    results = await evaluate_payloads(
        body.shipments,
        snap.rules,
        snap.restricted_countries,
        snap.restricted_items,
        chunk_size=request.app.state.settings.batch_chunk_size,
    )
    request.app.state.last_results = results
    return results


@router.post("/v1/compliance/check-csv", response_model=List[ComplianceResult])
async def check_csv(request: Request, file: UploadFile = File(...), store: RuleStore = Depends(get_store)):
    shipments = await _read_csv_upload(file)
    return await _check_many(request, shipments, store)


@router.post("/v1/compliance/check-csv-and-view")
async def check_csv_and_view(
    request: Request, file: UploadFile = File(...), store: RuleStore = Depends(get_store)
):
    shipments = await _read_csv_upload(file)
    await _check_many(request, shipments, store)
    return RedirectResponse(url="/report", status_code=303)


@router.post("/v1/compliance/report.pdf")
def report_pdf(body: ReportRequest):
    pdf = render_results_pdf(body.results)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{report_filename(body.results)}"'},
    )


@router.post("/v1/shipments/extract", response_model=ExtractResponse)
async def extract_shipment(file: UploadFile = File(...)):
    draft, debug = extract_shipment_with_debug(await file.read())
    return ExtractResponse(shipment=draft, debug=debug)


# ---------------------------
# API: AI generators
# ---------------------------

@router.post("/v1/compliance/predict", response_model=PredictResponse)
def predict(
    body: CheckRequest,
    store: RuleStore = Depends(get_store),
    assistant: ComplianceAssistant = Depends(get_assistant),
):
    if body.shipment is None:
        raise HTTPException(status_code=400, detail="Shipment data is required")
    prediction = assistant.predict(body.shipment, store.fetch_active_rules())
    return PredictResponse(prediction=prediction)


@router.post("/v1/documentation/generate", response_model=DocumentResponse, response_model_by_alias=True)
def generate_document(
    body: DocumentRequest,
    store: RuleStore = Depends(get_store),
    assistant: ComplianceAssistant = Depends(get_assistant),
):
    if not body.products or not body.from_country or not body.to_country or not body.document_type:
        raise HTTPException(status_code=400, detail="Missing required fields")
    doc = assistant.generate_document(body, store.fetch_restricted_items())
    return DocumentResponse(**doc)


def _research(assistant: ComplianceAssistant, query: Optional[str], filters: ResearchFilters, summary: bool):
    if not query or not query.strip():
        raise HTTPException(status_code=400, detail="Query is required")
    results = assistant.research(query, filters.max_results, filters.categories)
    return ResearchResponse(
        count=len(results),
        results=results,
        summary=assistant.summarize_research(query, results) if summary else None,
    )


@router.get("/v1/research", response_model=ResearchResponse, response_model_by_alias=True)
def research_get(
    query: Optional[str] = None,
    max_results: int = Query(default=5, alias="maxResults", ge=1, le=50),
    categories: Optional[str] = None,
    assistant: ComplianceAssistant = Depends(get_assistant),
):
    cats = [c.strip() for c in (categories or "").split(",") if c.strip()]
    filters = ResearchFilters(max_results=max_results, categories=cats)
    return _research(assistant, query, filters, summary=False)


@router.post("/v1/research", response_model=ResearchResponse, response_model_by_alias=True)
def research_post(body: ResearchRequest, assistant: ComplianceAssistant = Depends(get_assistant)):
    return _research(assistant, body.query, body.filters, summary=body.include_summary)


@router.post("/v1/help-chat", response_model=ChatResponse)
def help_chat(body: ChatRequest, assistant: ComplianceAssistant = Depends(get_assistant)):
    if not body.message or not body.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")
    return ChatResponse(response=assistant.chat(body.message))


@router.post("/v1/screen-item", response_model=ScreenResponse)
def screen_item(body: ScreenRequest, assistant: ComplianceAssistant = Depends(get_assistant)):
    if not body.item_name.strip():
        raise HTTPException(status_code=400, detail="Item name is required")
    return assistant.screen_item(body.item_name.strip())


# ---------------------------
# API: Tariff estimator
# ---------------------------

@router.get("/v1/tariffs/countries")
def tariff_countries():
    return {"countries": supported_countries()}


@router.post("/v1/tariffs/estimate", response_model=TariffEstimate)
def tariff_estimate(body: TariffRequest):
    return estimate(body)


# ---------------------------
# API: Admin
# ---------------------------

@router.get("/v1/admin/rules", response_model=List[ComplianceRule])
def list_rules(store: RuleStore = Depends(get_store)):
    return store.list_rules()


@router.post("/v1/admin/rules", response_model=ComplianceRule, status_code=201)
def create_rule(body: RuleCreate, store: RuleStore = Depends(get_store)):
    try:
        row = build_rule_row(body)
    except RuleDraftError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    rule = store.create_rule(row)
    logger.info("Created %s rule %r", rule.rule_type, rule.rule_name)
    return rule


@router.delete("/v1/admin/rules/{rule_id}", status_code=204)
def delete_rule(rule_id: str, store: RuleStore = Depends(get_store)):
    if not store.delete_rule(rule_id):
        raise HTTPException(status_code=404, detail="Rule not found")
    return Response(status_code=204)


@router.get("/v1/admin/restricted-items", response_model=List[RestrictedItem])
def list_restricted_items(store: RuleStore = Depends(get_store)):
    return store.list_restricted_items()


@router.post("/v1/admin/restricted-items", response_model=RestrictedItem, status_code=201)
def create_restricted_item(body: RestrictedItemCreate, store: RuleStore = Depends(get_store)):
    if not body.item_name.strip():
        raise HTTPException(status_code=400, detail="Item name is required")
    return store.create_restricted_item(body.model_dump())


@router.delete("/v1/admin/restricted-items/{item_id}", status_code=204)
def delete_restricted_item(item_id: str, store: RuleStore = Depends(get_store)):
    if not store.delete_restricted_item(item_id):
        raise HTTPException(status_code=404, detail="Restricted item not found")
    return Response(status_code=204)


@router.get("/v1/admin/restricted-countries", response_model=List[RestrictedCountry])
def list_restricted_countries(store: RuleStore = Depends(get_store)):
    return store.fetch_restricted_countries()


# ---------------------------
# HTML: Report / Check UI / Home
# ---------------------------

@router.get("/report")
def report(request: Request):
    results = request.app.state.last_results
    if not results:
        return HTMLResponse(
            "<h2>No report yet</h2><p>Run a compliance check first.</p>",
            status_code=200,
        )
    return html_response(results)


_PAGE_STYLE = """
    body { font-family: system-ui, -apple-system, Segoe UI, Roboto, Arial; background:#0b1220; color:#e5e7eb; margin:0; padding:40px; }
    .card { max-width:680px; margin:auto; background:#0f172a; border:1px solid #24304e; border-radius:16px; padding:24px; }
    h1 { margin:0 0 8px; }
    .muted { color:#9ca3af; font-size:14px; margin:0 0 18px; }
    a { color:#93c5fd; }
    a.nav { display:block; margin:12px 0; padding:12px; background:#1f2937; border-radius:10px; text-decoration:none; font-weight:600; }
    a.nav:hover { background:#111827; }
    label { display:block; margin:14px 0 6px; font-weight:700; }
    input[type=file] { width:100%; padding:10px; background:#111a2e; border:1px solid #24304e; border-radius:12px; color:#e5e7eb; }
    button { margin-top:18px; padding:12px 14px; border:0; border-radius:12px; background:#2563eb; color:white; font-weight:800; cursor:pointer; }
    code { color:#93c5fd; }
"""


def _page(title: str, body: str) -> HTMLResponse:
    return HTMLResponse(f"""<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>{title}</title>
  <style>{_PAGE_STYLE}</style>
</head>
<body>
  <div class="card">
{body}
  </div>
</body>
</html>
""")


@router.get("/check")
def check_ui():
    return _page("Check Shipments", """
    <h1>Bulk compliance check</h1>
    <p class="muted">Upload a CSV with columns <code>item_name, item_id, declared_value, weight, destination_country, commodity_code</code>.
    Headers <code>name</code>, <code>value</code> and <code>country</code> are accepted too.</p>

    <form action="/v1/compliance/check-csv-and-view" method="post" enctype="multipart/form-data">
      <label>Shipments (CSV)</label>
      <input type="file" name="file" accept=".csv,text/csv" required>
      <button type="submit">Check shipments</button>
    </form>

    <p class="muted" style="margin-top:16px;"><a href="/">Back to home</a></p>
""")


@router.get("/")
def home():
    return _page("Trade Compliance Checker", """
    <h1>Trade Compliance Checker</h1>
    <p class="muted">Screen shipments against restricted items, countries and trade rules</p>

    <a class="nav" href="/check">Check shipments from CSV</a>
    <a class="nav" href="/report">View latest compliance report</a>
    <a class="nav" href="/docs">API docs</a>
""")


# ---------------------------
# Error mapping
# ---------------------------

def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def _validation(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
            for e in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"detail": errors})

    @app.exception_handler(StoreError)
    async def _store(request: Request, exc: StoreError):
        logger.error("Rule store error on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Failed to fetch compliance rules from the database."},
        )

    @app.exception_handler(GenerationError)
    async def _generation(request: Request, exc: GenerationError):
        return JSONResponse(status_code=502, content={"detail": "AI generation failed. Please try again."})

    @app.exception_handler(IntakeError)
    async def _intake(request: Request, exc: IntakeError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(UnsupportedDocumentType)
    async def _doc_type(request: Request, exc: UnsupportedDocumentType):
        return JSONResponse(status_code=400, content={"detail": "Unsupported document type"})

    @app.exception_handler(UnknownCountry)
    async def _country(request: Request, exc: UnknownCountry):
        return JSONResponse(
            status_code=400,
            content={"detail": f"Country {exc.args[0]} not found in tax database"},
        )


# ---------------------------
# App factory
# ---------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    if app.state.store is None:
        if settings.store_configured:
            app.state.store = supabase_store(settings.supabase_url, settings.supabase_key)
        else:
            logger.warning("SUPABASE_URL/SUPABASE_KEY not set; using an empty in-memory rule store")
            app.state.store = InMemoryRuleStore()
    if app.state.generator is None and settings.llm_configured:
        app.state.generator = GeminiClient(
            settings.gemini_api_key,
            model_name=settings.gemini_model,
            max_attempts=settings.llm_max_attempts,
            backoff_seconds=settings.llm_backoff_seconds,
        )
    logger.info("Started at %s", datetime.now(timezone.utc).isoformat())
    yield


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[RuleStore] = None,
    generator: Optional[TextGenerator] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.generator = generator
    # latest results for the HTML report page (single-process only)
    app.state.last_results = None

    app.include_router(router)
    _register_error_handlers(app)
    return app


app = create_app()
