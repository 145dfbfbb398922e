import pytest
from fastapi.testclient import TestClient

from tradecheck.config import Settings
from tradecheck.main import create_app
from tradecheck.store import InMemoryRuleStore

from tests.helpers.fakes import FakeGenerator, value_rule, weight_rule


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        supabase_url=None,
        supabase_key=None,
        gemini_api_key=None,
        batch_chunk_size=2,
        log_level="WARNING",
    )


@pytest.fixture
def store():
    return InMemoryRuleStore(
        rules=[value_rule(1000), weight_rule(50)],
        restricted_countries=[
            {"country_code": " KP ", "country_name": "North Korea", "restriction_level": "HIGH",
             "restriction_reason": "Comprehensive sanctions"},
        ],
        restricted_items=[
            {"item_name": "ivory", "severity": "PROHIBITED", "description": "Wildlife trade ban"},
            {"item_name": "drone", "severity": "RESTRICTED", "requirements": "Export license",
             "description": "Dual-use export controls apply to China"},
        ],
    )


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def client(settings, store, generator):
    app = create_app(settings=settings, store=store, generator=generator)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def offline_client(settings, store):
    app = create_app(settings=settings, store=store)
    with TestClient(app) as c:
        yield c
