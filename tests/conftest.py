# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# Environment variables are set before any application import: the database
# engine and the log directory are read at import time.
# =============================================================================

import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="rideshare-logs-"))
os.environ.setdefault("LOG_LEVEL", "TRACE")
os.environ.setdefault("GOOGLE_MAPS_API_KEY", "test-maps-key")

import httpx
import pytest
from fastapi.testclient import TestClient

from app.db.database import Base, engine
from app.utils.logger import TRACE, LogSink


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def sink(caplog):
    """LogSink whose channel records all reach caplog."""
    caplog.set_level(TRACE)
    for channel in ("access", "exception", "performance"):
        caplog.set_level(TRACE, logger=f"app.{channel}")
    return LogSink()


@pytest.fixture
def records(caplog):
    """Channel records of one category, e.g. records("payload")."""
    def by_category(category):
        return [r for r in caplog.records if getattr(r, "category", None) == category]
    return by_category


@pytest.fixture
def db_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def distance_handler():
    """Replaceable handler behind the mocked Distance Matrix API."""
    state = {"handler": lambda request: httpx.Response(200, json={"status": "OK", "rows": []})}

    def dispatch(request):
        return state["handler"](request)

    dispatch.state = state
    return dispatch


@pytest.fixture
def app(sink, db_tables, distance_handler):
    from main import create_app

    client = httpx.AsyncClient(transport=httpx.MockTransport(distance_handler))
    return create_app(sink=sink, distance_client=client)


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def user_payload():
    return {
        "user_name": "jdriver",
        "batch": {"batch_number": 1, "batch_location": "Morgantown, WV"},
        "first_name": "John",
        "last_name": "Driver",
        "email": "john.driver@example.com",
        "phone_number": "304-555-0100",
        "is_driver": True,
        "is_active": True,
        "is_accepting_rides": True,
        "h_address": {
            "street": "100 Main St",
            "apt": None,
            "city": "Morgantown",
            "state": "WV",
            "zip": "26505",
        },
        "w_address": None,
    }
