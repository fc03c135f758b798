"""Pytest configuration and shared fixtures."""

import os

os.environ.setdefault("ADMIN_USER", "admin")
os.environ.setdefault("ADMIN_PASSWORD", "secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient

from scamdir.db import make_engine, make_session_factory
from scamdir.directory import Directory
from scamdir.gateway import TriageStore
from scamdir.main import app, get_store
from scamdir.models import Base


@pytest.fixture
def store() -> TriageStore:
    """Store backed by a fresh in-memory database."""
    engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield TriageStore(make_session_factory(engine))
    engine.dispose()


@pytest.fixture
def directory(store) -> Directory:
    return Directory(store)


@pytest.fixture
def make_report(store):
    """Insert a scam report, overriding any default field."""

    def _make(**overrides):
        values = {
            "report_type": "PHONE",
            "phone": "+233 50 123 4567",
            "name_on_number": "Kwame Mensah",
            "connected_page": "ScamPage",
            "platform": None,
            "description": "Asked for a deposit and blocked me.",
            "evidence_url": None,
            "submitter_name": "Ama",
            "submitter_phone": "0240000000",
            "status": "NEW",
        }
        values.update(overrides)
        return store.insert_report(values)

    return _make


@pytest.fixture
def make_business(store):
    def _make(**overrides):
        values = {
            "name": "Honest Repairs Co.",
            "phone": "+233201112222",
            "phone_normalized": "+233201112222",
            "category": "services",
            "verified": False,
            "created_by_admin": False,
        }
        values.update(overrides)
        return store.insert_business(values)

    return _make


@pytest.fixture
def client(store) -> TestClient:
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides = {}
