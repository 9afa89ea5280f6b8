"""Shared fixtures for unit tests"""

import pytest
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from apptracker.analytics import Stage
from apptracker.ui.api.database.record_store import RecordStore, reset_record_store
from apptracker.ui.api.services.application_service import ApplicationService


@dataclass
class Record:
    """Minimal record with the fields the analytics functions read"""
    name: str
    apply_date: Any = None
    status: Any = Stage.APPLIED


def make_record(name: str, apply_date: Optional[str] = None, status: Any = Stage.APPLIED) -> Record:
    return Record(name=name, apply_date=date.fromisoformat(apply_date) if apply_date else None, status=status)


@pytest.fixture
def store(tmp_path) -> RecordStore:
    """Record store backed by a temporary database"""
    return RecordStore(tmp_path / "applications.db")


@pytest.fixture
def service(store) -> ApplicationService:
    return ApplicationService(store)


@pytest.fixture
def api_store(tmp_path) -> RecordStore:
    """Temporary store installed as the API's singleton"""
    return reset_record_store(tmp_path / "api.db")


@pytest.fixture
def client(api_store):
    """FastAPI test client using the temporary store"""
    from fastapi.testclient import TestClient
    from apptracker.ui.api.main import app

    return TestClient(app)


@pytest.fixture
def auth_headers(client):
    """Bearer headers for a fresh guest session"""
    response = client.post("/api/auth/guest")
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}
