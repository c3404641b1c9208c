"""Pytest configuration and fixtures for test suite."""

import os
import sys
from datetime import date, timedelta
from pathlib import Path

import pytest

# Set test environment BEFORE any other imports
os.environ.setdefault("APP_ENVIRONMENT", "test")

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))


@pytest.fixture(autouse=True)
def reset_practice_store(tmp_path):
    """Fresh store and a throwaway document directory for every test."""
    from practice.store import get_practice_store
    from practice.documents.document_service import get_document_service

    store = get_practice_store()
    store.clear()
    get_document_service().set_root(tmp_path / "documents")
    yield store
    store.clear()
    get_document_service().set_root(None)


@pytest.fixture
def client():
    """TestClient bound to the application."""
    from fastapi.testclient import TestClient
    from web.app import app

    return TestClient(app)


@pytest.fixture
def sample_client():
    """An active limited company in portfolio 1."""
    from practice.clients.client_service import get_client_service

    return get_client_service().create(
        name="Acme Widgets Ltd",
        portfolio_code=1,
        registered_number="01234567",
        main_email="office@acmewidgets.co.uk",
    )


@pytest.fixture
def sample_service(sample_client):
    """Annual accounts due in 45 days."""
    from practice.services.service_manager import get_service_manager
    from practice.services.service_models import ServiceFrequency

    return get_service_manager().create(
        client_id=sample_client.id,
        kind="Annual Accounts",
        frequency=ServiceFrequency.ANNUAL,
        fee=1200,
        next_due=date.today() + timedelta(days=45),
    )
