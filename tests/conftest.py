"""Shared fixtures: in-memory services and an API client."""

import pytest
from fastapi.testclient import TestClient

from onair.config import Settings
from onair.dependencies import build_services
from onair.services.document_store import MemoryDocumentStore

WEB_APP_URL = "https://script.google.com/macros/s/test-deployment/exec"


@pytest.fixture
def settings():
    return Settings(csv_cache_ttl_seconds=0)


@pytest.fixture
def make_services(settings):
    """Factory for a fresh set of services over an empty in-memory store."""
    def _make():
        return build_services(settings, MemoryDocumentStore())
    return _make


@pytest.fixture
def client(settings):
    from onair.main import create_app

    app = create_app(settings, MemoryDocumentStore())
    with TestClient(app) as test_client:
        yield test_client
