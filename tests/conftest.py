"""
pytest configuration file.
Provides the app wired to in-memory collaborators through dependency overrides.
"""
import os

os.environ.setdefault("NOTIFICATIONS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient

from bandsync.core.dependencies import get_auth_provider, get_push_notifier
from bandsync.database.supabase_client import get_document_store
from bandsync.main import app
from bandsync.modules.permissions.cache import get_permission_cache
from tests.mocks.services import FakeAuthProvider, RecordingPushNotifier
from tests.mocks.store import InMemoryDocumentStore


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def auth_provider() -> FakeAuthProvider:
    return FakeAuthProvider()


@pytest.fixture
def notifier() -> RecordingPushNotifier:
    return RecordingPushNotifier()


@pytest.fixture
def client(store, auth_provider, notifier):
    """TestClient with the store, auth provider and notifier overridden"""
    app.dependency_overrides[get_document_store] = lambda: store
    app.dependency_overrides[get_auth_provider] = lambda: auth_provider
    app.dependency_overrides[get_push_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()
    get_permission_cache(store).clear()
