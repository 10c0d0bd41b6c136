"""Pytest shared fixtures for identity manager tests."""
import os
import pathlib
import sys

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Configure test environment BEFORE any package imports
os.environ.setdefault("DEMO_MODE", "true")

import pytest

from identity_manager.core.results import PropertyValue
from identity_manager.core.service import IdentityManagerService
from identity_manager.core.tokens import TokenProvider
from identity_manager.stores.memory import InMemoryRoleStore, InMemoryUserStore


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """Prevent unit tests from reaching a live Keycloak server.

    Integration tests are explicitly marked with @pytest.mark.integration.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _refuse(*args, **kwargs):
        raise AssertionError(f"Unexpected HTTP call in unit test: {args[:2]}")

    monkeypatch.setattr("requests.request", _refuse)
    monkeypatch.setattr("requests.post", _refuse)


# ─────────────────────────────────────────────────────────────────────────────
# Stores & service
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture
def token_provider():
    return TokenProvider("test-token-secret")


@pytest.fixture
def user_store(token_provider):
    return InMemoryUserStore(token_provider)


@pytest.fixture
def role_store():
    return InMemoryRoleStore()


@pytest.fixture
def service(user_store, role_store):
    return IdentityManagerService(user_store, role_store)


@pytest.fixture
def create_user(service):
    """Create a user through the facade and return its subject."""

    def _create(username="alice", password="P@ss1", **properties):
        values = [PropertyValue("username", username), PropertyValue("password", password)]
        values.extend(PropertyValue(key, value) for key, value in properties.items())
        result = service.create_user(values)
        assert result.is_success, result.errors
        return result.result.subject

    return _create


@pytest.fixture
def temp_audit_dir(monkeypatch, tmp_path):
    """Provide isolated audit directory for each test."""
    from identity_manager import audit

    audit_dir = tmp_path / "audit"
    audit_file = audit_dir / "identity-events.jsonl"

    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit_file)
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-signing-key-for-audit-trail")

    yield audit_dir, audit_file
