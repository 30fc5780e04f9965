"""Shared pytest fixtures for Roomdesk tests."""
import sys
sys.dont_write_bytecode = True

from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402

from .helpers import FakeStore, make_user  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_oidc_jwks_cache():
    """Reset the module-level JWKS cache so keys never leak between tests."""
    import roomdesk.api.auth as auth_module

    auth_module._jwks_cache = None
    auth_module._jwks_cache_time = 0
    yield
    auth_module._jwks_cache = None
    auth_module._jwks_cache_time = 0


@pytest.fixture
def store(monkeypatch):
    """In-memory repositories wired into the reservation service."""
    return FakeStore().install(monkeypatch)


@pytest.fixture
def notifier(monkeypatch):
    """Capture booking notifications sent by the service."""
    mock = MagicMock()
    mock.send_booking_created.return_value = True
    mock.send_booking_updated.return_value = True
    monkeypatch.setattr("roomdesk.domain.reservations.send_booking_created", mock.send_booking_created)
    monkeypatch.setattr("roomdesk.domain.reservations.send_booking_updated", mock.send_booking_updated)
    return mock


@pytest.fixture
def staff():
    return make_user("staff", user_id="staff-1", email="desk@example.com")


@pytest.fixture
def admin():
    return make_user("admin", user_id="admin-1", email="admin@example.com")


@pytest.fixture
def customer():
    return make_user("customer", user_id="cust-1", email="guest@example.com")
