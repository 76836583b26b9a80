"""
Shared pytest fixtures available to every test file automatically.
No imports needed in test files, pytest discovers this by convention.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.deps import (
    CurrentUser,
    get_auth_repository,
    get_booking_repository,
    get_payment_repository,
    get_workshop_repository,
)
from app.routers import auth, booking, payments, time_slots, workshops

from .factories import make_admin, make_customer, make_user
from .fakes import (
    FakeAuth,
    InMemoryBookingRepository,
    InMemoryPaymentRepository,
    InMemoryWorkshopRepository,
)

# ---------------------------------------------------------------------------
# Redis stays out of every test
# ---------------------------------------------------------------------------

_CACHED_ROUTERS = (
    "app.routers.booking",
    "app.routers.time_slots",
    "app.routers.payments",
    "app.routers.workshops",
)


@pytest.fixture(autouse=True)
def no_redis(monkeypatch):
    """Cache calls become AsyncMocks; the time-slots ones are returned for assertions."""
    mocks = {
        "get_slots_cache": AsyncMock(return_value=None),
        "set_slots_cache": AsyncMock(),
        "invalidate_slots_cache": AsyncMock(),
    }
    for module in _CACHED_ROUTERS:
        for name, mock in mocks.items():
            monkeypatch.setattr(f"{module}.{name}", mock, raising=False)
    return mocks


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


@pytest.fixture()
def booking_repo() -> InMemoryBookingRepository:
    return InMemoryBookingRepository()


@pytest.fixture()
def payment_repo() -> InMemoryPaymentRepository:
    return InMemoryPaymentRepository()


@pytest.fixture()
def workshop_repo() -> InMemoryWorkshopRepository:
    return InMemoryWorkshopRepository()


# ---------------------------------------------------------------------------
# App builder, used by all client fixtures
# ---------------------------------------------------------------------------


def build_app(
    current_user: CurrentUser | None,
    booking_repo=None,
    payment_repo=None,
    workshop_repo=None,
) -> FastAPI:
    """
    Fresh FastAPI app whose repositories are in-memory fakes and whose
    session is `current_user` (None = anonymous).
    """
    app = FastAPI()
    for module in (auth, time_slots, booking, payments, workshops):
        app.include_router(module.router)

    user = None
    if current_user is not None:
        user = current_user.to_user()
    fake_auth = FakeAuth(user)

    br = booking_repo if booking_repo is not None else InMemoryBookingRepository()
    pr = payment_repo if payment_repo is not None else InMemoryPaymentRepository()
    wr = workshop_repo if workshop_repo is not None else InMemoryWorkshopRepository()
    app.dependency_overrides[get_auth_repository] = lambda: fake_auth
    app.dependency_overrides[get_booking_repository] = lambda: br
    app.dependency_overrides[get_payment_repository] = lambda: pr
    app.dependency_overrides[get_workshop_repository] = lambda: wr
    return app


# ---------------------------------------------------------------------------
# Reusable client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def customer_client(booking_repo, payment_repo, workshop_repo):
    return TestClient(
        build_app(make_customer(), booking_repo, payment_repo, workshop_repo),
        raise_server_exceptions=True,
    )


@pytest.fixture()
def admin_client(booking_repo, payment_repo, workshop_repo):
    return TestClient(
        build_app(make_admin(), booking_repo, payment_repo, workshop_repo),
        raise_server_exceptions=True,
    )


@pytest.fixture()
def anon_client(booking_repo, payment_repo, workshop_repo):
    return TestClient(
        build_app(None, booking_repo, payment_repo, workshop_repo),
        raise_server_exceptions=True,
    )


@pytest.fixture()
def customer_auth() -> FakeAuth:
    return FakeAuth(make_user())


@pytest.fixture()
def admin_auth() -> FakeAuth:
    return FakeAuth(make_admin().to_user())


@pytest.fixture()
def anon_auth() -> FakeAuth:
    return FakeAuth(None)
