"""Shared fixtures: isolated SQLite sessions, users and a fake PayPal HTTP session."""

from __future__ import annotations

import os
import tempfile
from decimal import Decimal
from typing import Any, Callable

import pytest

# Settings are read on first import, so the environment is prepared before any
# hostledger module loads.
os.environ.setdefault("HOSTLEDGER_DATA_DIR", tempfile.mkdtemp(prefix="hostledger-tests-"))
os.environ.setdefault("HOSTLEDGER_SECRET_KEY", "test-secret-key")
os.environ.setdefault("HOSTLEDGER_ENABLE_PROMETHEUS", "false")
os.environ.setdefault("HOSTLEDGER_RATE_LIMIT_REQUESTS", "10000")
os.environ.setdefault("HOSTLEDGER_RATE_LIMIT_WALLET_REQUESTS", "10000")
os.environ.setdefault("HOSTLEDGER_PAYPAL_SIMULATE", "true")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from hostledger.core import models  # noqa: E402
from hostledger.core.database import Base  # noqa: E402
from hostledger.core.security import hash_password  # noqa: E402
from hostledger.core.settings import Settings  # noqa: E402
from hostledger.services import wallets  # noqa: E402
from hostledger.services.payouts import PayoutLedger  # noqa: E402
from hostledger.services.paypal import PayPalPayoutClient  # noqa: E402


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, reason: str = "OK") -> None:
        self.status_code = status_code
        self.reason = reason
        self._payload = payload if payload is not None else {}
        self.text = str(self._payload)

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        return self._payload


class FakePayPalSession:
    """Replays queued responses and records every request the client makes."""

    def __init__(self, responses: list[FakeResponse] | None = None) -> None:
        self.responses = list(responses or [])
        self.calls: list[dict[str, Any]] = []

    def _next(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self.responses:
            raise AssertionError(f"Unexpected {method} {url}")
        return self.responses.pop(0)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("POST", url, **kwargs)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("GET", url, **kwargs)


def token_response() -> FakeResponse:
    return FakeResponse(payload={"access_token": "A21AA-test", "expires_in": 32400})


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'hostledger.db'}", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db) -> Callable[..., models.User]:
    counter = {"n": 0}

    def _make(
        display_name: str = "User",
        role: str = "guest",
        is_admin: bool = False,
        balance: Decimal | None = None,
        paypal_email: str | None = None,
    ) -> models.User:
        counter["n"] += 1
        user = models.User(
            email=f"user{counter['n']}@example.com",
            password_hash=hash_password("correct horse"),
            display_name=display_name,
            role=role,
            is_admin=is_admin,
            paypal_email=paypal_email,
        )
        db.add(user)
        db.flush()
        if balance:
            wallets.cash_in(db, user.id, balance)
        db.commit()
        return user

    return _make


@pytest.fixture
def simulated_settings() -> Settings:
    return Settings(paypal_simulate=True, paypal_environment="sandbox", enable_prometheus=False)


@pytest.fixture
def live_settings() -> Settings:
    return Settings(
        paypal_client_id="client-id",
        paypal_client_secret="client-secret",
        paypal_simulate=False,
        paypal_environment="sandbox",
        enable_prometheus=False,
    )


@pytest.fixture
def ledger(simulated_settings) -> PayoutLedger:
    return PayoutLedger(
        settings=simulated_settings,
        transfer_client=PayPalPayoutClient(settings=simulated_settings, session=FakePayPalSession()),
    )


@pytest.fixture
def fake_paypal() -> type[FakePayPalSession]:
    return FakePayPalSession


@pytest.fixture
def fake_response() -> type[FakeResponse]:
    return FakeResponse


@pytest.fixture
def paypal_token() -> Callable[[], FakeResponse]:
    return token_response
