# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

os.environ.setdefault("PYTEST_RUNNING", "true")

from chiroport.api.dependencies import get_identity_client_dep, get_waitwhile_client_dep
from chiroport.core.settings import settings
from chiroport.main import app as fastapi_app
from chiroport.services.identity import IdentityClient
from chiroport.services.rate_limit import InMemoryCounterStore, RateLimiter, set_rate_limiter
from chiroport.services.waitwhile import WaitwhileClient
from helpers import BROWSER_UA, FakeClock, Handler, make_identity_client, make_waitwhile_client


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def fresh_rate_limiter() -> Iterator[RateLimiter]:
    limiter = RateLimiter(InMemoryCounterStore())
    set_rate_limiter(limiter)
    try:
        yield limiter
    finally:
        set_rate_limiter(None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test", headers={"User-Agent": BROWSER_UA}) as test_client:
        yield test_client


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def override_settings(monkeypatch: pytest.MonkeyPatch) -> Callable[..., None]:
    """Temporarily override attributes on the global settings object."""

    def _apply(**values: Any) -> None:
        for name, value in values.items():
            monkeypatch.setattr(settings, name, value)

    return _apply


@pytest.fixture()
def use_waitwhile(app: FastAPI) -> Iterator[Callable[..., WaitwhileClient]]:
    """Route the API's provider client to a mock transport handler."""

    def _install(handler: Handler, **kwargs: Any) -> WaitwhileClient:
        provider = make_waitwhile_client(handler, **kwargs)
        app.dependency_overrides[get_waitwhile_client_dep] = lambda: provider
        return provider

    try:
        yield _install
    finally:
        app.dependency_overrides.pop(get_waitwhile_client_dep, None)


@pytest.fixture()
def use_identity(app: FastAPI) -> Iterator[Callable[[Handler], IdentityClient]]:
    def _install(handler: Handler) -> IdentityClient:
        identity = make_identity_client(handler)
        app.dependency_overrides[get_identity_client_dep] = lambda: identity
        return identity

    try:
        yield _install
    finally:
        app.dependency_overrides.pop(get_identity_client_dep, None)
