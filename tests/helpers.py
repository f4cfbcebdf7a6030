"""Shared builders for test payloads and mocked provider clients."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx

from chiroport.services.identity import IdentityClient, IdentityConfig
from chiroport.services.waitwhile import WaitwhileClient, WaitwhileConfig

BROWSER_UA = "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0) AppleWebKit/605.1.15 Safari/605.1.15"

Handler = Callable[[httpx.Request], httpx.Response]


class FakeClock:
    """Manually advanced clock for window arithmetic."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_waitwhile_client(handler: Handler, *, api_key: str | None = "test-key") -> WaitwhileClient:
    config = WaitwhileConfig(api_url="https://waitwhile.test/v2", api_key=api_key, timeout_seconds=2.0)
    return WaitwhileClient(config, transport=httpx.MockTransport(handler))


def make_identity_client(handler: Handler) -> IdentityClient:
    config = IdentityConfig(
        base_url="https://identity.test",
        anon_key="anon-key",
        service_key="service-key",
        timeout_seconds=2.0,
    )
    return IdentityClient(config, transport=httpx.MockTransport(handler))


def visit_json(**overrides: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "id": "visit-123",
        "customerId": "customer-1",
        "locationId": "location-1",
        "publicToken": "public-abc",
        "serviceName": "Body on the Go",
        "status": "WAITING",
        "queuePosition": 3,
        "estimatedWaitTime": 15,
        "createdAt": "2024-05-01T12:00:00Z",
        "updatedAt": "2024-05-01T12:00:00Z",
    }
    body.update(overrides)
    return body


def submission_json(**overrides: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "name": "Jane Traveler",
        "phone": "(555) 123-4567",
        "email": "jane@example.com",
        "birthday": "04/12/1988",
        "discomfort": ["Headache"],
        "additionalInfo": "",
        "consent": True,
        "selectedTreatment": {
            "title": "Body on the Go",
            "price": "$69",
            "time": "10 min",
            "description": "Full spinal and neck adjustment",
        },
        "spinalAdjustment": None,
        "locationId": "location-1",
    }
    body.update(overrides)
    return body
