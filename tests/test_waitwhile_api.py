"""Tests for the visit status and intake submission endpoints."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest
from fastapi import status
from fastapi.testclient import TestClient

from chiroport.core.security import CSRF_HEADER_NAME
from chiroport.services.waitwhile import WaitwhileClient
from helpers import submission_json, visit_json

SUBMIT_URL = "/api/waitwhile/submit"

InstallProvider = Callable[..., WaitwhileClient]


def _ok_provider(captured: list[dict] | None = None) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST" and captured is not None:
            captured.append(json.loads(request.content))
        return httpx.Response(200, json=visit_json())

    return handler


def _csrf_headers(client: TestClient) -> dict[str, str]:
    token = client.get("/api/csrf-token").json()["token"]
    return {CSRF_HEADER_NAME: token}


def test_submit_with_csrf_token_creates_entry(client: TestClient, use_waitwhile: InstallProvider) -> None:
    use_waitwhile(_ok_provider())

    r = client.post(SUBMIT_URL, json=submission_json(), headers=_csrf_headers(client))

    assert r.status_code == status.HTTP_200_OK
    body = r.json()
    assert body["success"] is True
    assert body["queueEntryId"] == "visit-123"
    assert body["publicToken"] == "public-abc"
    assert body["queueId"] == "location-1"
    assert body["status"] == "WAITING"
    assert body["queuePosition"] == 3
    assert body["alreadyInQueue"] is False


def test_enforced_csrf_accepts_matching_token(
    client: TestClient, use_waitwhile: InstallProvider, override_settings
) -> None:
    override_settings(csrf_enforced=True)
    use_waitwhile(_ok_provider())

    r = client.post(SUBMIT_URL, json=submission_json(), headers=_csrf_headers(client))
    assert r.status_code == status.HTTP_200_OK


def test_enforced_csrf_rejects_missing_header(
    client: TestClient, use_waitwhile: InstallProvider, override_settings
) -> None:
    override_settings(csrf_enforced=True)
    use_waitwhile(_ok_provider())
    client.get("/api/csrf-token")

    r = client.post(SUBMIT_URL, json=submission_json())

    assert r.status_code == status.HTTP_403_FORBIDDEN
    body = r.json()
    assert body["code"] == "CSRF_FAILED"
    assert body["action"] == "refresh_page"


def test_unenforced_csrf_allows_missing_header(client: TestClient, use_waitwhile: InstallProvider) -> None:
    use_waitwhile(_ok_provider())
    r = client.post(SUBMIT_URL, json=submission_json())
    assert r.status_code == status.HTTP_200_OK


def test_submit_sanitizes_markup(client: TestClient, use_waitwhile: InstallProvider) -> None:
    captured: list[dict] = []
    use_waitwhile(_ok_provider(captured))

    r = client.post(SUBMIT_URL, json=submission_json(name='  <b>"Jane"</b> '))

    assert r.status_code == status.HTTP_200_OK
    assert captured[0]["name"] == "&lt;b&gt;&quot;Jane&quot;&lt;/b&gt;"


@pytest.mark.parametrize("user_agent", ["sqlmap/1.7", "curl/8.4.0", "Nikto/2.5"])
def test_attack_tools_are_screened(
    client: TestClient, use_waitwhile: InstallProvider, user_agent: str
) -> None:
    use_waitwhile(_ok_provider())

    r = client.post(SUBMIT_URL, json=submission_json(), headers={"User-Agent": user_agent})

    assert r.status_code == status.HTTP_403_FORBIDDEN
    assert r.json()["code"] == "SECURITY_CHECK_FAILED"


def test_invalid_payload_returns_details(client: TestClient, use_waitwhile: InstallProvider) -> None:
    use_waitwhile(_ok_provider())

    r = client.post(SUBMIT_URL, json=submission_json(name="", consent=False))

    assert r.status_code == status.HTTP_400_BAD_REQUEST
    body = r.json()
    assert body["error"] == "Validation failed"
    assert {tuple(item["loc"]) for item in body["details"]} >= {("name",), ("consent",)}


def test_malformed_json_is_rejected(client: TestClient, use_waitwhile: InstallProvider) -> None:
    use_waitwhile(_ok_provider())
    r = client.post(SUBMIT_URL, content=b"{not json", headers={"Content-Type": "application/json"})
    assert r.status_code == status.HTTP_400_BAD_REQUEST


def test_missing_api_key_is_configuration_error(client: TestClient, use_waitwhile: InstallProvider) -> None:
    use_waitwhile(_ok_provider(), api_key=None)

    r = client.post(SUBMIT_URL, json=submission_json())

    assert r.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert r.json()["error"] == "Server configuration error: API key not found"


def test_provider_failure_on_submit(client: TestClient, use_waitwhile: InstallProvider) -> None:
    use_waitwhile(lambda request: httpx.Response(503, json={"error": {"code": "UNAVAILABLE", "message": "Down"}}))

    r = client.post(SUBMIT_URL, json=submission_json())

    assert r.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert r.json() == {"success": False, "error": "Down", "details": None}


def test_get_visit_status(client: TestClient, use_waitwhile: InstallProvider) -> None:
    use_waitwhile(_ok_provider())

    r = client.get("/api/waitwhile/visit/visit-123")

    assert r.status_code == status.HTTP_200_OK
    data = r.json()["data"]
    assert data["id"] == "visit-123"
    assert data["queuePosition"] == 3
    assert data["estimatedWaitTime"] == 15


def test_unknown_visit_is_404(client: TestClient, use_waitwhile: InstallProvider) -> None:
    use_waitwhile(lambda request: httpx.Response(404, json={"error": {"code": "404", "message": "nope"}}))

    r = client.get("/api/waitwhile/visit/does-not-exist")

    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.json()["error"] == "Visit not found"


@pytest.mark.parametrize("path", ["/api/waitwhile/visit", "/api/waitwhile/visit/%20"])
def test_missing_visit_id_is_400(client: TestClient, use_waitwhile: InstallProvider, path: str) -> None:
    use_waitwhile(_ok_provider())
    r = client.get(path)
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.json() == {"error": "Visit ID is required"}


def test_provider_error_on_visit_lookup(client: TestClient, use_waitwhile: InstallProvider) -> None:
    use_waitwhile(lambda request: httpx.Response(500, json={"error": {"code": "BOOM", "message": "Broken"}}))

    r = client.get("/api/waitwhile/visit/visit-123")

    assert r.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert r.json() == {"error": "Waitwhile API error", "message": "Broken", "code": "BOOM"}


def test_visit_route_rejects_mutations(client: TestClient) -> None:
    r = client.delete("/api/waitwhile/visit/visit-123")
    assert r.status_code == status.HTTP_405_METHOD_NOT_ALLOWED
