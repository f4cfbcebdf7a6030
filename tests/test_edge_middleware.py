"""Tests for the edge middleware: classification, limits and headers."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from chiroport.middleware.edge import (
    EndpointClass,
    build_rules,
    classify_path,
    format_reset,
    get_client_ip,
)
from chiroport.services.rate_limit import CounterStoreError, RateLimiter, set_rate_limiter

SUBMIT_LIMIT = 5


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/_next/static/chunk.js", EndpointClass.STATIC),
        ("/static/logo.png", EndpointClass.STATIC),
        ("/favicon.ico", EndpointClass.STATIC),
        ("/images/hero.JPG", EndpointClass.STATIC),
        ("/api/health", EndpointClass.HEALTH),
        ("/api/waitwhile/submit", EndpointClass.SUBMIT),
        ("/api/waitwhile/visit/abc", EndpointClass.API),
        ("/api/csrf-token", EndpointClass.API),
        ("/locations/jfk", EndpointClass.PAGE),
        ("/apiary", EndpointClass.PAGE),
    ],
)
def test_classify_path(path: str, expected: EndpointClass) -> None:
    assert classify_path(path) is expected


@pytest.mark.parametrize(
    ("headers", "expected"),
    [
        ({"x-forwarded-for": "203.0.113.7, 10.0.0.1"}, "203.0.113.7"),
        ({"x-forwarded-for": " ", "x-real-ip": "198.51.100.2"}, "198.51.100.2"),
        ({"x-real-ip": "198.51.100.2"}, "198.51.100.2"),
        ({}, "unknown"),
    ],
)
def test_get_client_ip(headers: dict[str, str], expected: str) -> None:
    assert get_client_ip(headers) == expected


def test_submit_counts_against_api_and_submit_buckets() -> None:
    rules = build_rules(EndpointClass.SUBMIT, "1.2.3.4")
    assert [rule.bucket_key for rule in rules] == ["ip:1.2.3.4:api", "ip:1.2.3.4:submit"]
    assert rules[1].limit == SUBMIT_LIMIT
    assert rules[1].window_seconds == 300


def test_pages_and_static_have_no_rules() -> None:
    assert build_rules(EndpointClass.PAGE, "1.2.3.4") == []
    assert build_rules(EndpointClass.STATIC, "1.2.3.4") == []


def test_format_reset_is_iso_utc() -> None:
    assert format_reset(0) == "1970-01-01T00:00:00.000Z"


def test_api_responses_carry_rate_limit_and_security_headers(client: TestClient) -> None:
    r = client.get("/api/csrf-token", headers={"x-forwarded-for": "10.1.1.1"})

    assert r.status_code == status.HTTP_200_OK
    assert r.headers["X-RateLimit-Limit"] == "60"
    assert r.headers["X-RateLimit-Remaining"] == "59"
    assert r.headers["X-RateLimit-Reset"].endswith("Z")
    assert r.headers["X-Frame-Options"] == "DENY"
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert "Content-Security-Policy" in r.headers


def test_pages_get_security_headers_without_limits(client: TestClient) -> None:
    r = client.get("/")
    assert r.headers["X-Frame-Options"] == "DENY"
    assert "X-RateLimit-Limit" not in r.headers


def test_static_paths_are_untouched(client: TestClient) -> None:
    r = client.get("/static/app.css")
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert "X-Frame-Options" not in r.headers
    assert "X-RateLimit-Limit" not in r.headers


def test_sixth_submit_in_window_is_rate_limited(client: TestClient) -> None:
    headers = {"x-forwarded-for": "10.9.9.9"}
    for _ in range(SUBMIT_LIMIT):
        r = client.post("/api/waitwhile/submit", content=b"{", headers=headers)
        assert r.status_code != status.HTTP_429_TOO_MANY_REQUESTS

    r = client.post("/api/waitwhile/submit", content=b"{", headers=headers)
    assert r.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    body = r.json()
    assert body["error"]["code"] == "rate_limited"
    assert body["error"]["retry_after"] >= 1
    assert int(r.headers["Retry-After"]) >= 1
    assert r.headers["X-RateLimit-Remaining"] == "0"
    assert r.headers["X-RateLimit-Limit"] == str(SUBMIT_LIMIT)
    assert r.headers["X-Frame-Options"] == "DENY"

    other = client.post("/api/waitwhile/submit", content=b"{", headers={"x-forwarded-for": "10.9.9.10"})
    assert other.status_code != status.HTTP_429_TOO_MANY_REQUESTS


def test_limiter_crash_allows_request(client: TestClient) -> None:
    broken = MagicMock()
    broken.evaluate.side_effect = RuntimeError("boom")
    set_rate_limiter(broken)

    r = client.get("/api/csrf-token")
    assert r.status_code == status.HTTP_200_OK
    assert "X-RateLimit-Limit" not in r.headers
    assert r.headers["X-Frame-Options"] == "DENY"


def test_unreachable_counter_store_still_reports_limits(client: TestClient) -> None:
    store = MagicMock()
    store.backend_name = "broken"
    store.increment.side_effect = CounterStoreError("unreachable")
    set_rate_limiter(RateLimiter(store))

    r = client.get("/api/csrf-token")
    assert r.status_code == status.HTTP_200_OK
    assert r.headers["X-RateLimit-Limit"] == r.headers["X-RateLimit-Remaining"]
    assert int(r.headers["X-RateLimit-Limit"]) > 0
    assert "X-RateLimit-Reset" in r.headers
    assert r.headers["X-Frame-Options"] == "DENY"
