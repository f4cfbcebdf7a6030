"""Edge middleware: rate limiting plus security headers for every request.

Static assets pass through untouched. API paths are counted against
per-IP buckets, with the submission endpoint also charged to a stricter
bucket. A limiter failure never blocks a request; it is logged and the
request continues.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Final

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from chiroport.core.headers import compute_headers
from chiroport.core.settings import Settings, settings
from chiroport.services.rate_limit import RateLimitResult, RateLimitRule, get_rate_limiter

logger = logging.getLogger(__name__)

API_PREFIX: Final[str] = "/api"
SUBMIT_PATH: Final[str] = "/api/waitwhile/submit"
HEALTH_PATH: Final[str] = "/api/health"
UNKNOWN_CLIENT: Final[str] = "unknown"

_STATIC_PREFIXES: Final[tuple[str, ...]] = ("/_next/", "/static/")
_STATIC_EXTENSION = re.compile(r"\.(?:png|jpe?g|gif|svg|ico|css|js|webp|woff2?)$", re.IGNORECASE)

RATE_LIMITED_MESSAGE: Final[str] = "Too many requests. Please try again later."


class EndpointClass(str, Enum):
    STATIC = "static"
    PAGE = "page"
    API = "api"
    SUBMIT = "submit"
    HEALTH = "health"


def classify_path(path: str) -> EndpointClass:
    """Map a request path onto the coarse class used for bucketing."""
    if path.startswith(_STATIC_PREFIXES) or path == "/favicon.ico" or _STATIC_EXTENSION.search(path):
        return EndpointClass.STATIC
    if path.rstrip("/") == HEALTH_PATH:
        return EndpointClass.HEALTH
    if path.rstrip("/") == SUBMIT_PATH:
        return EndpointClass.SUBMIT
    if path == API_PREFIX or path.startswith(API_PREFIX + "/"):
        return EndpointClass.API
    return EndpointClass.PAGE


def get_client_ip(headers: Mapping[str, str]) -> str:
    """Resolve the client address from proxy headers.

    All unattributable clients share the ``"unknown"`` bucket.
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return UNKNOWN_CLIENT


def build_rules(
    endpoint_class: EndpointClass,
    client_ip: str,
    config: Settings | None = None,
) -> list[RateLimitRule]:
    """Return the rules a request of ``endpoint_class`` is counted against."""
    config = config or settings

    def rule(name: str, limit: int, window_seconds: int) -> RateLimitRule:
        return RateLimitRule(
            bucket_key=f"ip:{client_ip}:{name}",
            limit=limit,
            window_seconds=window_seconds,
        )

    api_rule = rule("api", config.rate_limit_api, config.rate_limit_api_window_seconds)
    if endpoint_class is EndpointClass.API:
        return [api_rule]
    if endpoint_class is EndpointClass.SUBMIT:
        return [
            api_rule,
            rule("submit", config.rate_limit_submit, config.rate_limit_submit_window_seconds),
        ]
    if endpoint_class is EndpointClass.HEALTH:
        return [rule("health", config.rate_limit_health_per_minute, 60)]
    return []


def format_reset(reset_at: float) -> str:
    """Format an epoch timestamp as ISO-8601 UTC with millisecond precision."""
    moment = datetime.fromtimestamp(reset_at, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining if result.allowed else 0),
        "X-RateLimit-Reset": format_reset(result.reset_at),
    }


def rate_limited_response(result: RateLimitResult) -> JSONResponse:
    retry_after = max(1, result.retry_after_seconds)
    response = JSONResponse(
        status_code=429,
        content={
            "error": {
                "code": "rate_limited",
                "message": RATE_LIMITED_MESSAGE,
                "retry_after": retry_after,
            }
        },
    )
    response.headers["Retry-After"] = str(retry_after)
    response.headers.update(rate_limit_headers(result))
    return response


class EdgeMiddleware(BaseHTTPMiddleware):
    """Single chokepoint applying rate limits and security headers."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        endpoint_class = classify_path(request.url.path)
        if endpoint_class is EndpointClass.STATIC:
            return await call_next(request)

        result = await self._evaluate(request, endpoint_class)
        if result is not None and not result.allowed:
            response: Response = rate_limited_response(result)
        else:
            response = await call_next(request)
            if result is not None and (result.decisions or result.degraded):
                response.headers.update(rate_limit_headers(result))

        self._apply_security_headers(response)
        return response

    async def _evaluate(self, request: Request, endpoint_class: EndpointClass) -> RateLimitResult | None:
        try:
            rules = build_rules(endpoint_class, get_client_ip(request.headers))
            if not rules:
                return None
            return await run_in_threadpool(get_rate_limiter().evaluate, rules)
        except Exception:
            logger.exception("Rate limiting failed for %s; allowing request", request.url.path)
            return None

    @staticmethod
    def _apply_security_headers(response: Response) -> None:
        try:
            headers = compute_headers()
        except Exception:
            logger.exception("Failed to compute security headers")
            return
        for name, value in headers.items():
            response.headers[name] = value
