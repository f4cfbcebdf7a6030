"""Health and configuration status endpoint."""

from __future__ import annotations

import hmac
import resource
import sys
import time
from datetime import datetime, timezone
from typing import Annotated, Any

from fastapi import APIRouter, Header, HTTPException, Query, status

from chiroport.core.settings import settings
from chiroport.services.rate_limit import get_rate_limiter

router = APIRouter(tags=["system"])

_STARTED_AT = time.monotonic()


def _memory_usage_mb() -> dict[str, float]:
    """Peak resident set size of this process, in megabytes."""
    usage = resource.getrusage(resource.RUSAGE_SELF)
    # ru_maxrss is bytes on macOS, kilobytes elsewhere
    divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
    used = round(usage.ru_maxrss / divisor, 2)
    return {"used": used, "total": used}


def _check_secret(supplied: str | None) -> None:
    expected = settings.health_check_secret
    if not expected:
        if settings.is_production:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
        return
    if not supplied or not hmac.compare_digest(supplied.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.get("/health")
async def health(
    x_health_secret: Annotated[str | None, Header()] = None,
    secret: Annotated[str | None, Query()] = None,
) -> dict[str, Any]:
    """Report uptime, memory and which dependencies are configured.

    Args:
        x_health_secret: Shared secret sent as the ``x-health-secret`` header
        secret: Shared secret sent as a query parameter

    Returns:
        Status envelope with runtime, security and service sections
    """
    _check_secret(x_health_secret or secret)

    return {
        "success": True,
        "data": {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.environment,
            "uptime": round(time.monotonic() - _STARTED_AT, 3),
            "memory": _memory_usage_mb(),
            "security": {
                "csrfEnabled": settings.csrf_secret_configured,
                "csrfEnforced": settings.csrf_enforced,
                "rateLimitingEnabled": True,
                "apiProtected": True,
                "rateLimit": {
                    "api": (
                        f"{settings.rate_limit_api} requests per "
                        f"{settings.rate_limit_api_window_seconds}s"
                    ),
                    "submit": (
                        f"{settings.rate_limit_submit} requests per "
                        f"{settings.rate_limit_submit_window_seconds}s"
                    ),
                },
            },
            "services": {
                "waitwhile": {
                    "configured": settings.waitwhile_configured,
                    "url": settings.waitwhile_api_url,
                },
                "counterStore": {"backend": get_rate_limiter().store.backend_name},
            },
        },
    }
