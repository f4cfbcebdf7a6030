"""Shared API dependencies for security checks and service clients."""

from __future__ import annotations

import logging
import re
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from chiroport.core.security import CSRF_COOKIE_NAME, CSRF_HEADER_NAME, CSRFGuard, get_csrf_guard
from chiroport.core.settings import settings
from chiroport.middleware.edge import get_client_ip
from chiroport.services.identity import IdentityClient, get_identity_client
from chiroport.services.screening import screen_request
from chiroport.services.waitwhile import WaitwhileClient, get_waitwhile_client

logger = logging.getLogger(__name__)

_BEARER_PATTERN = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)

CSRF_FAILED_DETAIL = {
    "success": False,
    "error": "CSRF validation failed",
    "message": "Security token expired or missing. Please refresh the page and try again.",
    "code": "CSRF_FAILED",
    "action": "refresh_page",
}


def get_csrf_guard_dep() -> CSRFGuard:
    """Get CSRFGuard dependency for dependency injection."""
    return get_csrf_guard()


def get_waitwhile_client_dep() -> WaitwhileClient:
    """Get the queueing provider client for dependency injection."""
    return get_waitwhile_client()


def get_identity_client_dep() -> IdentityClient:
    """Get the identity provider client for dependency injection."""
    return get_identity_client()


CSRFGuardDep = Annotated[CSRFGuard, Depends(get_csrf_guard_dep)]
WaitwhileClientDep = Annotated[WaitwhileClient, Depends(get_waitwhile_client_dep)]
IdentityClientDep = Annotated[IdentityClient, Depends(get_identity_client_dep)]


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer`` header value."""
    if not authorization:
        return None
    match = _BEARER_PATTERN.match(authorization.strip())
    if not match:
        return None
    return match.group(1).strip() or None


def require_screened_request(request: Request) -> None:
    """Reject requests from missing or known attack-tool user agents.

    Raises:
        HTTPException: 403 with a customer-friendly message when screening fails
    """
    if not settings.security_checks_enabled:
        return
    result = screen_request(request.headers)
    if result.allowed:
        return
    logger.warning(
        "Request screening rejected %s %s from %s (%s): %s",
        request.method,
        request.url.path,
        get_client_ip(request.headers),
        request.headers.get("user-agent", "-"),
        result.reason,
    )
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={
            "success": False,
            "error": "Security validation failed",
            "message": result.customer_message,
            "code": "SECURITY_CHECK_FAILED",
        },
    )


def require_csrf(request: Request, guard: CSRFGuardDep) -> None:
    """Apply the double-submit CSRF policy to the current request.

    Raises:
        HTTPException: 403 when enforcement is on and the token does not match
    """
    allowed = guard.check_request(
        request.method,
        request.headers.get(CSRF_HEADER_NAME),
        request.cookies.get(CSRF_COOKIE_NAME),
        enforced=settings.csrf_enforced,
    )
    if not allowed:
        logger.warning(
            "CSRF validation failed for %s %s from %s (%s)",
            request.method,
            request.url.path,
            get_client_ip(request.headers),
            request.headers.get("user-agent", "-"),
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=CSRF_FAILED_DETAIL)
