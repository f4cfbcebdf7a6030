"""Admin-only analytics: statistics and dashboard embedding."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Header, Query, status
from fastapi.responses import JSONResponse

from chiroport.api.dependencies import IdentityClientDep, extract_bearer_token
from chiroport.services.identity import AnalyticsFilters, IdentityClient, IdentityProviderError
from chiroport.services.metabase import build_metabase_embed_url, load_metabase_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["analytics"])


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


async def _admin_denial(identity: IdentityClient, authorization: str | None) -> JSONResponse | None:
    """Return the error response for a non-admin caller, or None for an admin."""
    token = extract_bearer_token(authorization)
    if token is None:
        return _error("Unauthorized", status.HTTP_401_UNAUTHORIZED)

    try:
        user = await identity.get_user(token)
        if user is None:
            return _error("Unauthorized", status.HTTP_401_UNAUTHORIZED)
        profile = await identity.get_employee_profile(user.id)
    except IdentityProviderError:
        logger.exception("Failed to validate analytics access")
        return _error("Failed to validate access.", status.HTTP_500_INTERNAL_SERVER_ERROR)

    if profile is None or not profile.is_admin:
        logger.warning("Analytics access denied for user %s", user.id)
        return _error("Forbidden", status.HTTP_403_FORBIDDEN)
    return None


@router.get("")
async def admin_analytics(
    identity: IdentityClientDep,
    authorization: Annotated[str | None, Header()] = None,
    location_id: Annotated[str | None, Query(alias="locationId")] = None,
    customer_type: Annotated[str | None, Query(alias="customerType")] = None,
    date_start: Annotated[str | None, Query(alias="dateStart")] = None,
    date_end: Annotated[str | None, Query(alias="dateEnd")] = None,
) -> JSONResponse:
    """Return aggregate queue statistics for admin employees."""
    denial = await _admin_denial(identity, authorization)
    if denial is not None:
        return denial

    filters = AnalyticsFilters.from_query(
        location_id=location_id,
        customer_type=customer_type,
        date_start=date_start,
        date_end=date_end,
    )
    try:
        analytics = await identity.get_admin_analytics(filters)
    except IdentityProviderError:
        logger.exception("Failed to load analytics")
        return _error("Failed to load analytics.", status.HTTP_500_INTERNAL_SERVER_ERROR)

    response = JSONResponse(analytics)
    response.headers["Cache-Control"] = "no-store"
    return response


@router.get("/metabase")
async def metabase_embed(
    identity: IdentityClientDep,
    authorization: Annotated[str | None, Header()] = None,
) -> JSONResponse:
    """Return a short-lived signed dashboard URL for admin employees."""
    denial = await _admin_denial(identity, authorization)
    if denial is not None:
        return denial

    config = load_metabase_config()
    if config is None:
        logger.error("Metabase embed requested but not configured")
        return _error("Metabase embed is not configured.", status.HTTP_500_INTERNAL_SERVER_ERROR)

    response = JSONResponse({"url": build_metabase_embed_url(config)})
    response.headers["Cache-Control"] = "no-store"
    return response
