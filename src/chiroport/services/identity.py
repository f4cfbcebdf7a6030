"""Identity provider and employee profile lookups (Supabase REST)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from chiroport.core.settings import settings

logger = logging.getLogger(__name__)

HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_BAD_REQUEST = 400


class IdentityProviderError(RuntimeError):
    """Raised when the identity provider or profile store cannot answer."""


def _json_body(response: httpx.Response, source: str) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise IdentityProviderError(f"{source} returned a non-JSON body") from exc


@dataclass(frozen=True)
class IdentityUser:
    """Authenticated user as reported by the identity provider."""

    id: str
    email: str | None = None


@dataclass(frozen=True)
class EmployeeProfile:
    """Authorization-relevant slice of an employee profile row."""

    role: str | None
    is_open: bool

    @property
    def is_admin(self) -> bool:
        return self.is_open and self.role == "admin"


def normalize_customer_type(value: str | None) -> str | None:
    """Map a ``customerType`` query value onto the RPC's customer filter."""
    if not value:
        return None
    normalized = value.strip().lower()
    if normalized == "paying":
        return "paying"
    if normalized in ("priority_pass", "non_paying"):
        return "priority_pass"
    return None


@dataclass(frozen=True)
class AnalyticsFilters:
    """Filters for the admin analytics RPC. None means unfiltered."""

    location_id: str | None = None
    customer_type: str | None = None
    date_start: str | None = None
    date_end: str | None = None

    @classmethod
    def from_query(
        cls,
        *,
        location_id: str | None = None,
        customer_type: str | None = None,
        date_start: str | None = None,
        date_end: str | None = None,
    ) -> AnalyticsFilters:
        # A date range applies only when both ends are given.
        has_range = bool(date_start and date_end)
        return cls(
            location_id=location_id if location_id and location_id != "all" else None,
            customer_type=normalize_customer_type(customer_type),
            date_start=date_start if has_range else None,
            date_end=date_end if has_range else None,
        )

    def as_rpc_params(self) -> dict[str, str | None]:
        return {
            "p_location_id": self.location_id,
            "p_date_start": self.date_start,
            "p_date_end": self.date_end,
            "p_customer_type": self.customer_type,
        }


@dataclass(frozen=True)
class IdentityConfig:
    """Immutable configuration for identity lookups."""

    base_url: str | None
    anon_key: str | None
    service_key: str | None
    timeout_seconds: float

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.anon_key and self.service_key)


def load_identity_config() -> IdentityConfig:
    return IdentityConfig(
        base_url=settings.supabase_url.rstrip("/") if settings.supabase_url else None,
        anon_key=settings.supabase_anon_key,
        service_key=settings.supabase_secret_key,
        timeout_seconds=float(settings.identity_timeout_seconds),
    )


class IdentityClient:
    """Forward bearer tokens to the identity provider and read profiles."""

    def __init__(
        self,
        config: IdentityConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_identity_config()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        if not self.config.configured:
            raise IdentityProviderError("Identity provider is not configured")
        return httpx.AsyncClient(
            base_url=self.config.base_url or "",
            timeout=httpx.Timeout(self.config.timeout_seconds),
            transport=self._transport,
        )

    async def get_user(self, access_token: str) -> IdentityUser | None:
        """Resolve ``access_token`` to a user, or None if it is not valid."""
        async with self._client() as client:
            try:
                response = await client.get(
                    "/auth/v1/user",
                    headers={
                        "apikey": self.config.anon_key or "",
                        "Authorization": f"Bearer {access_token}",
                    },
                )
            except httpx.HTTPError as exc:
                raise IdentityProviderError(f"Identity lookup failed: {exc}") from exc

        if response.status_code in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
            return None
        if response.status_code >= HTTP_BAD_REQUEST:
            raise IdentityProviderError(f"Identity provider responded with {response.status_code}")

        body = _json_body(response, "Identity provider") or {}
        if not isinstance(body, dict):
            raise IdentityProviderError("Identity provider returned an unexpected user payload")
        user_id = body.get("id")
        if not user_id:
            return None
        return IdentityUser(id=str(user_id), email=body.get("email"))

    async def get_employee_profile(self, user_id: str) -> EmployeeProfile | None:
        """Return the employee profile for ``user_id`` if one exists."""
        async with self._client() as client:
            try:
                response = await client.get(
                    "/rest/v1/employee_profiles",
                    params={"user_id": f"eq.{user_id}", "select": "role,is_open"},
                    headers={
                        "apikey": self.config.service_key or "",
                        "Authorization": f"Bearer {self.config.service_key}",
                        "Accept": "application/json",
                    },
                )
            except httpx.HTTPError as exc:
                raise IdentityProviderError(f"Profile lookup failed: {exc}") from exc

        if response.status_code >= HTTP_BAD_REQUEST:
            logger.error("Profile store responded with %s", response.status_code)
            raise IdentityProviderError(f"Profile store responded with {response.status_code}")

        rows = _json_body(response, "Profile store") or []
        if not isinstance(rows, list):
            raise IdentityProviderError("Profile store returned an unexpected payload")
        if not rows:
            return None
        row = rows[0]
        if not isinstance(row, dict):
            raise IdentityProviderError("Profile store returned an unexpected row")
        return EmployeeProfile(role=row.get("role"), is_open=bool(row.get("is_open")))

    async def get_admin_analytics(self, filters: AnalyticsFilters) -> Any:
        """Run the ``get_admin_analytics`` RPC and return its JSON result."""
        async with self._client() as client:
            try:
                response = await client.post(
                    "/rest/v1/rpc/get_admin_analytics",
                    json=filters.as_rpc_params(),
                    headers={
                        "apikey": self.config.service_key or "",
                        "Authorization": f"Bearer {self.config.service_key}",
                        "Accept": "application/json",
                    },
                )
            except httpx.HTTPError as exc:
                raise IdentityProviderError(f"Analytics query failed: {exc}") from exc

        if response.status_code >= HTTP_BAD_REQUEST:
            logger.error("Analytics RPC responded with %s", response.status_code)
            raise IdentityProviderError(f"Analytics RPC responded with {response.status_code}")
        return _json_body(response, "Analytics RPC")


def get_identity_client() -> IdentityClient:
    """Return an identity client configured from settings."""
    return IdentityClient()
