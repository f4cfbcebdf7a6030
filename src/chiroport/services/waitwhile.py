"""Waitwhile client for queue entry creation and visit lookups.

This module wraps the external queueing provider's HTTP API. It handles:

- Authenticated httpx client construction with bounded timeouts
- Translating intake submissions into the provider's visit payload
- Normalizing provider error bodies into ``QueueProviderError``
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from chiroport.core.settings import settings
from chiroport.schemas.intake import IntakeSubmission

logger = logging.getLogger(__name__)

HTTP_NOT_FOUND = 404
HTTP_BAD_REQUEST = 400

# Provider custom data field identifiers
FIELD_AILMENT: Final[str] = "3EyMmttdiJfOc7nmQaUC"
FIELD_DATE_OF_BIRTH: Final[str] = "wRArbngAg41dQp1hpDSC"
FIELD_NOTES: Final[str] = "dlaxD8sZ1VPchcgcra9w"
FIELD_CONSENT: Final[str] = "uhLZqSrUJaok6R52Powg"

UNDECIDED_SERVICE_ID: Final[str] = "FtfCqXMwnkqdft5aL0ZX"
MEMBER_SERVICE_ID: Final[str] = "mZChb5bacT7AeVU7E3Rz"
MEMBER_WITH_ADJUSTMENT_SERVICE_ID: Final[str] = "DoCvBDfuyv3HjlCra5Jc"

SERVICE_IDS: Final[Mapping[str, str]] = {
    "Body on the Go": "IhqDpECD89j2e7pmHCEW",
    "Total Wellness": "11AxkuHmsd0tClHLitZ7",
    "Sciatica & Lower Back Targeted Therapy": "QhSWYhwLpnoEFHJZkGQf",
    "Neck & Upper Back Targeted Therapy": "59q5NJG9miDfAgdtn8nK",
    "Trigger Point Muscle Therapy & Stretch": "hD5KfCW1maA1Vx0za0fv",
    "Chiro Massage": "ts1phHc92ktj04d0Gpve",
    "Chiro Massage Mini": "J8qHXtrsRC2aNPA04YDc",
    "Undecided": UNDECIDED_SERVICE_ID,
}


class QueueProviderError(RuntimeError):
    """Base exception raised for queueing provider failures."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        details: Any = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code


class QueueProviderNotFoundError(QueueProviderError):
    """Raised when the provider reports that a resource does not exist."""


class QueueProviderNotConfiguredError(QueueProviderError):
    """Raised when provider operations are attempted without an API key."""


class WaitwhileVisit(BaseModel):
    """Subset of the provider's visit representation used by the service."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str
    customer_id: str | None = None
    location_id: str | None = None
    public_token: str | None = None
    service_name: str | None = None
    status: str | None = None
    wait_time: int | None = None
    estimated_wait_time: int | None = None
    queue_position: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class WaitwhileConfig:
    """Immutable configuration for provider calls."""

    api_url: str
    api_key: str | None
    timeout_seconds: float

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


def load_waitwhile_config() -> WaitwhileConfig:
    """Build configuration object from global settings."""

    return WaitwhileConfig(
        api_url=settings.waitwhile_api_url.rstrip("/"),
        api_key=settings.waitwhile_api_key,
        timeout_seconds=float(settings.waitwhile_timeout_seconds),
    )


def normalize_phone(phone: str) -> str:
    """Return ``phone`` in E.164 form, assuming US numbers for 10 digits."""
    digits = "".join(ch for ch in phone if ch.isdigit())
    if len(digits) == 10 and not digits.startswith("1"):
        digits = "1" + digits
    return "+" + digits


def normalize_birthday(birthday: str | None) -> str:
    """Convert ``MM/DD/YYYY`` to ``YYYY-MM-DD``; other formats pass through."""
    if not birthday:
        return ""
    if "/" not in birthday:
        return birthday
    month, _, rest = birthday.partition("/")
    day, _, year = rest.partition("/")
    if not (month and day and year):
        return birthday
    return f"{year}-{month.zfill(2)}-{day.zfill(2)}"


def resolve_service(submission: IntakeSubmission) -> tuple[str, str]:
    """Return ``(service_id, ailment_label)`` for a submission."""
    if submission.selected_treatment is not None:
        title = submission.selected_treatment.title
        return SERVICE_IDS.get(title, UNDECIDED_SERVICE_ID), title
    if submission.spinal_adjustment is True:
        return MEMBER_WITH_ADJUSTMENT_SERVICE_ID, "Priority Pass + Body on the Go"
    return MEMBER_SERVICE_ID, "Priority Pass & Lounge Key Members"


def build_visit_payload(submission: IntakeSubmission) -> dict[str, Any]:
    """Translate an intake submission into the provider's visit request."""
    service_id, ailment = resolve_service(submission)
    ailment = submission.service_label or ailment

    data_fields: list[dict[str, Any]] = [
        {"id": FIELD_AILMENT, "values": [ailment]},
        {"id": FIELD_DATE_OF_BIRTH, "values": [normalize_birthday(submission.birthday)]},
        {"id": FIELD_CONSENT, "values": ["Yes" if submission.consent else "No"]},
    ]
    if submission.additional_info and submission.additional_info.strip():
        data_fields.append({"id": FIELD_NOTES, "values": [submission.additional_info.strip()]})

    return {
        "locationId": submission.location_id,
        "name": submission.name,
        "phone": normalize_phone(submission.phone),
        "email": submission.email or "",
        "state": "WAITING",
        "serviceIds": [service_id],
        "dataFields": data_fields,
    }


class WaitwhileClient:
    """HTTP client wrapper for the queueing provider."""

    def __init__(
        self,
        config: WaitwhileConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_waitwhile_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return self.config.configured

    async def _ensure_client(self) -> httpx.AsyncClient:
        if not self.configured:
            raise QueueProviderNotConfiguredError(
                "NOT_CONFIGURED",
                "Waitwhile API key is required",
            )

        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.api_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                    headers={
                        "Authorization": f"Bearer {self.config.api_key}",
                        "Content-Type": "application/json",
                        "Accept": "application/json",
                    },
                )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @dataclass
    class RequestParams:
        """Parameters for HTTP requests."""
        method: str
        path: str
        json_data: Any | None = None

    async def _request(self, params: RequestParams) -> httpx.Response:
        client = await self._ensure_client()
        logger.debug("Waitwhile request %s %s", params.method, params.path)

        try:
            response = await client.request(params.method, params.path, json=params.json_data)
        except httpx.TimeoutException as exc:
            logger.error("Waitwhile request %s %s timed out", params.method, params.path)
            raise QueueProviderError("NETWORK_ERROR", "Waitwhile API request timed out") from exc
        except httpx.HTTPError as exc:
            logger.error("Waitwhile request %s %s failed: %s", params.method, params.path, exc)
            raise QueueProviderError("NETWORK_ERROR", f"Waitwhile API request failed: {exc}") from exc

        logger.debug("Waitwhile response %s for %s %s", response.status_code, params.method, params.path)
        if response.status_code >= HTTP_BAD_REQUEST:
            raise self._transform_error(response)
        return response

    @staticmethod
    def _transform_error(response: httpx.Response) -> QueueProviderError:
        status_code = response.status_code
        code = str(status_code)
        message = f"Waitwhile API responded with {status_code}"
        details: Any = None

        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, Mapping):
            error = body.get("error")
            if isinstance(error, Mapping):
                code = str(error.get("code") or code)
                message = str(error.get("message") or message)
                details = error.get("details")
            else:
                details = dict(body)
                if isinstance(body.get("message"), str):
                    message = body["message"]

        error_cls = QueueProviderNotFoundError if status_code == HTTP_NOT_FOUND else QueueProviderError
        logger.error("Waitwhile API error %s (%s): %s", status_code, code, message)
        return error_cls(code, message, details=details, status_code=status_code)

    @staticmethod
    def _parse_visit(response: httpx.Response) -> WaitwhileVisit:
        try:
            return WaitwhileVisit.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise QueueProviderError(
                "INVALID_RESPONSE",
                "Waitwhile API returned an unexpected visit payload",
            ) from exc

    async def create_visit(self, submission: IntakeSubmission) -> WaitwhileVisit:
        """Create a waiting visit with embedded customer data."""
        response = await self._request(
            self.RequestParams(
                method="POST",
                path="/visits",
                json_data=build_visit_payload(submission),
            )
        )
        return self._parse_visit(response)

    async def get_visit(self, visit_id: str) -> WaitwhileVisit:
        """Fetch a visit by identifier."""
        response = await self._request(
            self.RequestParams(method="GET", path=f"/visits/{quote(visit_id, safe='')}")
        )
        return self._parse_visit(response)


_WAITWHILE_CLIENT: WaitwhileClient | None = None


def get_waitwhile_client() -> WaitwhileClient:
    """Return the process-wide provider client."""
    global _WAITWHILE_CLIENT
    if _WAITWHILE_CLIENT is None:
        _WAITWHILE_CLIENT = WaitwhileClient()
    return _WAITWHILE_CLIENT


async def close_waitwhile_client() -> None:
    """Close and forget the process-wide provider client."""
    global _WAITWHILE_CLIENT
    if _WAITWHILE_CLIENT is not None:
        await _WAITWHILE_CLIENT.close()
        _WAITWHILE_CLIENT = None
