"""Turn a finished wizard into a queue submission and send it.

Two submission paths exist: ``ProviderQueueSubmissionClient`` calls the
queueing provider directly, while ``ApiQueueSubmissionClient`` goes through
this service's own HTTP API the way a browser does (CSRF token first, then
the submit call).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Final, Protocol

import httpx
from pydantic import ValidationError

from chiroport.core.security import CSRF_HEADER_NAME
from chiroport.schemas.intake import IntakeSubmission, TreatmentSelection
from chiroport.schemas.queue import QueueSubmissionOut
from chiroport.services.waitwhile import QueueProviderError, WaitwhileClient
from chiroport.wizard.engine import QueueEntry, WizardState
from chiroport.wizard.flows import IntakeCategory, VisitCategory

logger = logging.getLogger(__name__)

CUSTOMER_PAYING: Final[str] = "paying"
CUSTOMER_PRIORITY_PASS: Final[str] = "priority_pass"
CONSENT_BODYWORK: Final[str] = "queue_join_consent_bodywork"
CONSENT_CHIROPRACTIC: Final[str] = "queue_join_consent_chiropractic"

DEFAULT_ERROR_MESSAGE: Final[str] = "Submission failed"
RATE_LIMITED_MESSAGE: Final[str] = "Too many requests. Please try again later."
NETWORK_ERROR_MESSAGE: Final[str] = "Network error. Please check your connection and try again."
INVALID_RESPONSE_MESSAGE: Final[str] = "Invalid response from queue service. Please try again."
HTTP_TOO_MANY_REQUESTS = 429
HTTP_BAD_REQUEST = 400


def _is_priority_pass(state: WizardState) -> bool:
    return state.visit_category is VisitCategory.PRIORITY_PASS or state.is_member is True


def _wants_adjustments(state: WizardState) -> bool:
    return _is_priority_pass(state) and state.spinal_adjustment is True


def customer_type(state: WizardState) -> str:
    """Priority-pass visitors without paid add-ons ride free; everyone else pays."""
    if _is_priority_pass(state) and not _wants_adjustments(state):
        return CUSTOMER_PRIORITY_PASS
    return CUSTOMER_PAYING


def service_label(state: WizardState) -> str:
    if _wants_adjustments(state):
        return "Priority Pass + Adjustments"
    if _is_priority_pass(state):
        return "Priority Pass"
    if state.intake_category is IntakeCategory.OFFERS_MASSAGE:
        if state.visit_category is VisitCategory.CHIROPRACTOR:
            return "Chiropractor"
        if state.visit_category is VisitCategory.MASSAGE:
            selection = state.selected_treatment.title.strip() if state.selected_treatment else ""
            return f"Massage: {selection.lower()}" if selection else "Massage"
    return "Paying"


def consent_key(state: WizardState) -> str:
    bodywork = state.is_member is True or state.visit_category in (
        VisitCategory.MASSAGE,
        VisitCategory.PRIORITY_PASS,
    )
    return CONSENT_BODYWORK if bodywork else CONSENT_CHIROPRACTIC


def build_submission(state: WizardState, location_id: str) -> IntakeSubmission:
    """Build the server-side submission payload from wizard answers."""
    details = state.details
    treatment = state.selected_treatment
    return IntakeSubmission(
        name=details.name,
        phone=details.phone,
        email=details.email or None,
        birthday=details.birthday or None,
        discomfort=list(details.discomfort),
        additional_info=details.additional_info or None,
        consent=details.consent,
        selected_treatment=(
            TreatmentSelection(
                title=treatment.title,
                price=treatment.price,
                time=treatment.time,
                description=treatment.description,
            )
            if treatment is not None
            else None
        ),
        spinal_adjustment=state.spinal_adjustment,
        location_id=location_id,
        service_label=service_label(state),
    )


@dataclass(frozen=True)
class SubmissionOutcome:
    """Normalized result of one submission attempt."""

    ok: bool
    entry: QueueEntry | None = None
    error: str | None = None

    @classmethod
    def success(cls, entry: QueueEntry) -> SubmissionOutcome:
        return cls(ok=True, entry=entry)

    @classmethod
    def failure(cls, error: str) -> SubmissionOutcome:
        return cls(ok=False, error=error or DEFAULT_ERROR_MESSAGE)


class QueueSubmissionClient(Protocol):
    async def submit(self, payload: IntakeSubmission) -> SubmissionOutcome:
        """Send ``payload`` to the queue. Provider failures become failed outcomes."""


class ProviderQueueSubmissionClient:
    """Submit straight to the queueing provider."""

    def __init__(self, client: WaitwhileClient) -> None:
        self._client = client

    async def submit(self, payload: IntakeSubmission) -> SubmissionOutcome:
        try:
            visit = await self._client.create_visit(payload)
        except QueueProviderError as exc:
            logger.warning("Queue submission failed (%s): %s", exc.code, exc.message)
            return SubmissionOutcome.failure(exc.message)
        return SubmissionOutcome.success(
            QueueEntry(
                queue_entry_id=visit.id,
                public_token=visit.public_token or "",
                position=visit.queue_position,
                estimated_wait_minutes=visit.estimated_wait_time,
            )
        )


def _error_message(response: httpx.Response) -> str:
    try:
        body: Any = response.json()
    except ValueError:
        return response.text or DEFAULT_ERROR_MESSAGE

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or DEFAULT_ERROR_MESSAGE)
        if isinstance(body.get("message"), str) and body["message"]:
            return body["message"]
        if isinstance(error, str) and error:
            return error
    return DEFAULT_ERROR_MESSAGE


class ApiQueueSubmissionClient:
    """Submit through this service's public API, CSRF handshake included."""

    def __init__(
        self,
        base_url: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout_seconds: float = 15.0,
        user_agent: str = "Mozilla/5.0 (compatible; ChiroportWizard/1.0)",
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout_seconds
        self._user_agent = user_agent

    async def submit(self, payload: IntakeSubmission) -> SubmissionOutcome:
        async with httpx.AsyncClient(
            base_url=self._base_url,
            transport=self._transport,
            timeout=httpx.Timeout(self._timeout),
            headers={"User-Agent": self._user_agent},
        ) as client:
            try:
                token_response = await client.get("/api/csrf-token")
                if token_response.status_code >= HTTP_BAD_REQUEST:
                    return SubmissionOutcome.failure(_error_message(token_response))
                try:
                    token = str(token_response.json().get("token") or "")
                except (ValueError, AttributeError):
                    logger.warning("CSRF token endpoint returned an unreadable body")
                    return SubmissionOutcome.failure(INVALID_RESPONSE_MESSAGE)

                response = await client.post(
                    "/api/waitwhile/submit",
                    json=payload.model_dump(by_alias=True, mode="json"),
                    headers={CSRF_HEADER_NAME: token},
                )
            except httpx.HTTPError as exc:
                logger.warning("Queue submission request failed: %s", exc)
                return SubmissionOutcome.failure(NETWORK_ERROR_MESSAGE)

        if response.status_code == HTTP_TOO_MANY_REQUESTS:
            return SubmissionOutcome.failure(RATE_LIMITED_MESSAGE)
        if response.status_code >= HTTP_BAD_REQUEST:
            return SubmissionOutcome.failure(_error_message(response))

        try:
            body = QueueSubmissionOut.model_validate(response.json())
        except (ValueError, ValidationError):
            return SubmissionOutcome.failure(INVALID_RESPONSE_MESSAGE)
        return SubmissionOutcome.success(
            QueueEntry(
                queue_entry_id=body.queue_entry_id,
                public_token=body.public_token,
                position=body.queue_position,
                estimated_wait_minutes=body.estimated_wait_time,
                already_in_queue=bool(body.already_in_queue),
            )
        )
