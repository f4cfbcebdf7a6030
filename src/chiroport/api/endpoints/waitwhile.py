"""Queueing provider proxy endpoints (visit status and intake submission)."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from chiroport.api.dependencies import WaitwhileClientDep, require_csrf, require_screened_request
from chiroport.schemas import IntakeSubmission, QueueSubmissionOut, VisitStatusOut
from chiroport.services.screening import sanitize_form_data
from chiroport.services.waitwhile import (
    QueueProviderError,
    QueueProviderNotConfiguredError,
    QueueProviderNotFoundError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/waitwhile", tags=["waitwhile"])


def _visit_id_required() -> JSONResponse:
    return JSONResponse({"error": "Visit ID is required"}, status_code=status.HTTP_400_BAD_REQUEST)


@router.get("/visit")
@router.get("/visit/")
async def get_visit_without_id() -> JSONResponse:
    return _visit_id_required()


@router.get("/visit/{visit_id}")
async def get_visit_status(visit_id: str, client: WaitwhileClientDep) -> JSONResponse:
    """Return the provider's current view of a visit."""
    visit_id = visit_id.strip()
    if not visit_id:
        return _visit_id_required()

    logger.debug("Fetching visit status for %s", visit_id)
    try:
        visit = await client.get_visit(visit_id)
    except QueueProviderNotFoundError:
        return JSONResponse(
            {"error": "Visit not found", "message": "The requested visit could not be found."},
            status_code=status.HTTP_404_NOT_FOUND,
        )
    except QueueProviderError as exc:
        logger.error("Failed to get visit status for %s: %s", visit_id, exc.message)
        return JSONResponse(
            {"error": "Waitwhile API error", "message": exc.message, "code": exc.code},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    data = VisitStatusOut.model_validate(visit.model_dump())
    return JSONResponse({"success": True, "data": data.model_dump(by_alias=True)})


@router.post(
    "/submit",
    dependencies=[Depends(require_screened_request), Depends(require_csrf)],
)
async def submit_intake(request: Request, client: WaitwhileClientDep) -> JSONResponse:
    """Validate an intake payload and create a waiting visit for it."""
    try:
        body: Any = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse(
            {"success": False, "error": "Invalid JSON body"},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    if not client.configured:
        logger.error("Waitwhile API key is missing; cannot accept submissions")
        return JSONResponse(
            {"success": False, "error": "Server configuration error: API key not found"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    try:
        submission = IntakeSubmission.model_validate(sanitize_form_data(body))
    except ValidationError as exc:
        return JSONResponse(
            {
                "success": False,
                "error": "Validation failed",
                "details": jsonable_encoder(exc.errors(include_url=False, include_context=False)),
            },
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    try:
        visit = await client.create_visit(submission)
    except QueueProviderNotConfiguredError:
        return JSONResponse(
            {"success": False, "error": "Server configuration error: API key not found"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    except QueueProviderError as exc:
        return JSONResponse(
            {"success": False, "error": exc.message or "Failed to create visit", "details": exc.details},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    logger.info("Created visit %s at location %s", visit.id, submission.location_id)
    result = QueueSubmissionOut(
        queue_entry_id=visit.id,
        public_token=visit.public_token or visit.id,
        queue_id=visit.location_id or submission.location_id,
        status=visit.status or "WAITING",
        created_at=visit.created_at or "",
        queue_position=visit.queue_position,
        estimated_wait_time=visit.estimated_wait_time,
        already_in_queue=False,
    )
    return JSONResponse(result.model_dump(by_alias=True, exclude_none=True))


@router.api_route(
    "/visit/{visit_id}",
    methods=["POST", "PUT", "DELETE"],
    include_in_schema=False,
)
async def visit_method_not_allowed(visit_id: str) -> JSONResponse:
    return JSONResponse({"error": "Method not allowed"}, status_code=status.HTTP_405_METHOD_NOT_ALLOWED)
