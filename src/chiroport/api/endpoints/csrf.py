"""CSRF token issuance endpoint."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from chiroport.api.dependencies import CSRFGuardDep

router = APIRouter(tags=["security"])


@router.get("/csrf-token")
async def issue_csrf_token(guard: CSRFGuardDep) -> JSONResponse:
    """Mint a token for the body and set its hash in an HTTP-only cookie."""
    issued = guard.issue()
    response = JSONResponse(
        {
            "success": True,
            "token": issued.token,
            "message": "CSRF token generated successfully",
        }
    )
    response.headers.append("Set-Cookie", issued.cookie_header_value)
    response.headers["Cache-Control"] = "no-store"
    return response


@router.api_route("/csrf-token", methods=["POST", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def csrf_token_method_not_allowed() -> JSONResponse:
    return JSONResponse({"error": "Method not allowed"}, status_code=405)
