"""Main entry point for the Chiroport intake service."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chiroport.api import analytics_router, csrf_router, health_router, waitwhile_router
from chiroport.core.settings import settings
from chiroport.middleware import EdgeMiddleware
from chiroport.services.waitwhile import close_waitwhile_client


def configure_logging(level: str) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Chiroport API",
    description="Walk-in intake and queue service for airport chiropractic locations",
    version=settings.app_version,
)

# Middleware added last runs first: CORS, then edge protection
app.add_middleware(EdgeMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Include API routers
app.include_router(csrf_router, prefix="/api")
app.include_router(health_router, prefix="/api")
app.include_router(waitwhile_router, prefix="/api")
app.include_router(analytics_router, prefix="/api")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(content, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        {
            "success": False,
            "error": "Validation failed",
            "details": jsonable_encoder(exc.errors()),
        },
        status_code=400,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await close_waitwhile_client()


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "Chiroport API",
        "version": settings.app_version,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("chiroport.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
