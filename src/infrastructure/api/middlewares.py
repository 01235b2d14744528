from __future__ import annotations

import os

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from src.domain.errors import (
    ImageTooLarge,
    IngestionCancelled,
    IngestionError,
    NotAuthenticated,
    PartyNotAccepting,
    UnsupportedFormat,
)
from src.infrastructure.logging import get_logger

logger = get_logger(__name__)

_STATUS_BY_ERROR: list[tuple[type[IngestionError], int]] = [
    (UnsupportedFormat, status.HTTP_400_BAD_REQUEST),
    (ImageTooLarge, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE),
    (NotAuthenticated, status.HTTP_401_UNAUTHORIZED),
    (PartyNotAccepting, status.HTTP_403_FORBIDDEN),
    (IngestionCancelled, status.HTTP_409_CONFLICT),
]


def status_for(exc: IngestionError) -> int:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return code
    if exc.retryable:
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def ingestion_error_handler(request: Request, exc: IngestionError) -> JSONResponse:
    code = status_for(exc)
    logger.info("http.ingestion_error", path=request.url.path, status=code, kind=exc.kind)
    return JSONResponse(status_code=code, content=exc.to_dict())


def add_default_middlewares(app: FastAPI) -> None:
    # CORS configuration
    # In development/demo mode, allow common frontend origins
    env = os.getenv("ENV", "development")

    if env in ("development", "staging"):
        allowed_origins = [
            "http://localhost:3000",
            "http://localhost:5173",  # Vite default
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]
    else:
        allowed_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(IngestionError, ingestion_error_handler)
