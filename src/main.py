from __future__ import annotations

from fastapi import FastAPI

from src.infrastructure.api.middlewares import add_default_middlewares
from src.infrastructure.api.routes.party_routes import router as party_router
from src.infrastructure.api.routes.photo_routes import router as photo_router
from src.infrastructure.api.routes.storage_routes import router as storage_router
from src.infrastructure.logging import configure_logging


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="PhotoBooze Ingest",
        version="0.1.0",
        description="""
        ## PhotoBooze Ingest API

        Photo ingestion for party slideshows: guests upload photos which are
        normalized, optionally given a smaller slideshow variant, and committed
        to Supabase Storage and the photos table with all-or-nothing semantics.

        ### Features
        - **Format normalization**: HEIC/HEIF photos are converted to JPEG
        - **Adaptive variants**: a display copy is stored only when it saves enough
        - **Safe commits**: objects are cleaned up when a later step fails
        - **Direct uploads**: clients can write processed variants through signed URLs and commit them
        - **Orphan sweep**: removes objects no photo row references

        ### Authentication
        Upload endpoints require the guest session, either as the
        `photobooze_session` cookie or as a Bearer token. Maintenance
        endpoints require the `X-Admin-Key` header.

        ### Error Responses
        Errors return `{"detail", "kind", "retryable"}`:
        - **400**: Unsupported image format
        - **401**: Missing or invalid session
        - **403**: Party is not accepting photos
        - **413**: Photo too large
        - **503**: Transient storage failure, safe to retry
        - **500**: Photo could not be saved
        """,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )
    add_default_middlewares(app)

    @app.get("/", summary="API Root", description="Get basic information about the API")
    def root():
        """Get API root information."""
        return {"status": "ok", "service": "photobooze-ingest", "version": app.version}

    @app.get("/health", summary="Health Check", description="Check if the API service is running")
    def health():
        """Check API health status."""
        return {"status": "healthy"}

    app.include_router(photo_router)
    app.include_router(party_router)
    app.include_router(storage_router)
    return app


app = create_app()
