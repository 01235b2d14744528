from __future__ import annotations

import uuid
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from src.application.dtos.photo_dto import (
    CommitUploadRequest,
    ErrorResponse,
    IngestPhotoResponse,
    PrepareUploadRequest,
    PrepareUploadResponse,
    UploadTarget,
)
from src.application.use_cases.commit_upload import CommitUploadUseCase
from src.application.use_cases.ingest_photo import IngestPhotoUseCase
from src.application.use_cases.prepare_upload import PrepareUploadUseCase
from src.domain.entities.photo import InputImage, PhotoRecord
from src.infrastructure.api.dependencies import (
    get_commit_upload,
    get_ingest_photo,
    get_prepare_upload,
    get_session_token,
)


def _to_response(record: PhotoRecord) -> IngestPhotoResponse:
    return IngestPhotoResponse(
        id=record.id,
        created_at=record.created_at,
        original_path=record.original_path,
        display_path=record.display_path,
        use_original_for_display=record.use_original_for_display,
        original_bytes=record.original_bytes,
        display_bytes=record.display_bytes,
    )


router = APIRouter(
    prefix="/photos",
    tags=["Photos"],
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized - Missing or invalid guest session"},
        403: {"model": ErrorResponse, "description": "Forbidden - Party is not accepting photos"},
        503: {"model": ErrorResponse, "description": "Service Unavailable - Transient failure, safe to retry"},
    },
)


@router.post(
    "",
    response_model=IngestPhotoResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload Photo",
    description="""
    Upload a photo to the guest's party.

    **Supported formats**: JPEG, PNG, WebP, GIF, HEIC/HEIF
    **Authentication required**: Yes (guest session cookie or Bearer token)

    The photo will be:
    - Converted to JPEG if it is a HEIC/HEIF container
    - Recompressed, and resized only if needed, to fit the original ceilings
    - Given a separate slideshow variant only when that saves enough bytes
    - Stored together with its metadata row, or not at all
    """,
    response_description="The committed photo",
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request - Unsupported image format"},
        413: {"model": ErrorResponse, "description": "Payload Too Large - Photo exceeds the size limit"},
        500: {"model": ErrorResponse, "description": "Save failed - Nothing was kept"},
    },
)
def upload_photo(
    file: UploadFile = File(..., description="Image file to upload"),
    comment: str | None = Form(None, max_length=500, description="Optional caption"),
    token: str | None = Depends(get_session_token),
    ingest: IngestPhotoUseCase = Depends(get_ingest_photo),
):
    """Ingest one photo; runs in the threadpool so encoding does not block the loop."""
    # one byte past the limit is enough to reject oversized uploads
    data = file.file.read(ingest.pipeline.settings.original_absolute_max_bytes + 1)
    record = ingest.execute(
        token,
        InputImage(data=data, mime_type=file.content_type or "", filename=file.filename),
        comment,
    )
    return _to_response(record)


@router.post(
    "/prepare-upload",
    response_model=PrepareUploadResponse,
    status_code=status.HTTP_200_OK,
    summary="Prepare Direct Upload",
    description="""
    Allocate a photo id and issue short-lived signed upload URLs so a client
    can write its already processed variants straight to storage.

    Paths are never reused; credentials expire after a few minutes.
    """,
    response_description="Upload plan with signed paths and expiry",
)
def prepare_upload(
    body: PrepareUploadRequest,
    token: str | None = Depends(get_session_token),
    prepare: PrepareUploadUseCase = Depends(get_prepare_upload),
):
    """Issue an upload plan for a client-side upload."""
    plan = prepare.execute(token, body.original_ext.lower(), body.create_display)
    return PrepareUploadResponse(
        photo_id=plan.photo_id,
        party_id=plan.party_id,
        uploader_id=plan.uploader_id,
        original=UploadTarget(
            path=plan.original.path, signed_url=plan.original.signed_url, token=plan.original.token
        ),
        display=(
            UploadTarget(path=plan.display.path, signed_url=plan.display.signed_url, token=plan.display.token)
            if plan.display
            else None
        ),
        expires_at=plan.expires_at,
        expires_in=max(0, int((plan.expires_at - datetime.now(UTC)).total_seconds())),
    )


@router.post(
    "/{photo_id}/commit",
    response_model=IngestPhotoResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Commit Direct Upload",
    description="""
    Record a photo whose variants were written through the signed URLs of an
    upload plan.

    The row is only written when every planned object exists. If one is
    missing, or the row cannot be saved, the uploaded objects are deleted and
    the client starts over with a new plan. Committing the same upload twice
    returns the existing photo.
    """,
    response_description="The committed photo",
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request - Unsupported original extension"},
        500: {"model": ErrorResponse, "description": "Save failed - Nothing was kept"},
    },
)
def commit_upload(
    photo_id: uuid.UUID,
    body: CommitUploadRequest,
    token: str | None = Depends(get_session_token),
    commit: CommitUploadUseCase = Depends(get_commit_upload),
):
    """Commit the metadata row for a client-side upload."""
    record = commit.execute(token, str(photo_id), body.original_ext, body.has_display, body.comment)
    return _to_response(record)
