from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class IngestPhotoResponse(BaseModel):
    """Response model for a committed photo."""
    id: str = Field(..., description="Unique identifier of the photo", examples=["5f0c1c9e-..."])
    created_at: datetime | None = Field(None, description="ISO timestamp when the photo row was written")
    original_path: str = Field(..., description="Storage path of the original variant")
    display_path: str = Field(..., description="Storage path shown on the slideshow; equals original_path when no separate variant exists")
    use_original_for_display: bool = Field(..., description="True when no separate display variant was stored")
    original_bytes: int = Field(..., description="Size of the stored original in bytes", ge=0)
    display_bytes: int = Field(..., description="Size of the stored display variant in bytes", ge=0)


class PrepareUploadRequest(BaseModel):
    """Request model for issuing direct-upload credentials."""
    original_ext: str = Field(..., min_length=1, max_length=8, pattern="^[A-Za-z0-9]+$", description="Extension of the original variant", examples=["jpg"])
    create_display: bool = Field(False, description="Whether the client will upload a separate display variant")


class UploadTarget(BaseModel):
    path: str = Field(..., description="Storage path the credential is valid for")
    signed_url: str = Field(..., description="Signed URL for a single direct upload")
    token: str = Field(..., description="Upload token bound to the path")


class PrepareUploadResponse(BaseModel):
    """Response model for an issued upload plan."""
    photo_id: str = Field(..., description="Freshly allocated photo id")
    party_id: str
    uploader_id: str
    original: UploadTarget
    display: UploadTarget | None = None
    expires_at: datetime = Field(..., description="When the credentials stop being accepted")
    expires_in: int = Field(..., description="Seconds until the credentials expire", ge=0)


class CommitUploadRequest(BaseModel):
    """Request model for recording a photo uploaded through an upload plan."""
    original_ext: str = Field(..., min_length=1, max_length=8, pattern="^[A-Za-z0-9]+$", description="Extension the original was planned with", examples=["jpg"])
    has_display: bool = Field(False, description="Whether a separate display variant was uploaded")
    comment: str | None = Field(None, max_length=500, description="Optional caption")


class SweepOrphansResponse(BaseModel):
    """Response model for an orphan sweep."""
    party_id: str
    orphans: list[str] = Field(..., description="Storage paths no photo row references")
    deleted: list[str] = Field(..., description="Paths deleted (empty on dry runs)")
    dry_run: bool


class ErrorResponse(BaseModel):
    """Standard error response model."""
    detail: str = Field(..., description="Human-readable reason")
    kind: str = Field(..., description="Machine-checkable error kind", examples=["save_failed"])
    retryable: bool = Field(False, description="Whether calling again from scratch may succeed")
