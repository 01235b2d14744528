from __future__ import annotations

import os
import secrets
from typing import Annotated

from fastapi import Cookie, Depends, Header, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.application.use_cases.commit_upload import CommitUploadUseCase
from src.application.use_cases.ingest_photo import IngestPhotoUseCase
from src.application.use_cases.prepare_upload import PrepareUploadUseCase
from src.application.use_cases.sweep_orphans import SweepOrphansUseCase
from src.config import ImageSettings, UploadSettings
from src.domain.services.image_pipeline import ImagePipeline
from src.infrastructure.auth.session import SESSION_COOKIE_NAME, SessionValidator
from src.infrastructure.database.repositories.party_repository import PartyRepository
from src.infrastructure.database.repositories.photo_repository import PhotoRepository
from src.infrastructure.database.supabase_client import get_supabase_client
from src.infrastructure.storage.supabase_storage import SupabaseStorage

_bearer_scheme = HTTPBearer(auto_error=False)


def get_session_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(_bearer_scheme)] = None,
    session_cookie: Annotated[str | None, Cookie(alias=SESSION_COOKIE_NAME)] = None,
) -> str | None:
    """Session token from the guest cookie, or a Bearer header for API clients."""
    if session_cookie:
        return session_cookie
    if credentials and credentials.scheme and credentials.scheme.lower() == "bearer":
        return credentials.credentials
    return None


def get_session_validator() -> SessionValidator:
    return SessionValidator()


def get_storage() -> SupabaseStorage:
    return SupabaseStorage(get_supabase_client())


def get_party_repo() -> PartyRepository:
    return PartyRepository(get_supabase_client())


def get_photo_repo() -> PhotoRepository:
    return PhotoRepository(get_supabase_client())


def get_image_pipeline() -> ImagePipeline:
    return ImagePipeline(ImageSettings.from_env())


def get_prepare_upload(
    sessions: Annotated[SessionValidator, Depends(get_session_validator)],
    parties: Annotated[PartyRepository, Depends(get_party_repo)],
    storage: Annotated[SupabaseStorage, Depends(get_storage)],
) -> PrepareUploadUseCase:
    return PrepareUploadUseCase(sessions, parties, storage, UploadSettings.from_env())


def get_ingest_photo(
    prepare: Annotated[PrepareUploadUseCase, Depends(get_prepare_upload)],
    storage: Annotated[SupabaseStorage, Depends(get_storage)],
    photos: Annotated[PhotoRepository, Depends(get_photo_repo)],
    pipeline: Annotated[ImagePipeline, Depends(get_image_pipeline)],
) -> IngestPhotoUseCase:
    return IngestPhotoUseCase(
        prepare=prepare,
        storage=storage,
        photos=photos,
        pipeline=pipeline,
        settings=UploadSettings.from_env(),
    )


def get_sweep_orphans(
    storage: Annotated[SupabaseStorage, Depends(get_storage)],
    photos: Annotated[PhotoRepository, Depends(get_photo_repo)],
) -> SweepOrphansUseCase:
    return SweepOrphansUseCase(storage=storage, photos=photos, settings=UploadSettings.from_env())


def get_commit_upload(
    prepare: Annotated[PrepareUploadUseCase, Depends(get_prepare_upload)],
    storage: Annotated[SupabaseStorage, Depends(get_storage)],
    photos: Annotated[PhotoRepository, Depends(get_photo_repo)],
) -> CommitUploadUseCase:
    return CommitUploadUseCase(prepare=prepare, storage=storage, photos=photos)


def require_admin_key(x_admin_key: Annotated[str | None, Header()] = None) -> None:
    """Guard for maintenance endpoints; disabled entirely when ADMIN_API_KEY is unset."""
    expected = (os.getenv("ADMIN_API_KEY") or "").strip()
    if not expected:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Maintenance endpoints are disabled")
    if not x_admin_key or not secrets.compare_digest(x_admin_key, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin key")
