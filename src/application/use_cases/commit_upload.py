"""Second half of a direct upload: records a photo whose objects the client wrote.

The client first asks for an upload plan, writes its already processed
variants through the signed URLs, then commits. The row is inserted only
when every planned object exists; otherwise whatever did land is deleted.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from src.application.use_cases.ingest_photo import compensate
from src.application.use_cases.prepare_upload import PrepareUploadUseCase
from src.domain.entities.photo import JPEG_MIME, STORED_MIME_TYPES, PhotoRecord, display_path, original_path
from src.domain.errors import SaveFailed, TransferFailed, UnsupportedFormat
from src.infrastructure.database.repositories.photo_repository import PhotoRepository
from src.infrastructure.logging import LogSink, get_logger
from src.infrastructure.storage.supabase_storage import SupabaseStorage


@dataclass
class CommitUploadUseCase:
    prepare: PrepareUploadUseCase
    storage: SupabaseStorage
    photos: PhotoRepository
    logger: LogSink = field(default_factory=lambda: get_logger(__name__))

    def execute(
        self,
        token: str | None,
        photo_id: str,
        original_ext: str,
        has_display: bool,
        comment: str | None = None,
    ) -> PhotoRecord:
        session = self.prepare.authorize(token)
        ext = original_ext.lower().lstrip(".")
        if ext not in STORED_MIME_TYPES:
            raise UnsupportedFormat(f"Cannot store originals with extension {original_ext!r}")
        orig_path = original_path(session.party_id, photo_id, ext)
        disp_path = display_path(session.party_id, photo_id) if has_display else None

        existing = self.photos.get(photo_id)
        if existing is not None:
            if existing.original_path == orig_path and existing.display_path == (disp_path or orig_path):
                return existing  # repeated commit of the same upload
            raise SaveFailed(f"Photo {photo_id} is already committed")

        planned = [p for p in (orig_path, disp_path) if p]
        try:
            found = {path: self.storage.stat(path) for path in planned}
        except Exception as exc:
            raise TransferFailed(f"Could not check uploaded objects: {exc}") from exc
        missing = [path for path, obj in found.items() if obj is None]
        if missing:
            self.logger.warning("commit.incomplete", photo_id=photo_id, missing=missing)
            compensate(self.storage, self.logger, photo_id, [p for p in planned if p not in missing])
            raise TransferFailed(f"Upload incomplete, missing {', '.join(missing)}; please retry")

        original = found[orig_path]
        display = found[disp_path] if disp_path else original
        record = PhotoRecord(
            id=photo_id,
            party_id=session.party_id,
            uploader_id=session.uploader_id,
            original_path=orig_path,
            display_path=disp_path or orig_path,
            original_mime=STORED_MIME_TYPES[ext],
            display_mime=JPEG_MIME if disp_path else STORED_MIME_TYPES[ext],
            original_bytes=original.size or 0,
            display_bytes=display.size or 0,
            comment=(comment or "").strip() or None,
        )
        try:
            stored = self.photos.insert(record)
        except Exception as exc:
            self.logger.error("commit.insert_failed", photo_id=photo_id, error=str(exc))
            compensate(self.storage, self.logger, photo_id, planned)
            raise SaveFailed("Failed to save photo") from exc

        self.logger.info(
            "commit.committed",
            photo_id=stored.id,
            party_id=stored.party_id,
            separate_display=not stored.use_original_for_display,
        )
        return stored
