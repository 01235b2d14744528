"""Upload orchestrator: commits a processed photo to storage and the metadata store.

States::

    Preparing -> TransferringOriginal -> [TransferringDisplay] -> CommittingRecord -> Committed
    TransferringOriginal | TransferringDisplay | CommittingRecord -> Compensating -> Failed

A photo row is only written once every referenced object exists, and every
object written for a photo id is deleted again (best effort) when a later
step fails or the caller cancels.
"""
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Callable, NoReturn

from src.application.use_cases.prepare_upload import PrepareUploadUseCase
from src.config import UploadSettings
from src.domain.entities.photo import (
    EncodedImage,
    InputImage,
    PhotoRecord,
    ProcessedImage,
    UploadPlan,
    WriteCredential,
)
from src.domain.errors import (
    CredentialExpired,
    IngestionCancelled,
    IngestionError,
    SaveFailed,
    TransferFailed,
)
from src.domain.services.image_pipeline import ImagePipeline
from src.infrastructure.database.repositories.photo_repository import PhotoRepository
from src.infrastructure.logging import LogSink, get_logger
from src.infrastructure.storage.supabase_storage import SupabaseStorage, TransferAborted

# progress milestones, in percent
PREPARED = 5.0
TRANSFERRED = 90.0
COMMITTED = 100.0


class IngestState(str, Enum):
    PREPARING = "preparing"
    TRANSFERRING_ORIGINAL = "transferring_original"
    TRANSFERRING_DISPLAY = "transferring_display"
    COMMITTING_RECORD = "committing_record"
    COMMITTED = "committed"
    COMPENSATING = "compensating"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ProgressReporter:
    """Monotonically non-decreasing percentage; safe to feed from transfer threads."""

    def __init__(self, callback: Callable[[float], None] | None) -> None:
        self._callback = callback
        self._last = -1.0
        self._lock = threading.Lock()

    def report(self, percent: float) -> None:
        percent = max(0.0, min(COMMITTED, percent))
        with self._lock:
            if percent <= self._last:
                return
            self._last = percent
            if self._callback:
                self._callback(percent)


@dataclass
class _Transfer:
    variant: str
    state: IngestState
    credential: WriteCredential
    image: EncodedImage


@dataclass
class IngestPhotoUseCase:
    prepare: PrepareUploadUseCase
    storage: SupabaseStorage
    photos: PhotoRepository
    pipeline: ImagePipeline
    settings: UploadSettings = field(default_factory=UploadSettings)
    logger: LogSink = field(default_factory=lambda: get_logger(__name__))
    clock: Callable[[], datetime] = _utcnow

    def execute(
        self,
        token: str | None,
        file: InputImage,
        comment: str | None = None,
        *,
        on_progress: Callable[[float], None] | None = None,
        on_state: Callable[[IngestState], None] | None = None,
        cancel: threading.Event | None = None,
    ) -> PhotoRecord:
        """Process and commit one photo. Single attempt, no automatic retries."""
        try:
            processed = self.pipeline.process(file)
        except IngestionError as exc:
            self.logger.warning("ingest.rejected", kind=exc.kind, reason=exc.message, bytes=file.size)
            raise
        run = _IngestRun(self, on_progress, on_state, cancel)
        return run.ingest(token, processed, (comment or "").strip() or None)


class _IngestRun:
    """State for a single ingestion call; never shared between calls."""

    def __init__(
        self,
        uc: IngestPhotoUseCase,
        on_progress: Callable[[float], None] | None,
        on_state: Callable[[IngestState], None] | None,
        cancel: threading.Event | None,
    ) -> None:
        self.uc = uc
        self.progress = ProgressReporter(on_progress)
        self.on_state = on_state
        self.cancel = cancel
        self.logger = uc.logger
        self.photo_id: str | None = None
        self.state: IngestState | None = None
        self.written: list[str] = []
        self._written_lock = threading.Lock()
        self._sent: dict[str, int] = {}
        self._total_bytes = 0

    def _enter(self, state: IngestState) -> None:
        self.state = state
        self.logger.info("ingest.state", photo_id=self.photo_id, state=state.value)
        if self.on_state:
            self.on_state(state)

    def _cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    def _check_cancel(self) -> None:
        if self._cancelled():
            raise IngestionCancelled("Upload cancelled")

    def ingest(self, token: str | None, processed: ProcessedImage, comment: str | None) -> PhotoRecord:
        self._enter(IngestState.PREPARING)
        self.progress.report(0.0)
        try:
            self._check_cancel()
            plan = self.uc.prepare.execute(
                token, processed.original.ext, create_display=processed.display is not None
            )
        except IngestionError as exc:
            self._fail(exc)
        self.photo_id = plan.photo_id
        self.progress.report(PREPARED)

        try:
            self._transfer_all(self._transfers(plan, processed))
            self._check_cancel()
        except IngestionError as exc:
            self._fail(exc)

        self._enter(IngestState.COMMITTING_RECORD)
        record = self._record(plan, processed, comment)
        try:
            stored = self.uc.photos.insert(record)
        except Exception as exc:
            self.logger.error("ingest.insert_failed", photo_id=self.photo_id, error=str(exc))
            self._fail(SaveFailed("Failed to save photo"), cause=exc)

        self._enter(IngestState.COMMITTED)
        self.progress.report(COMMITTED)
        self.logger.info(
            "ingest.committed",
            photo_id=stored.id,
            party_id=stored.party_id,
            original_bytes=stored.original_bytes,
            display_bytes=stored.display_bytes,
            separate_display=not stored.use_original_for_display,
        )
        return stored

    @staticmethod
    def _transfers(plan: UploadPlan, processed: ProcessedImage) -> list[_Transfer]:
        transfers = [
            _Transfer("original", IngestState.TRANSFERRING_ORIGINAL, plan.original, processed.original)
        ]
        if processed.display is not None and plan.display is not None:
            transfers.append(
                _Transfer("display", IngestState.TRANSFERRING_DISPLAY, plan.display, processed.display)
            )
        return transfers

    def _transfer_all(self, transfers: list[_Transfer]) -> None:
        self._total_bytes = sum(t.image.size for t in transfers)
        if not self.uc.settings.parallel_transfers or len(transfers) == 1:
            for transfer in transfers:
                self._enter(transfer.state)
                self._transfer(transfer)
            return

        # Joined operation: succeeds only if every transfer succeeds. Whatever
        # did land is in self.written and gets compensated by the caller.
        for transfer in transfers:
            self._enter(transfer.state)
        with ThreadPoolExecutor(max_workers=len(transfers)) as pool:
            futures = [pool.submit(self._transfer, t) for t in transfers]
        errors = [f.exception() for f in futures if f.exception() is not None]
        if errors:
            first = errors[0]
            if isinstance(first, IngestionError):
                raise first
            raise TransferFailed(f"Upload failed: {first}") from first

    def _transfer(self, transfer: _Transfer) -> None:
        self._check_cancel()
        cred = transfer.credential
        if self.uc.clock() >= cred.expires_at:
            raise CredentialExpired(f"Upload credential for the {transfer.variant} photo expired; please retry")
        try:
            self.uc.storage.put(
                cred,
                transfer.image.data,
                transfer.image.mime_type,
                on_progress=lambda sent, _total: self._on_bytes(transfer.variant, sent),
                should_abort=self._cancelled,
            )
        except IngestionError:
            raise
        except TransferAborted as exc:
            raise IngestionCancelled("Upload cancelled") from exc
        except Exception as exc:
            raise TransferFailed(f"Failed to upload {transfer.variant} photo: {exc}") from exc
        with self._written_lock:
            self.written.append(cred.path)

    def _on_bytes(self, variant: str, sent: int) -> None:
        with self._written_lock:
            self._sent[variant] = sent
            done = sum(self._sent.values())
        fraction = done / self._total_bytes if self._total_bytes else 1.0
        self.progress.report(PREPARED + (TRANSFERRED - PREPARED) * fraction)

    def _record(self, plan: UploadPlan, processed: ProcessedImage, comment: str | None) -> PhotoRecord:
        original = processed.original
        display = processed.display or original
        return PhotoRecord(
            id=plan.photo_id,
            party_id=plan.party_id,
            uploader_id=plan.uploader_id,
            original_path=plan.original_path,
            display_path=plan.display_path or plan.original_path,
            original_mime=original.mime_type,
            display_mime=display.mime_type,
            original_bytes=original.size,
            display_bytes=display.size,
            comment=comment,
        )

    def _fail(self, error: IngestionError, cause: BaseException | None = None) -> NoReturn:
        if self.written:
            self._enter(IngestState.COMPENSATING)
            self._compensate()
        self._enter(IngestState.FAILED)
        self.logger.warning(
            "ingest.failed",
            photo_id=self.photo_id,
            kind=error.kind,
            reason=error.message,
            retryable=error.retryable,
        )
        if cause is not None:
            raise error from cause
        raise error

    def _compensate(self) -> None:
        if compensate(self.uc.storage, self.logger, self.photo_id, list(self.written)):
            self.written.clear()


def compensate(storage: SupabaseStorage, logger: LogSink, photo_id: str | None, paths: list[str]) -> bool:
    """Best-effort delete of objects written for ``photo_id``; True when all are gone."""
    if not paths:
        return True
    try:
        storage.delete(paths)
    except Exception as exc:
        # Left for the orphan sweep; the primary failure is what the caller sees.
        logger.error(
            "ingest.compensation_failed",
            photo_id=photo_id,
            paths=getattr(exc, "failed_paths", None) or paths,
            error=str(exc),
        )
        return False
    logger.info("ingest.compensated", photo_id=photo_id, paths=paths)
    return True
