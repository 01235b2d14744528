from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Callable

from src.config import UploadSettings
from src.domain.entities.photo import party_folders
from src.infrastructure.database.repositories.photo_repository import PhotoRepository
from src.infrastructure.logging import LogSink, get_logger
from src.infrastructure.storage.supabase_storage import SupabaseStorage


@dataclass
class SweepResult:
    party_id: str
    orphans: list[str]
    deleted: list[str]
    dry_run: bool


@dataclass
class SweepOrphansUseCase:
    """Delete storage objects of a party that no photo row references.

    Picks up what failed compensation left behind. Objects younger than the
    grace period are skipped so in-flight ingestions are never touched.
    """

    storage: SupabaseStorage
    photos: PhotoRepository
    settings: UploadSettings = field(default_factory=UploadSettings)
    logger: LogSink = field(default_factory=lambda: get_logger(__name__))
    clock: Callable[[], datetime] = lambda: datetime.now(UTC)

    def execute(self, party_id: str, dry_run: bool = False) -> SweepResult:
        referenced = self.photos.list_paths_by_party(party_id)
        cutoff = self.clock() - timedelta(seconds=self.settings.orphan_grace_seconds)
        orphans = [
            obj.path
            for folder in party_folders(party_id)
            for obj in self.storage.list(folder)
            if obj.path not in referenced and obj.created_at is not None and obj.created_at <= cutoff
        ]
        deleted: list[str] = []
        if orphans and not dry_run:
            self.storage.delete(orphans)
            deleted = orphans
        self.logger.info(
            "orphans.swept", party_id=party_id, orphans=len(orphans), deleted=len(deleted), dry_run=dry_run
        )
        return SweepResult(party_id=party_id, orphans=orphans, deleted=deleted, dry_run=dry_run)
