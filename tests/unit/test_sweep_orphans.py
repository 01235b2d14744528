from datetime import UTC, datetime, timedelta

from src.application.use_cases.sweep_orphans import SweepOrphansUseCase
from src.config import UploadSettings
from src.domain.entities.photo import PhotoRecord


def _put(storage, path, data=b"data"):
    storage.put(storage.issue_write_credential(path, 300), data, "image/jpeg")


def _later(minutes):
    return lambda: datetime.now(UTC) + timedelta(minutes=minutes)


def _committed(photos, party_id, photo_id):
    path = f"parties/{party_id}/original/{photo_id}.jpg"
    photos.insert(
        PhotoRecord(
            id=photo_id,
            party_id=party_id,
            uploader_id="u",
            original_path=path,
            display_path=path,
            original_mime="image/jpeg",
            display_mime="image/jpeg",
            original_bytes=4,
            display_bytes=4,
        )
    )
    return path


def test_deletes_only_unreferenced_objects(storage, photos, logger, party_id, stored_paths):
    kept = _committed(photos, party_id, "p1")
    _put(storage, kept)
    _put(storage, f"parties/{party_id}/original/orphan.jpg")
    _put(storage, f"parties/{party_id}/display/orphan.jpg")

    sweep = SweepOrphansUseCase(storage, photos, UploadSettings(), logger, clock=_later(60))
    result = sweep.execute(party_id)

    assert sorted(result.deleted) == [
        f"parties/{party_id}/display/orphan.jpg",
        f"parties/{party_id}/original/orphan.jpg",
    ]
    assert stored_paths(party_id) == [kept]
    assert "orphans.swept" in logger.events("info")


def test_recent_objects_are_left_alone(storage, photos, logger, party_id, stored_paths):
    _put(storage, f"parties/{party_id}/original/in-flight.jpg")

    result = SweepOrphansUseCase(storage, photos, UploadSettings(orphan_grace_seconds=600), logger).execute(party_id)

    assert result.orphans == []
    assert stored_paths(party_id) == [f"parties/{party_id}/original/in-flight.jpg"]


def test_dry_run_only_lists(storage, photos, logger, party_id, stored_paths):
    orphan = f"parties/{party_id}/original/orphan.jpg"
    _put(storage, orphan)

    result = SweepOrphansUseCase(storage, photos, UploadSettings(), logger, clock=_later(60)).execute(
        party_id, dry_run=True
    )

    assert result.orphans == [orphan]
    assert result.deleted == []
    assert stored_paths(party_id) == [orphan]
