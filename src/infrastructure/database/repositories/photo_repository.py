from __future__ import annotations

import os
from dataclasses import asdict, replace
from datetime import UTC, datetime

from supabase import Client

from src.domain.entities.photo import PhotoRecord
from src.infrastructure.database.postgres_client import get_postgres_client

# module-level in-memory store for disabled mode
_MEM_PHOTOS: dict[str, PhotoRecord] = {}

_COLUMNS = (
    "id",
    "party_id",
    "uploader_id",
    "original_path",
    "display_path",
    "original_mime",
    "display_mime",
    "original_bytes",
    "display_bytes",
    "comment",
)


class PhotoRepository:
    """Metadata store for photo rows. A single insert is atomic."""

    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.use_local_db = os.getenv("USE_LOCAL_DB", "0") == "1"
        self.pg_client = get_postgres_client() if self.use_local_db else None

    def _row_to_entity(self, row: dict) -> PhotoRecord:
        # PostgreSQL returns datetime objects, Supabase returns ISO strings
        created_at = row.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return PhotoRecord(
            id=str(row["id"]),
            party_id=str(row["party_id"]),
            uploader_id=str(row["uploader_id"]),
            original_path=row["original_path"],
            display_path=row["display_path"],
            original_mime=row.get("original_mime") or "",
            display_mime=row.get("display_mime") or "",
            original_bytes=row.get("original_bytes") or 0,
            display_bytes=row.get("display_bytes") or 0,
            comment=row.get("comment"),
            created_at=created_at,
        )

    def insert(self, record: PhotoRecord) -> PhotoRecord:
        data = {k: v for k, v in asdict(record).items() if k in _COLUMNS}

        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                columns = ", ".join(_COLUMNS)
                placeholders = ", ".join(["%s"] * len(_COLUMNS))
                row = self.pg_client.execute_insert(
                    f"INSERT INTO photos ({columns}) VALUES ({placeholders}) RETURNING *",
                    tuple(data[c] for c in _COLUMNS),
                )
                return self._row_to_entity(row)
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL insert photo failed: {exc}") from exc

        # In-memory mode
        if self.disabled or self.client is None:
            if record.id in _MEM_PHOTOS:
                raise RuntimeError(f"DB insert photo failed: duplicate id {record.id}")
            stored = replace(record, created_at=datetime.now(UTC))
            _MEM_PHOTOS[stored.id] = stored
            return stored

        # Supabase mode
        try:  # pragma: no cover - network
            res = self.client.table("photos").insert(data).execute()
            return self._row_to_entity(res.data[0])
        except Exception as exc:
            raise RuntimeError(f"DB insert photo failed: {exc}") from exc

    def get(self, photo_id: str) -> PhotoRecord | None:
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            row = self.pg_client.execute_one("SELECT * FROM photos WHERE id = %s", (photo_id,))
            return self._row_to_entity(row) if row else None

        # In-memory mode
        if self.disabled or self.client is None:
            return _MEM_PHOTOS.get(photo_id)

        # Supabase mode
        try:  # pragma: no cover - network
            res = self.client.table("photos").select("*").eq("id", photo_id).maybe_single().execute()
            return self._row_to_entity(res.data) if res and res.data else None
        except Exception:
            return None

    def list_paths_by_party(self, party_id: str) -> set[str]:
        """Every storage path referenced by the party's photo rows."""
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            rows = self.pg_client.execute_many(
                "SELECT original_path, display_path FROM photos WHERE party_id = %s", (party_id,)
            )
        # In-memory mode
        elif self.disabled or self.client is None:
            rows = [asdict(p) for p in _MEM_PHOTOS.values() if p.party_id == party_id]
        # Supabase mode
        else:
            try:  # pragma: no cover - network
                res = (
                    self.client.table("photos")
                    .select("original_path, display_path")
                    .eq("party_id", party_id)
                    .execute()
                )
                rows = res.data or []
            except Exception as exc:
                raise RuntimeError(f"DB list photo paths failed: {exc}") from exc
        paths: set[str] = set()
        for row in rows:
            paths.add(row["original_path"])
            paths.add(row["display_path"])
        return paths
