from __future__ import annotations

import os
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Callable

from supabase import Client

from src.domain.entities.photo import WriteCredential
from src.domain.errors import CredentialExpired

CHUNK_SIZE = 256 * 1024

# upload credentials issued in local mode by token; consumed on first put, pruned once expired
_LOCAL_TOKENS: dict[str, WriteCredential] = {}


def _prune_expired_tokens(now: datetime) -> None:
    for token, credential in list(_LOCAL_TOKENS.items()):
        if credential.expires_at <= now:
            del _LOCAL_TOKENS[token]


class StorageError(RuntimeError):
    def __init__(self, message: str, failed_paths: list[str] | None = None) -> None:
        super().__init__(message)
        self.failed_paths = failed_paths or []


class TransferAborted(Exception):
    """The caller asked to stop before the object was committed."""


@dataclass(frozen=True)
class StoredObject:
    path: str
    created_at: datetime | None
    size: int | None = None


class SupabaseStorage:
    """Storage adapter for Supabase Storage with a local fake fallback.

    Writes go through single-use signed upload credentials and never
    overwrite an existing object. In local mode an object only becomes
    visible once all of its bytes are on disk.
    """

    def __init__(self, client: Client | None, local_dir: Path | None = None) -> None:
        self.client = client
        self.bucket = os.getenv("SUPABASE_STORAGE_BUCKET", "photobooze-images")
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.local_dir = local_dir or Path(os.getenv("SUPABASE_STORAGE_LOCAL_DIR", ".local_storage"))
        if self.local_mode:
            self.local_dir.mkdir(parents=True, exist_ok=True)

    @property
    def local_mode(self) -> bool:
        return self.disabled or self.client is None

    def _bucket(self):
        return self.client.storage.from_(self.bucket)  # type: ignore[union-attr]

    def issue_write_credential(self, path: str, ttl_seconds: int) -> WriteCredential:
        expires_at = datetime.now(UTC) + timedelta(seconds=ttl_seconds)
        if self.local_mode:
            _prune_expired_tokens(datetime.now(UTC))
            token = uuid.uuid4().hex
            credential = WriteCredential(
                path=path, token=token, signed_url=f"/local-storage/{path}?token={token}", expires_at=expires_at
            )
            _LOCAL_TOKENS[token] = credential
            return credential
        try:  # pragma: no cover - network
            res = self._bucket().create_signed_upload_url(path)
            return WriteCredential(
                path=path,
                token=res["token"],
                signed_url=res.get("signed_url") or res.get("signedUrl", ""),
                expires_at=expires_at,
            )
        except Exception as exc:  # pragma: no cover
            raise StorageError(f"Signed upload URL failed for {path}: {exc}") from exc

    def put(
        self,
        credential: WriteCredential,
        data: bytes,
        content_type: str,
        on_progress: Callable[[int, int], None] | None = None,
        should_abort: Callable[[], bool] | None = None,
    ) -> None:
        """Write ``data`` to ``credential.path``; reports (bytes_sent, total)."""
        if datetime.now(UTC) >= credential.expires_at:
            raise CredentialExpired(f"Upload credential for {credential.path} has expired")
        total = len(data)
        if self.local_mode:
            self._put_local(credential, data, on_progress, should_abort)
            return
        if should_abort and should_abort():
            raise TransferAborted(credential.path)
        try:  # pragma: no cover - network
            self._bucket().upload_to_signed_url(
                credential.path,
                credential.token,
                data,
                {"content-type": content_type},
            )
        except Exception as exc:  # pragma: no cover
            raise StorageError(f"Storage upload failed for {credential.path}: {exc}") from exc
        if on_progress:
            on_progress(total, total)

    def _put_local(
        self,
        credential: WriteCredential,
        data: bytes,
        on_progress: Callable[[int, int], None] | None,
        should_abort: Callable[[], bool] | None,
    ) -> None:
        issued = _LOCAL_TOKENS.get(credential.token)
        if issued is None or issued.path != credential.path:
            raise StorageError(f"Invalid upload token for {credential.path}")
        target = self.local_dir / credential.path
        if target.exists():
            raise StorageError(f"Object already exists: {credential.path}")
        target.parent.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(f".{target.name}.part")
        total = len(data)
        try:
            with partial.open("wb") as fh:
                for start in range(0, total, CHUNK_SIZE):
                    if should_abort and should_abort():
                        raise TransferAborted(credential.path)
                    fh.write(data[start : start + CHUNK_SIZE])
                    if on_progress:
                        on_progress(min(start + CHUNK_SIZE, total), total)
            os.replace(partial, target)
        except OSError as exc:
            raise StorageError(f"Storage upload failed for {credential.path}: {exc}") from exc
        finally:
            partial.unlink(missing_ok=True)
        _LOCAL_TOKENS.pop(credential.token, None)
        if total == 0 and on_progress:
            on_progress(0, 0)

    def delete(self, paths: list[str]) -> None:
        """Delete objects; missing ones count as deleted. Raises listing what failed."""
        if not paths:
            return
        if self.local_mode:
            failed = []
            for path in paths:
                try:
                    (self.local_dir / path).unlink(missing_ok=True)
                except OSError:
                    failed.append(path)
            if failed:
                raise StorageError(f"Storage delete failed for {failed}", failed_paths=failed)
            return
        try:  # pragma: no cover - network
            self._bucket().remove(paths)
        except Exception as exc:  # pragma: no cover
            raise StorageError(f"Storage delete failed: {exc}", failed_paths=list(paths)) from exc

    def list(self, folder: str) -> list[StoredObject]:
        """Objects directly inside ``folder`` (no recursion)."""
        folder = folder.rstrip("/")
        if self.local_mode:
            base = self.local_dir / folder
            if not base.is_dir():
                return []
            return [
                StoredObject(
                    path=f"{folder}/{entry.name}",
                    created_at=datetime.fromtimestamp(entry.stat().st_mtime, UTC),
                    size=entry.stat().st_size,
                )
                for entry in sorted(base.iterdir())
                if entry.is_file() and not entry.name.startswith(".")
            ]
        try:  # pragma: no cover - network
            items = self._bucket().list(folder, {"limit": 1000})
        except Exception as exc:  # pragma: no cover
            raise StorageError(f"Storage list failed for {folder}: {exc}") from exc
        objects = []
        for item in items or []:  # pragma: no cover - network
            if item.get("id") is None:
                continue  # sub-folder placeholder
            created = item.get("created_at")
            metadata = item.get("metadata") or {}
            objects.append(
                StoredObject(
                    path=f"{folder}/{item['name']}",
                    created_at=datetime.fromisoformat(created.replace("Z", "+00:00")) if created else None,
                    size=metadata.get("size"),
                )
            )
        return objects

    def stat(self, path: str) -> StoredObject | None:
        folder, _, name = path.rpartition("/")
        if not name:
            return None
        return next((obj for obj in self.list(folder) if obj.path == path), None)

    def local_credential(self, path: str, token: str) -> WriteCredential | None:
        """Credential a local-mode signed URL stands for, if still outstanding."""
        if not self.local_mode:
            return None
        issued = _LOCAL_TOKENS.get(token)
        if issued is None or issued.path != path:
            return None
        return issued
