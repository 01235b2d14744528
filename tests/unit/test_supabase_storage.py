from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest

from src.domain.errors import CredentialExpired
from src.infrastructure.storage.supabase_storage import CHUNK_SIZE, StorageError, TransferAborted


def test_put_writes_object_and_reports_progress(storage):
    cred = storage.issue_write_credential("parties/p/original/a.jpg", 300)
    seen = []
    data = b"x" * (CHUNK_SIZE * 2 + 10)

    storage.put(cred, data, "image/jpeg", on_progress=lambda sent, total: seen.append((sent, total)))

    assert storage.stat("parties/p/original/a.jpg").size == len(data)
    assert (storage.local_dir / "parties/p/original/a.jpg").read_bytes() == data
    assert seen[-1] == (len(data), len(data))
    assert [s for s, _ in seen] == sorted(s for s, _ in seen)


def test_credentials_are_single_use_and_never_overwrite(storage):
    cred = storage.issue_write_credential("parties/p/original/a.jpg", 300)
    storage.put(cred, b"first", "image/jpeg")

    with pytest.raises(StorageError):
        storage.put(cred, b"second", "image/jpeg")
    again = storage.issue_write_credential("parties/p/original/a.jpg", 300)
    with pytest.raises(StorageError):
        storage.put(again, b"second", "image/jpeg")
    assert (storage.local_dir / "parties/p/original/a.jpg").read_bytes() == b"first"


def test_expired_credential_is_rejected(storage):
    cred = storage.issue_write_credential("parties/p/original/a.jpg", 300)
    expired = replace(cred, expires_at=datetime.now(UTC) - timedelta(seconds=1))
    with pytest.raises(CredentialExpired) as info:
        storage.put(expired, b"data", "image/jpeg")
    assert info.value.retryable is True
    assert storage.stat("parties/p/original/a.jpg") is None


def test_aborted_put_leaves_nothing_behind(storage):
    cred = storage.issue_write_credential("parties/p/original/a.jpg", 300)
    calls = []

    def should_abort():
        calls.append(1)
        return len(calls) > 1

    with pytest.raises(TransferAborted):
        storage.put(cred, b"x" * (CHUNK_SIZE * 3), "image/jpeg", should_abort=should_abort)

    assert storage.list("parties/p/original") == []
    assert list((storage.local_dir / "parties/p/original").iterdir()) == []


def test_delete_ignores_missing_objects(storage):
    cred = storage.issue_write_credential("parties/p/display/a.jpg", 300)
    storage.put(cred, b"data", "image/jpeg")

    storage.delete(["parties/p/display/a.jpg", "parties/p/display/missing.jpg"])

    assert storage.list("parties/p/display") == []


def test_expired_local_tokens_are_pruned(storage):
    from src.infrastructure.storage import supabase_storage

    stale = storage.issue_write_credential("parties/p/original/abandoned.jpg", 0)
    fresh = storage.issue_write_credential("parties/p/original/b.jpg", 300)

    assert stale.token not in supabase_storage._LOCAL_TOKENS
    assert fresh.token in supabase_storage._LOCAL_TOKENS


def test_local_credential_lookup(storage):
    cred = storage.issue_write_credential("parties/p/original/a.jpg", 300)

    assert storage.local_credential("parties/p/original/a.jpg", cred.token) == cred
    assert storage.local_credential("parties/p/original/other.jpg", cred.token) is None
    assert storage.local_credential("parties/p/original/a.jpg", "bogus") is None

    storage.put(cred, b"data", "image/jpeg")
    assert storage.local_credential("parties/p/original/a.jpg", cred.token) is None
