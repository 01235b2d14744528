"""Error taxonomy for photo ingestion.

Every failure carries a machine-checkable ``kind`` and a human-readable
message. ``retryable`` errors are safe to retry by calling ``ingest`` again:
each attempt allocates a fresh photo id, so retries never collide with the
objects of a failed attempt.
"""
from __future__ import annotations


class IngestionError(Exception):
    kind = "ingestion_error"
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "kind": self.kind, "retryable": self.retryable}


# Input errors
class UnsupportedFormat(IngestionError):
    kind = "unsupported_format"


class ImageTooLarge(IngestionError):
    kind = "image_too_large"

    def __init__(self, size: int, limit: int, message: str | None = None) -> None:
        super().__init__(
            message
            or f"Image is {size} bytes after processing, limit is {limit} bytes; "
            "please upload a smaller photo"
        )
        self.size = size
        self.limit = limit


# Authorization errors
class NotAuthenticated(IngestionError):
    kind = "not_authenticated"


class PartyNotAccepting(IngestionError):
    kind = "party_not_accepting"


# Transient transport errors
class UploadPrepFailed(IngestionError):
    kind = "upload_prep_failed"
    retryable = True


class TransferFailed(IngestionError):
    kind = "transfer_failed"
    retryable = True


class CredentialExpired(IngestionError):
    kind = "credential_expired"
    retryable = True


# Commit errors
class SaveFailed(IngestionError):
    kind = "save_failed"


class IngestionCancelled(IngestionError):
    kind = "cancelled"
