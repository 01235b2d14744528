from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from src.domain.entities.variant import VariantDecision

JPEG_MIME = "image/jpeg"
JPEG_EXT = "jpg"

# extensions an original may be stored under, with their MIME type
STORED_MIME_TYPES = {
    JPEG_EXT: JPEG_MIME,
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
}


@dataclass(frozen=True)
class InputImage:
    data: bytes
    mime_type: str  # as declared by the uploader, may be empty
    filename: str | None = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class NormalizedImage:
    data: bytes  # aliases InputImage.data when no conversion was needed
    mime_type: str
    ext: str
    converted: bool = False

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class EncodedImage:
    data: bytes
    mime_type: str
    ext: str
    width: int
    height: int

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ProcessedImage:
    original: EncodedImage
    display: EncodedImage | None
    decision: VariantDecision

    def __post_init__(self) -> None:
        if (self.display is None) != self.use_original_for_display:
            raise ValueError("display variant must be present iff decision.create is true")

    @property
    def use_original_for_display(self) -> bool:
        return not self.decision.create


@dataclass(frozen=True)
class WriteCredential:
    path: str
    token: str
    signed_url: str
    expires_at: datetime


@dataclass(frozen=True)
class UploadPlan:
    photo_id: str
    party_id: str
    uploader_id: str
    original_path: str
    original: WriteCredential
    display_path: str | None  # None when the original doubles as display
    display: WriteCredential | None
    expires_at: datetime


@dataclass(frozen=True)
class PhotoRecord:
    id: str
    party_id: str
    uploader_id: str
    original_path: str
    display_path: str  # equals original_path when no separate variant exists
    original_mime: str
    display_mime: str
    original_bytes: int
    display_bytes: int
    comment: str | None = None
    created_at: datetime | None = None  # assigned by the metadata store

    @property
    def use_original_for_display(self) -> bool:
        return self.display_path == self.original_path


def original_path(party_id: str, photo_id: str, ext: str) -> str:
    return f"parties/{party_id}/original/{photo_id}.{ext.lower().lstrip('.')}"


def display_path(party_id: str, photo_id: str) -> str:
    return f"parties/{party_id}/display/{photo_id}.{JPEG_EXT}"


def party_folders(party_id: str) -> list[str]:
    return [f"parties/{party_id}/original", f"parties/{party_id}/display"]
