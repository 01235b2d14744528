from __future__ import annotations

import mimetypes
from io import BytesIO

import pillow_heif
from PIL import Image, UnidentifiedImageError

from src.config import ImageSettings
from src.domain.entities.photo import JPEG_EXT, JPEG_MIME, InputImage, NormalizedImage
from src.domain.errors import UnsupportedFormat

# Registers the HEIF/HEIC opener with Pillow
pillow_heif.register_heif_opener()

CONTAINER_MIME_TYPES = frozenset({"image/heic", "image/heif", "image/heic-sequence", "image/heif-sequence"})
CONTAINER_EXTENSIONS = frozenset({".heic", ".heif"})

# Raster types the encoder can read as-is, mapped to the stored extension
RASTER_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/pjpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


def _suffix(filename: str | None) -> str:
    name = (filename or "").lower()
    return "." + name.rsplit(".", 1)[-1] if "." in name else ""


def _declared_mime(image: InputImage) -> str:
    mime = (image.mime_type or "").split(";")[0].strip().lower()
    if mime and mime != "application/octet-stream":
        return mime
    guessed, _ = mimetypes.guess_type(image.filename or "")
    return (guessed or "").lower()


def is_container(image: InputImage) -> bool:
    """MIME first, then the filename suffix (some browsers report HEIC as octet-stream)."""
    if _declared_mime(image) in CONTAINER_MIME_TYPES:
        return True
    return _suffix(image.filename) in CONTAINER_EXTENSIONS


class FormatNormalizer:
    """Guarantees the bytes handed downstream are encodable; never resizes."""

    def __init__(self, settings: ImageSettings | None = None) -> None:
        self.settings = settings or ImageSettings()

    def normalize(self, image: InputImage) -> NormalizedImage:
        if is_container(image):
            return NormalizedImage(
                data=self._container_to_jpeg(image.data),
                mime_type=JPEG_MIME,
                ext=JPEG_EXT,
                converted=True,
            )
        mime = _declared_mime(image)
        ext = RASTER_EXTENSIONS.get(mime)
        if ext is None:
            raise UnsupportedFormat(
                f"Unsupported image type {mime or 'unknown'!r}; "
                f"accepted: JPEG, PNG, WebP, GIF, HEIC/HEIF"
            )
        if mime in ("image/jpg", "image/pjpeg"):
            mime = JPEG_MIME
        return NormalizedImage(data=image.data, mime_type=mime, ext=ext)

    def _container_to_jpeg(self, data: bytes) -> bytes:
        try:
            img = Image.open(BytesIO(data))
            img.seek(0)  # multi-image containers degrade to the primary frame
            img.load()
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise UnsupportedFormat(f"Cannot decode HEIC/HEIF image: {exc}") from exc
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        buf = BytesIO()
        exif = img.info.get("exif")
        kwargs = {"exif": exif} if exif else {}
        img.save(buf, format="JPEG", quality=self.settings.conversion_quality, **kwargs)
        return buf.getvalue()
