from __future__ import annotations

import warnings
from io import BytesIO

from PIL import Image, ImageOps, UnidentifiedImageError

from src.config import ImageSettings
from src.domain.entities.photo import JPEG_EXT, JPEG_MIME, EncodedImage, NormalizedImage
from src.domain.errors import ImageTooLarge, UnsupportedFormat
from src.domain.services.variant_planner import fit_within


class Encoder:
    """Resizes and recompresses normalized images to JPEG.

    The original keeps its bytes untouched when it is within both ceilings.
    Otherwise it is recompressed at unchanged dimensions first. When that is
    not enough it steps down the configured resize levels until the result
    fits the byte ceiling; only the last step is held to the absolute limit.
    """

    def __init__(self, settings: ImageSettings | None = None) -> None:
        self.settings = settings or ImageSettings()

    def open(self, image: NormalizedImage) -> Image.Image:
        """Decode and apply EXIF orientation."""
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("error", Image.DecompressionBombWarning)
                img = Image.open(BytesIO(image.data))
                img.load()
        except (Image.DecompressionBombError, Image.DecompressionBombWarning) as exc:
            raise ImageTooLarge(
                image.size,
                self.settings.original_absolute_max_bytes,
                message=f"Image has too many pixels to process: {exc}",
            ) from exc
        except (UnidentifiedImageError, OSError) as exc:
            raise UnsupportedFormat(f"Cannot decode image: {exc}") from exc
        return ImageOps.exif_transpose(img)

    @staticmethod
    def _to_jpeg(img: Image.Image, quality: int) -> bytes:
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        buf = BytesIO()
        img.save(buf, format="JPEG", quality=quality, optimize=True)
        return buf.getvalue()

    @staticmethod
    def resize_to_fit(img: Image.Image, box_width: int, box_height: int) -> Image.Image:
        w, h = fit_within(img.width, img.height, box_width, box_height)
        if (w, h) == img.size:
            return img
        return img.resize((w, h), Image.LANCZOS)

    def _encode(self, img: Image.Image, quality: int) -> EncodedImage:
        return EncodedImage(self._to_jpeg(img, quality), JPEG_MIME, JPEG_EXT, img.width, img.height)

    def resize_steps(self, max_dim: int, quality: int) -> list[tuple[int, int]]:
        """(long edge, quality) steps, largest first, tried after plain recompression."""
        steps = [(max_dim, quality)]
        for size, level_quality in sorted(self.settings.resize_levels, reverse=True):
            if size < max_dim:
                steps.append((size, min(level_quality, quality)))
        return steps

    def encode_original(
        self,
        image: NormalizedImage,
        max_dim: int | None = None,
        quality: int | None = None,
        decoded: Image.Image | None = None,
    ) -> EncodedImage:
        s = self.settings
        max_dim = max_dim or s.original_max_dimension
        quality = quality or s.original_quality
        img = decoded if decoded is not None else self.open(image)
        w, h = img.size
        dims_ok = max(w, h) <= max_dim

        if dims_ok and image.size <= s.original_max_bytes:
            return EncodedImage(image.data, image.mime_type, image.ext, w, h)

        # Recompression cannot fix the dimension ceiling, so it is only tried
        # when the dimensions already fit.
        result = None
        tried = set()
        if dims_ok:
            result = self._encode(img, quality)
            if result.size <= s.original_max_bytes:
                return result
            tried.add((w, h, quality))

        # Each step resizes from the decoded image, never from a previous step.
        for size, step_quality in self.resize_steps(max_dim, quality):
            resized = self.resize_to_fit(img, size, size)
            key = (resized.width, resized.height, step_quality)
            if key in tried:
                continue
            tried.add(key)
            result = self._encode(resized, step_quality)
            if result.size <= s.original_max_bytes:
                return result

        if result.size > s.original_absolute_max_bytes:
            raise ImageTooLarge(result.size, s.original_absolute_max_bytes)
        return result


    def encode_display(
        self, image: NormalizedImage, decoded: Image.Image | None = None
    ) -> EncodedImage:
        s = self.settings
        img = decoded if decoded is not None else self.open(image)
        resized = self.resize_to_fit(img, s.display_max_width, s.display_max_height)
        data = self._to_jpeg(resized, s.display_quality)
        return EncodedImage(data, JPEG_MIME, JPEG_EXT, resized.width, resized.height)
