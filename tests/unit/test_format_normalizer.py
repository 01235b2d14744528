import io

import pytest
from PIL import Image

from src.domain.entities.photo import InputImage
from src.domain.errors import UnsupportedFormat
from src.domain.services.format_normalizer import FormatNormalizer, is_container


@pytest.fixture()
def heic_bytes(make_image):
    # the HEIF opener/saver is registered when format_normalizer is imported
    img = Image.open(io.BytesIO(make_image(600, 400, fmt="PNG")))
    buf = io.BytesIO()
    img.save(buf, format="HEIF", quality=90)
    return buf.getvalue()


def test_standard_raster_passes_through_without_copy(make_image):
    data = make_image(64, 48)
    out = FormatNormalizer().normalize(InputImage(data, "image/jpeg", "photo.jpg"))
    assert out.data is data
    assert (out.mime_type, out.ext, out.converted) == ("image/jpeg", "jpg", False)


@pytest.mark.parametrize(
    "mime, filename, expected",
    [
        ("image/png", "a.png", ("image/png", "png")),
        ("image/webp", "a.webp", ("image/webp", "webp")),
        ("image/jpg", "a.jpg", ("image/jpeg", "jpg")),
        ("application/octet-stream", "a.png", ("image/png", "png")),
        ("", "a.jpeg", ("image/jpeg", "jpg")),
    ],
)
def test_declared_type_resolution(make_image, mime, filename, expected):
    out = FormatNormalizer().normalize(InputImage(make_image(8, 8), mime, filename))
    assert (out.mime_type, out.ext) == expected


def test_unsupported_type_is_rejected():
    with pytest.raises(UnsupportedFormat) as info:
        FormatNormalizer().normalize(InputImage(b"%PDF-1.4", "application/pdf", "doc.pdf"))
    assert info.value.kind == "unsupported_format"
    assert "application/pdf" in info.value.message


def test_container_detection_falls_back_to_suffix():
    assert is_container(InputImage(b"", "image/heic", "x"))
    assert is_container(InputImage(b"", "application/octet-stream", "IMG_0001.HEIC"))
    assert not is_container(InputImage(b"", "image/jpeg", "IMG_0001.jpg"))


def test_heic_is_converted_to_jpeg(heic_bytes):
    out = FormatNormalizer().normalize(InputImage(heic_bytes, "image/heic", "IMG_0001.HEIC"))
    assert out.converted is True
    assert (out.mime_type, out.ext) == ("image/jpeg", "jpg")
    assert out.data[:2] == b"\xff\xd8"
    assert Image.open(io.BytesIO(out.data)).size == (600, 400)


def test_heic_detected_by_suffix_only(heic_bytes):
    out = FormatNormalizer().normalize(InputImage(heic_bytes, "application/octet-stream", "IMG_0002.heif"))
    assert out.mime_type == "image/jpeg"


def test_corrupt_container_is_unsupported():
    with pytest.raises(UnsupportedFormat):
        FormatNormalizer().normalize(InputImage(b"\x00" * 64, "image/heic", "broken.heic"))
