from __future__ import annotations

import os
from dataclasses import dataclass

KIB = 1024
MIB = 1024 * 1024


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


def _env_levels(name: str, default: tuple[tuple[int, int], ...]) -> tuple[tuple[int, int], ...]:
    """Parse `size:quality` pairs, e.g. `4096:90,3072:85,2048:80`."""
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    levels = []
    for item in raw.split(","):
        size, _, quality = item.strip().partition(":")
        levels.append((int(size), int(quality)))
    return tuple(levels)


@dataclass(frozen=True)
class ImageSettings:
    """Size, quality and heuristic constants for the ingestion pipeline.

    Qualities are Pillow JPEG qualities (1-95).
    """

    display_max_width: int = 1920
    display_max_height: int = 1080
    display_quality: int = 80
    original_quality: int = 90
    conversion_quality: int = 92
    original_max_dimension: int = 4096
    original_max_bytes: int = 3 * MIB
    original_absolute_max_bytes: int = 25 * MIB
    # (long edge, quality) steps tried when recompression alone is not enough
    resize_levels: tuple[tuple[int, int], ...] = ((4096, 90), (3072, 85), (2048, 80))
    # Variant planner
    display_sized_max_bytes: int = int(1.5 * MIB)
    recompression_estimate_ratio: float = 0.6
    min_recompression_gain: float = 0.2
    minor_reduction_ratio: float = 0.2
    minor_reduction_max_bytes: int = 2 * MIB
    savings_factor: float = 0.8
    min_display_savings_bytes: int = 300 * KIB

    @classmethod
    def from_env(cls) -> ImageSettings:
        d = cls()
        return cls(
            display_max_width=_env_int("DISPLAY_MAX_WIDTH", d.display_max_width),
            display_max_height=_env_int("DISPLAY_MAX_HEIGHT", d.display_max_height),
            display_quality=_env_int("DISPLAY_QUALITY", d.display_quality),
            original_quality=_env_int("ORIGINAL_QUALITY", d.original_quality),
            conversion_quality=_env_int("CONVERSION_QUALITY", d.conversion_quality),
            original_max_dimension=_env_int("ORIGINAL_MAX_DIMENSION", d.original_max_dimension),
            original_max_bytes=_env_int("ORIGINAL_MAX_BYTES", d.original_max_bytes),
            original_absolute_max_bytes=_env_int(
                "ORIGINAL_ABSOLUTE_MAX_BYTES", d.original_absolute_max_bytes
            ),
            resize_levels=_env_levels("ORIGINAL_RESIZE_LEVELS", d.resize_levels),
            display_sized_max_bytes=_env_int("DISPLAY_SIZED_MAX_BYTES", d.display_sized_max_bytes),
            recompression_estimate_ratio=_env_float(
                "RECOMPRESSION_ESTIMATE_RATIO", d.recompression_estimate_ratio
            ),
            min_recompression_gain=_env_float("MIN_RECOMPRESSION_GAIN", d.min_recompression_gain),
            minor_reduction_ratio=_env_float("MINOR_REDUCTION_RATIO", d.minor_reduction_ratio),
            minor_reduction_max_bytes=_env_int(
                "MINOR_REDUCTION_MAX_BYTES", d.minor_reduction_max_bytes
            ),
            savings_factor=_env_float("SAVINGS_FACTOR", d.savings_factor),
            min_display_savings_bytes=_env_int(
                "MIN_DISPLAY_SAVINGS_BYTES", d.min_display_savings_bytes
            ),
        )


@dataclass(frozen=True)
class UploadSettings:
    credential_ttl_seconds: int = 300
    parallel_transfers: bool = False
    orphan_grace_seconds: int = 600

    @classmethod
    def from_env(cls) -> UploadSettings:
        d = cls()
        return cls(
            credential_ttl_seconds=_env_int(
                "UPLOAD_CREDENTIAL_TTL_SECONDS", d.credential_ttl_seconds
            ),
            parallel_transfers=os.getenv("UPLOAD_PARALLEL_TRANSFERS", "0") == "1",
            orphan_grace_seconds=_env_int("ORPHAN_GRACE_SECONDS", d.orphan_grace_seconds),
        )
