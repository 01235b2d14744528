from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class VariantReason(str, Enum):
    ALREADY_DISPLAY_SIZED = "already_display_sized"
    COMPRESSION_INSUFFICIENT = "compression_insufficient"
    MINOR_REDUCTION = "minor_reduction"
    SAVINGS_TOO_SMALL = "savings_too_small"
    SIGNIFICANT_SAVINGS = "significant_savings"


@dataclass(frozen=True)
class Dimensions:
    width: int
    height: int

    @property
    def pixels(self) -> int:
        return self.width * self.height


@dataclass(frozen=True)
class VariantDecision:
    create: bool
    reason: VariantReason
    estimated_savings_bytes: int = 0
    resolution_reduction_ratio: float = 0.0  # share of pixels removed, 0..1
