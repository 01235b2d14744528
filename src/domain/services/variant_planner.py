from __future__ import annotations

from src.config import ImageSettings
from src.domain.entities.photo import NormalizedImage
from src.domain.entities.variant import Dimensions, VariantDecision, VariantReason


def fit_within(width: int, height: int, box_width: int, box_height: int) -> tuple[int, int]:
    """Scale to fit a bounding box, never upscaling; dimensions are rounded."""
    scale = min(box_width / width, box_height / height, 1.0)
    return max(1, round(width * scale)), max(1, round(height * scale))


class VariantPlanner:
    """Decides whether a separate display variant is worth storing.

    Pure and deterministic: the decision depends only on the byte size and
    dimensions passed in. The ladder is evaluated in order, first match wins.
    """

    def __init__(self, settings: ImageSettings | None = None) -> None:
        self.settings = settings or ImageSettings()

    def reduction_ratio(self, dims: Dimensions) -> float:
        s = self.settings
        w, h = fit_within(dims.width, dims.height, s.display_max_width, s.display_max_height)
        return 1.0 - (w * h) / dims.pixels

    def plan(self, image: NormalizedImage, dims: Dimensions) -> VariantDecision:
        return self.plan_for_size(image.size, dims)

    def plan_for_size(self, byte_size: int, dims: Dimensions) -> VariantDecision:
        s = self.settings
        within_bound = dims.width <= s.display_max_width and dims.height <= s.display_max_height
        ratio = self.reduction_ratio(dims)

        # 1. Already small enough
        if within_bound and byte_size <= s.display_sized_max_bytes:
            return VariantDecision(False, VariantReason.ALREADY_DISPLAY_SIZED, 0, ratio)

        # 2. Recompression alone would not reduce size by the minimum gain
        if within_bound:
            estimate = byte_size * s.recompression_estimate_ratio
            if estimate > byte_size * (1.0 - s.min_recompression_gain):
                return VariantDecision(False, VariantReason.COMPRESSION_INSUFFICIENT, 0, ratio)

        # 3. Minor downscale of an already modest file
        if ratio < s.minor_reduction_ratio and byte_size < s.minor_reduction_max_bytes:
            return VariantDecision(False, VariantReason.MINOR_REDUCTION, 0, ratio)

        # 4. expected savings = size * (ratio * factor)
        savings = int(byte_size * (ratio * s.savings_factor))
        if savings < s.min_display_savings_bytes:
            return VariantDecision(False, VariantReason.SAVINGS_TOO_SMALL, savings, ratio)

        return VariantDecision(True, VariantReason.SIGNIFICANT_SAVINGS, savings, ratio)
