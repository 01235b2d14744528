from __future__ import annotations

from src.config import ImageSettings
from src.domain.entities.photo import InputImage, ProcessedImage
from src.domain.entities.variant import Dimensions
from src.domain.errors import ImageTooLarge
from src.domain.services.encoder import Encoder
from src.domain.services.format_normalizer import FormatNormalizer
from src.domain.services.variant_planner import VariantPlanner


class ImagePipeline:
    """Normalize, plan and encode one input image. No I/O, no shared state."""

    def __init__(
        self,
        settings: ImageSettings | None = None,
        normalizer: FormatNormalizer | None = None,
        planner: VariantPlanner | None = None,
        encoder: Encoder | None = None,
    ) -> None:
        self.settings = settings or ImageSettings()
        self.normalizer = normalizer or FormatNormalizer(self.settings)
        self.planner = planner or VariantPlanner(self.settings)
        self.encoder = encoder or Encoder(self.settings)

    def process(self, file: InputImage) -> ProcessedImage:
        limit = self.settings.original_absolute_max_bytes
        if file.size > limit:
            raise ImageTooLarge(
                file.size, limit, message=f"Upload is larger than {limit} bytes; please upload a smaller photo"
            )
        normalized = self.normalizer.normalize(file)
        decoded = self.encoder.open(normalized)
        decision = self.planner.plan(normalized, Dimensions(decoded.width, decoded.height))
        original = self.encoder.encode_original(normalized, decoded=decoded)
        display = self.encoder.encode_display(normalized, decoded=decoded) if decision.create else None
        return ProcessedImage(original=original, display=display, decision=decision)
