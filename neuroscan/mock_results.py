import random

from neuroscan.config import MOCK_CONFIDENCE_RANGE
from neuroscan.outcomes import AnalysisResult
from neuroscan.preprocessing import image_dimensions
from neuroscan.segmentation import TUMOR_CLASSES, circle_mask, is_tumor


class MockResultGenerator:
    """Synthetic results used whenever the real model path is unavailable."""

    def __init__(self, rng=None):
        self.rng = rng or random.Random()

    def mock(self, width, height):
        width = max(1, int(width or 1))
        height = max(1, int(height or 1))

        label = self.rng.choice(TUMOR_CLASSES)
        lo, hi = MOCK_CONFIDENCE_RANGE
        confidence = round(self.rng.uniform(lo, hi), 1)

        segmentation = circle_mask(width, height, label) if is_tumor(label) else None
        return AnalysisResult(
            prediction=label,
            confidence=confidence,
            segmentation=segmentation,
            is_mock=True,
        )

    def mock_for(self, image):
        return self.mock(*(image_dimensions(image) or (1, 1)))
