"""Result records, outcome values and the error taxonomy.

Load and inference failures are returned as outcome values rather than
raised, so callers decide what to do next by matching on the type.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Union

import numpy as np
from PIL import Image


# ----------------------------
# Errors
# ----------------------------
class NeuroScanError(Exception):
    pass


class ConfigurationError(NeuroScanError):
    pass


class ModelLoadError(NeuroScanError):
    """Remote fetch, format parse or warm-up failure."""


class InferenceError(NeuroScanError):
    """Preprocessing or forward-pass failure for a single image."""


class DecodeError(NeuroScanError):
    """Uploaded file could not be decoded into a raster image."""


class PersistenceError(NeuroScanError):
    """Session storage could not be written or read."""


# ----------------------------
# Records
# ----------------------------
@dataclass(frozen=True)
class UploadedImage:
    """Reference to the original uploaded bytes."""

    name: str
    data: bytes = field(repr=False)
    content_type: str = "application/octet-stream"

    @property
    def size(self):
        return len(self.data)

    def metadata(self):
        return {"name": self.name, "size": self.size, "type": self.content_type}


@dataclass(frozen=True)
class AnalysisResult:
    prediction: str
    confidence: float
    segmentation: Optional[Image.Image] = None
    is_mock: bool = False
    source: Optional[UploadedImage] = None

    def with_source(self, source):
        return replace(self, source=source)


# ----------------------------
# Model output variants
# ----------------------------
@dataclass(frozen=True)
class SingleOutput:
    """One tensor used for both classification and segmentation."""

    tensor: np.ndarray

    @property
    def classification_logits(self):
        return self.tensor

    @property
    def segmentation_logits(self):
        return self.tensor


@dataclass(frozen=True)
class DualOutput:
    segmentation_logits: np.ndarray
    classification_logits: np.ndarray


ModelOutput = Union[SingleOutput, DualOutput]


# ----------------------------
# Load outcomes
# ----------------------------
@dataclass(frozen=True)
class Loaded:
    output_kind: str


@dataclass(frozen=True)
class LoadBusy:
    pass


@dataclass(frozen=True)
class LoadFailed:
    error: ModelLoadError


@dataclass(frozen=True)
class MockActive:
    pass


LoadOutcome = Union[Loaded, LoadBusy, LoadFailed, MockActive]


# ----------------------------
# Inference outcomes
# ----------------------------
@dataclass(frozen=True)
class InferenceSuccess:
    result: AnalysisResult


@dataclass(frozen=True)
class InferenceFailure:
    error: Union[InferenceError, ModelLoadError]


@dataclass(frozen=True)
class MockFallback:
    pass


InferenceOutcome = Union[InferenceSuccess, InferenceFailure, MockFallback]
