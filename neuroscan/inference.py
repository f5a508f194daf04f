import logging
import threading

import numpy as np
from PIL import Image

from neuroscan.mock_results import MockResultGenerator
from neuroscan.outcomes import (
    AnalysisResult,
    InferenceError,
    InferenceFailure,
    InferenceSuccess,
    LoadFailed,
    Loaded,
    MockActive,
    MockFallback,
    ModelLoadError,
)
from neuroscan.preprocessing import ImagePreprocessor, image_dimensions
from neuroscan.segmentation import colorize, is_tumor, label_for_index
from neuroscan.tensors import TensorScope

logger = logging.getLogger(__name__)

# Outputs within this tolerance of summing to 1 are already probabilities.
_PROBABILITY_TOLERANCE = 1e-3


def softmax(logits, axis=-1):
    shifted = logits - np.max(logits, axis=axis, keepdims=True)
    exp = np.exp(shifted)
    return exp / np.sum(exp, axis=axis, keepdims=True)


def is_probability_vector(values):
    values = np.asarray(values)
    if np.any(values < 0) or np.any(values > 1):
        return False
    return bool(np.all(np.abs(np.sum(values, axis=-1) - 1.0) < _PROBABILITY_TOLERANCE))


def classify(logits, scope):
    """
    Turn classification logits into (label, confidence).
    Spatial logits (1, H, W, C) are averaged down to (1, C) first.
    """
    logits = scope.track(np.asarray(logits, dtype=np.float32))
    if logits.ndim == 1:
        logits = scope.track(logits[np.newaxis, :])
    elif logits.ndim > 2:
        logits = scope.track(logits.reshape(logits.shape[0], -1, logits.shape[-1]).mean(axis=1))

    if is_probability_vector(logits):
        probs = logits
    else:
        probs = scope.track(softmax(logits, axis=-1))

    if not np.isfinite(probs).all():
        raise InferenceError("Model produced non-finite class scores")

    idx = int(np.argmax(probs[0]))
    confidence = float(np.clip(round(float(probs[0, idx]) * 100, 1), 0.0, 100.0))
    return label_for_index(idx), confidence


def segment(logits, scope, size=None):
    """Per-pixel arg-max over the class axis, colorized; None if the logits have no spatial dims."""
    logits = np.asarray(logits)
    if logits.ndim < 3:
        return None
    class_map = scope.track(np.argmax(logits, axis=-1))
    if class_map.ndim == 3:
        class_map = class_map[0]
    if class_map.ndim != 2:
        return None
    mask = colorize(class_map)
    if size is not None and mask.size != tuple(size):
        mask = mask.resize(tuple(size), Image.NEAREST)
    return mask


class InferenceOrchestrator:
    """Produces an AnalysisResult for every image, falling back to mock results on any failure."""

    def __init__(self, manager, preprocessor=None, mock_generator=None):
        self.manager = manager
        self.ledger = manager.ledger
        self.preprocessor = preprocessor or ImagePreprocessor(
            size=manager.settings.image_size,
            normalization=manager.settings.normalization,
            ledger=self.ledger,
        )
        self.mock_generator = mock_generator or MockResultGenerator()
        self._predict_lock = threading.Lock()

    def infer(self, image):
        outcome = self.run(image)
        if isinstance(outcome, InferenceSuccess):
            return outcome.result
        if isinstance(outcome, InferenceFailure):
            self.manager.fall_back(outcome.error)
        return self.mock_generator.mock_for(image)

    def run(self, image):
        if self.manager.is_mock_mode():
            return MockFallback()

        load = self.manager.ensure_loaded()
        if isinstance(load, MockActive):
            return MockFallback()
        if isinstance(load, LoadFailed):
            return InferenceFailure(load.error)
        if not isinstance(load, Loaded):
            return InferenceFailure(ModelLoadError(f"Unexpected load outcome {load!r}"))

        # one forward pass at a time
        with self._predict_lock, TensorScope(self.ledger) as scope:
            try:
                result = self._predict(image, scope)
            except InferenceError as e:
                logger.error("Model inference error: %s", e)
                return InferenceFailure(e)
            except Exception as e:
                logger.exception("Model inference error")
                return InferenceFailure(InferenceError(str(e)))
        return InferenceSuccess(result)

    def _predict(self, image, scope):
        batch = scope.track(self.preprocessor.preprocess(image))
        output = self.manager.forward(batch)
        seg_logits = scope.track(output.segmentation_logits)
        cls_logits = scope.track(output.classification_logits)

        prediction, confidence = classify(cls_logits, scope)

        segmentation = None
        if is_tumor(prediction):
            segmentation = segment(seg_logits, scope, size=image_dimensions(image))

        return AnalysisResult(prediction=prediction, confidence=confidence, segmentation=segmentation)
