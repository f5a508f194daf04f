import logging
import threading
from enum import Enum

import numpy as np

from neuroscan.config import Settings
from neuroscan.model_formats import DEFAULT_READERS, fetch_artifact
from neuroscan.outcomes import (
    DualOutput,
    LoadBusy,
    LoadFailed,
    Loaded,
    MockActive,
    ModelLoadError,
    SingleOutput,
)
from neuroscan.tensors import TensorLedger, TensorScope

logger = logging.getLogger(__name__)

SINGLE = "single"
DUAL = "dual"


class ModelState(Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    MOCK_FALLBACK = "mock_fallback"


class ModelManager:
    """
    Owns the model handle and the mock-mode flag.

    load() never raises: any failure while fetching, parsing or warming up the
    model switches the manager to mock mode for the rest of its life.
    """

    def __init__(self, settings=None, fetcher=fetch_artifact, readers=DEFAULT_READERS, ledger=None):
        self.settings = settings or Settings()
        self.ledger = ledger or TensorLedger()
        self._fetcher = fetcher
        self._readers = list(readers)

        self._load_lock = threading.Lock()
        self._state_lock = threading.Lock()

        self._model = None
        self._output_kind = None
        self._failed = False
        self._mock_mode = bool(self.settings.mock_mode)
        self._state = ModelState.MOCK_FALLBACK if self._mock_mode else ModelState.UNLOADED
        self.last_error = None
        self.fetch_count = 0

    # ----------------------------
    # Accessors
    # ----------------------------
    @property
    def state(self):
        return self._state

    @property
    def model(self):
        return self._model

    @property
    def output_kind(self):
        return self._output_kind

    @property
    def input_shape(self):
        size = self.settings.image_size
        return (1, size, size, 3)

    def is_mock_mode(self):
        return self._mock_mode

    def set_mock_mode(self, enable):
        with self._state_lock:
            if enable:
                if not self._mock_mode:
                    logger.info("Mock mode enabled")
                self._mock_mode = True
                self._state = ModelState.MOCK_FALLBACK
                return
            if self._failed:
                logger.warning("Ignoring request to leave mock mode after a model failure")
                return
            self._mock_mode = False
            self._state = ModelState.READY if self._model is not None else ModelState.UNLOADED

    def model_info(self):
        return {
            "state": self._state.value,
            "mock_mode": self._mock_mode,
            "output_kind": self._output_kind,
            "format": getattr(self._model, "format_name", None),
            "model_url": self.settings.model_url,
            "last_error": str(self.last_error) if self.last_error else None,
        }

    # ----------------------------
    # Loading
    # ----------------------------
    def load(self):
        outcome = self.load_outcome()
        return isinstance(outcome, (Loaded, MockActive))

    def load_outcome(self):
        """Non-blocking load: returns LoadBusy if another caller is loading."""
        if self._model is not None:
            return Loaded(self._output_kind)
        if not self._load_lock.acquire(blocking=False):
            return LoadBusy()
        try:
            return self._load_locked()
        finally:
            self._load_lock.release()

    def ensure_loaded(self):
        """Blocking load: waits for an in-flight load and shares its result."""
        if self._model is not None:
            return Loaded(self._output_kind)
        with self._load_lock:
            return self._load_locked()

    def _load_locked(self):
        if self._model is not None:
            return Loaded(self._output_kind)
        if self._mock_mode:
            return MockActive()

        self._state = ModelState.LOADING
        handle = None
        try:
            logger.info("Loading brain tumor model from %s", self.settings.model_url)
            self.fetch_count += 1
            path = self._fetcher(self.settings.model_url, self.settings.cache_dir, self.settings.fetch_timeout)
            handle = self._read(path)
            kind = self._warm_up(handle)
        except Exception as e:
            error = e if isinstance(e, ModelLoadError) else ModelLoadError(f"Model load failed: {e}")
            logger.warning("Failed to load model: %s", error)
            self._close_quietly(handle)
            self._fall_back(error)
            return LoadFailed(error)

        with self._state_lock:
            self._model = handle
            self._output_kind = kind
            self._state = ModelState.READY
        logger.info("Model ready (%s format, %s output)", handle.format_name, kind)
        return Loaded(kind)

    def _read(self, path):
        errors = []
        for name, reader in self._readers:
            try:
                handle = reader(path)
                logger.info("Model loaded as %s", name)
                return handle
            except Exception as e:
                logger.info("Failed to load model as %s: %s", name, e)
                errors.append(f"{name}: {e}")
        raise ModelLoadError("Could not load model in any supported format (" + "; ".join(errors) + ")")

    def _warm_up(self, handle):
        """Run a zero tensor through the model and return its output kind."""
        with TensorScope(self.ledger) as scope:
            dummy = scope.track(np.zeros(self.input_shape, dtype=np.float32))
            outputs = [scope.track(o) for o in (handle.predict(dummy) or [])]

            if not outputs:
                raise ModelLoadError("Model warm-up returned no output")
            for out in outputs:
                if out.size == 0 or not np.all(np.isfinite(out)):
                    raise ModelLoadError("Model warm-up produced an unusable output")

            if len(outputs) == 1:
                kind = SINGLE
            elif len(outputs) == 2:
                kind = DUAL
            else:
                raise ModelLoadError(f"Unsupported model output signature ({len(outputs)} tensors)")

        logger.info("Model warm-up successful")
        return kind

    def _fall_back(self, error):
        with self._state_lock:
            self.last_error = error
            self._failed = True
            self._mock_mode = True
            self._state = ModelState.MOCK_FALLBACK
        logger.warning("Switching to mock mode")

    def fall_back(self, error):
        """Record a failure seen outside loading and switch to mock mode for good."""
        self._fall_back(error)

    @staticmethod
    def _close_quietly(handle):
        if handle is None:
            return
        try:
            handle.close()
        except Exception:
            logger.debug("Error while releasing partial model", exc_info=True)

    # ----------------------------
    # Forward pass
    # ----------------------------
    def forward(self, batch):
        """Run the model and wrap its tensors in the output variant fixed at load time."""
        if self._model is None:
            raise ModelLoadError("Model is not loaded")
        outputs = self._model.predict(batch)
        if self._output_kind == DUAL:
            if len(outputs) != 2:
                raise ValueError(f"Expected 2 output tensors, got {len(outputs)}")
            return DualOutput(segmentation_logits=outputs[0], classification_logits=outputs[1])
        if len(outputs) != 1:
            raise ValueError(f"Expected 1 output tensor, got {len(outputs)}")
        return SingleOutput(outputs[0])
