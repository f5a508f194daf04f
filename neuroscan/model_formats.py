"""Fetching the model artifact and reading it as Keras or TFLite."""

import hashlib
import logging
from pathlib import Path
from urllib.parse import urlparse

import numpy as np
import requests

from neuroscan.outcomes import ModelLoadError

logger = logging.getLogger(__name__)


# ----------------------------
# Artifact fetch
# ----------------------------
def is_remote(url):
    return urlparse(str(url)).scheme in ("http", "https")


def cache_path_for(url, cache_dir):
    parsed = urlparse(url)
    suffix = Path(parsed.path).suffix or ".keras"
    digest = hashlib.md5(url.encode("utf-8")).hexdigest()
    return Path(cache_dir) / f"{digest}{suffix}"


def fetch_artifact(url, cache_dir, timeout=60):
    """
    Resolve the model URL to a local file.
    Local paths are used in place; http(s) URLs are downloaded once into
    cache_dir and reused afterwards.
    """
    if not is_remote(url):
        path = Path(url)
        if not path.exists():
            raise ModelLoadError(f"Model file not found: {path}")
        return path

    target = cache_path_for(url, cache_dir)
    if target.exists() and target.stat().st_size > 0:
        logger.info("Using cached model artifact %s", target)
        return target

    logger.info("Downloading model artifact from %s", url)
    try:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise ModelLoadError(f"Could not fetch model from {url}: {e}") from e

    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_suffix(target.suffix + ".part")
    tmp.write_bytes(resp.content)
    tmp.replace(target)
    return target


# ----------------------------
# Model handles
# ----------------------------
def _as_output_list(outputs):
    if isinstance(outputs, dict):
        outputs = list(outputs.values())
    if not isinstance(outputs, (list, tuple)):
        outputs = [outputs]
    return [np.asarray(o) for o in outputs]


class KerasModelHandle:
    format_name = "keras"

    def __init__(self, model):
        self.model = model

    def predict(self, batch):
        return _as_output_list(self.model.predict(batch, verbose=0))

    def close(self):
        import tensorflow as tf

        self.model = None
        tf.keras.backend.clear_session()


class TFLiteModelHandle:
    format_name = "tflite"

    def __init__(self, interpreter):
        self.interpreter = interpreter
        self.input_details = interpreter.get_input_details()
        self.output_details = interpreter.get_output_details()

    def predict(self, batch):
        detail = self.input_details[0]
        if tuple(detail["shape"]) != tuple(batch.shape):
            self.interpreter.resize_tensor_input(detail["index"], batch.shape)
            self.interpreter.allocate_tensors()
            self.input_details = self.interpreter.get_input_details()
            self.output_details = self.interpreter.get_output_details()
            detail = self.input_details[0]

        self.interpreter.set_tensor(detail["index"], batch.astype(detail["dtype"]))
        self.interpreter.invoke()
        # copy out: get_tensor buffers are reused by the next invoke
        return [np.array(self.interpreter.get_tensor(d["index"])) for d in self.output_details]

    def close(self):
        self.interpreter = None


# ----------------------------
# Readers (tried in order)
# ----------------------------
def load_keras_model(path):
    from tensorflow.keras.models import load_model

    return KerasModelHandle(load_model(str(path), compile=False))


def load_tflite_model(path):
    import tensorflow as tf

    interpreter = tf.lite.Interpreter(model_path=str(path))
    interpreter.allocate_tensors()
    return TFLiteModelHandle(interpreter)


DEFAULT_READERS = (
    ("keras", load_keras_model),
    ("tflite", load_tflite_model),
)
