import io
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from neuroscan.config import Settings
from neuroscan.outcomes import ModelLoadError
from neuroscan.services import build_services

MODEL_URL = "https://models.example.test/brain_tumor_classifier.keras"


class FakeModel:
    """Stands in for a Keras / TFLite handle; `respond` maps a batch to output tensors."""

    format_name = "fake"

    def __init__(self, respond=None, fail_after=None):
        self.respond = respond or (lambda batch: [np.array([[0.1, 0.1, 0.7, 0.1]], dtype=np.float32)])
        self.fail_after = fail_after
        self.calls = 0
        self.closed = False
        self.batch_shapes = []

    def predict(self, batch):
        self.calls += 1
        self.batch_shapes.append(tuple(batch.shape))
        if self.fail_after is not None and self.calls > self.fail_after:
            raise RuntimeError("forward pass exploded")
        return self.respond(batch)

    def close(self):
        self.closed = True


class FakeFetcher:
    def __init__(self, error=None):
        self.error = error
        self.calls = 0

    def __call__(self, url, cache_dir, timeout):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return Path(cache_dir) / "model.keras"


def reader_returning(model):
    return lambda path: model


def failing_reader(message="not this format"):
    def read(path):
        raise ValueError(message)
    return read


def make_png(width=64, height=48, mode="RGB", color=(120, 30, 200)):
    if mode == "L":
        color = color[0]
    elif mode == "RGBA":
        color = tuple(color) + (255,)
    img = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def settings(tmp_path):
    return Settings(model_url=MODEL_URL, cache_dir=tmp_path, image_size=32)


@pytest.fixture
def fake_model():
    return FakeModel()


@pytest.fixture
def services(settings, fake_model):
    """Services backed by a working fake model."""
    return build_services(
        settings,
        fetcher=FakeFetcher(),
        readers=[("fake", reader_returning(fake_model))],
    )


@pytest.fixture
def broken_services(settings):
    """Services whose model download always fails."""
    return build_services(
        settings,
        fetcher=FakeFetcher(error=ModelLoadError("network unreachable")),
    )


@pytest.fixture
def png_bytes():
    return make_png()
