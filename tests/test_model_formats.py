import numpy as np
import pytest
import requests

from neuroscan import model_formats
from neuroscan.model_formats import KerasModelHandle, cache_path_for, fetch_artifact, is_remote
from neuroscan.outcomes import ModelLoadError

URL = "https://models.example.test/v2/brain_tumor.tflite"


class FakeResponse:
    def __init__(self, content=b"model-bytes", status=200):
        self.content = content
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


@pytest.fixture
def downloads(monkeypatch):
    calls = []

    def fake_get(url, timeout):
        calls.append((url, timeout))
        return FakeResponse()

    monkeypatch.setattr(model_formats.requests, "get", fake_get)
    return calls


def test_is_remote():
    assert is_remote(URL)
    assert not is_remote("models/brain_tumor_classifier.keras")
    assert not is_remote("/abs/path/model.h5")


def test_cache_path_keeps_suffix(tmp_path):
    path = cache_path_for(URL, tmp_path)
    assert path.parent == tmp_path
    assert path.suffix == ".tflite"
    assert cache_path_for(URL, tmp_path) == path
    assert cache_path_for("https://x.test/model", tmp_path).suffix == ".keras"


def test_local_path_used_in_place(tmp_path):
    model = tmp_path / "local.keras"
    model.write_bytes(b"x")
    assert fetch_artifact(str(model), tmp_path / "cache") == model


def test_missing_local_path_is_load_error(tmp_path):
    with pytest.raises(ModelLoadError):
        fetch_artifact(str(tmp_path / "nope.keras"), tmp_path)


def test_remote_download_is_cached(tmp_path, downloads):
    first = fetch_artifact(URL, tmp_path / "cache", timeout=7)
    second = fetch_artifact(URL, tmp_path / "cache", timeout=7)
    assert first == second
    assert first.read_bytes() == b"model-bytes"
    assert downloads == [(URL, 7)]


def not_found(url, timeout):
    return FakeResponse(status=404)


def unreachable(url, timeout):
    raise requests.ConnectionError("unreachable")


@pytest.mark.parametrize("failure", [not_found, unreachable])
def test_remote_failures_are_load_errors(tmp_path, monkeypatch, failure):
    monkeypatch.setattr(model_formats.requests, "get", failure)
    with pytest.raises(ModelLoadError):
        fetch_artifact(URL, tmp_path)
    assert not any(tmp_path.iterdir())


def test_keras_handle_normalizes_outputs():
    class Model:
        def __init__(self, out):
            self.out = out

        def predict(self, batch, verbose=0):
            return self.out

    batch = np.zeros((1, 4, 4, 3), dtype=np.float32)
    single = KerasModelHandle(Model(np.ones((1, 4)))).predict(batch)
    dual = KerasModelHandle(Model([np.ones((1, 2, 2, 4)), np.ones((1, 4))])).predict(batch)
    named = KerasModelHandle(Model({"seg": np.ones((1, 2, 2, 4)), "cls": np.ones((1, 4))})).predict(batch)

    assert [o.shape for o in single] == [(1, 4)]
    assert [o.shape for o in dual] == [(1, 2, 2, 4), (1, 4)]
    assert len(named) == 2
