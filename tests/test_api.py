import pytest
from fastapi.testclient import TestClient

from api.main import app, get_services
from neuroscan.segmentation import TUMOR_CLASSES

from tests.conftest import make_png


@pytest.fixture
def client_for():
    def build(services):
        app.dependency_overrides[get_services] = lambda: services
        return TestClient(app)

    yield build
    app.dependency_overrides.clear()


def test_health_before_load(client_for, services):
    resp = client_for(services).get("/")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["model_state"] == "unloaded"
    assert body["mock_mode"] is False


def test_load_reports_real_model(client_for, services):
    client = client_for(services)
    assert client.post("/load").json() == {"loaded": True, "mock_mode": False}
    assert client.get("/").json()["model_state"] == "ready"


def test_load_failure_reports_mock_mode(client_for, broken_services):
    client = client_for(broken_services)
    assert client.post("/load").json() == {"loaded": False, "mock_mode": True}
    # idempotent from here on: still mock, no exception
    assert client.post("/load").json() == {"loaded": False, "mock_mode": True}
    assert client.get("/").json()["last_error"]


def test_predict(client_for, services):
    resp = client_for(services).post("/predict", files={"file": ("scan.png", make_png(), "image/png")})
    assert resp.status_code == 200
    body = resp.json()
    assert body["prediction"] == "Glioma"
    assert body["confidence"] == 70.0
    assert body["is_mock"] is False
    assert body["file"]["name"] == "scan.png"


def test_predict_with_unreachable_model_still_answers(client_for, broken_services):
    resp = client_for(broken_services).post("/predict", files={"file": ("scan.png", make_png(80, 60), "image/png")})
    assert resp.status_code == 200
    body = resp.json()
    assert body["is_mock"] is True
    assert body["prediction"] in TUMOR_CLASSES
    assert 70 <= body["confidence"] <= 95
    if body["prediction"] == "No Tumor":
        assert body["segmentation_base64"] is None
    else:
        assert body["segmentation_base64"].startswith("data:image/png;base64,")


def test_predict_rejects_non_image(client_for, services):
    resp = client_for(services).post("/predict", files={"file": ("notes.txt", b"hello", "text/plain")})
    assert resp.status_code == 400


def test_analyze_batch(client_for, services):
    files = [
        ("files", ("a.png", make_png(20, 20), "image/png")),
        ("files", ("bad.png", b"not an image", "image/png")),
        ("files", ("c.png", make_png(30, 30), "image/png")),
    ]
    resp = client_for(services).post("/analyze", files=files)
    assert resp.status_code == 200
    body = resp.json()
    assert [r["file"]["name"] for r in body["results"]] == ["a.png", "c.png"]
    assert body["skipped"] == ["bad.png"]
    assert body["mock_mode"] is False
