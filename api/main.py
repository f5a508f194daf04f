# main.py
import logging
from typing import List

from fastapi import Depends, FastAPI, File, HTTPException, UploadFile

from neuroscan import build_services, configure_logging
from neuroscan.config import Settings
from neuroscan.outcomes import DecodeError

from api.schemas import BatchResponse, HealthResponse, LoadResponse, PredictionResponse

logger = logging.getLogger(__name__)

# ----------------------------
# Services
# ----------------------------
_services = None


def get_services():
    """Built on first use so importing the app never touches the model."""
    global _services
    if _services is None:
        settings = Settings.from_env()
        configure_logging(settings)
        _services = build_services(settings)
    return _services


# ----------------------------
# FastAPI app
# ----------------------------
app = FastAPI(title="NeuroScan API")


# ----------------------------
# Health check
# ----------------------------
@app.get("/", response_model=HealthResponse)
def health(services=Depends(get_services)):
    info = services.manager.model_info()
    return HealthResponse(
        status="ok",
        model_state=info["state"],
        mock_mode=info["mock_mode"],
        output_kind=info["output_kind"],
        model_format=info["format"],
        last_error=info["last_error"],
    )


# ----------------------------
# Model load
# ----------------------------
@app.post("/load", response_model=LoadResponse)
def load(services=Depends(get_services)):
    loaded = services.load_model()
    return LoadResponse(loaded=loaded, mock_mode=services.is_mock_mode())


# ----------------------------
# Prediction endpoint
# ----------------------------
@app.post("/predict", response_model=PredictionResponse)
def predict(file: UploadFile = File(...), services=Depends(get_services)):
    try:
        result = services.analyze_image(file)
    except DecodeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return PredictionResponse.from_result(result)


# ----------------------------
# Batch endpoint
# ----------------------------
@app.post("/analyze", response_model=BatchResponse)
def analyze(files: List[UploadFile] = File(...), services=Depends(get_services)):
    skipped = []
    results = services.analyze_batch(files, skipped=skipped)
    return BatchResponse(
        results=[PredictionResponse.from_result(r) for r in results],
        skipped=skipped,
        mock_mode=services.is_mock_mode(),
    )
