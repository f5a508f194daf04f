from typing import List, Optional

from pydantic import BaseModel

from neuroscan.session import image_to_data_url


class FileInfo(BaseModel):
    name: str
    size: int
    type: str


class PredictionResponse(BaseModel):
    file: Optional[FileInfo] = None
    prediction: str
    confidence: float
    is_mock: bool
    segmentation_base64: Optional[str] = None

    @classmethod
    def from_result(cls, result):
        return cls(
            file=FileInfo(**result.source.metadata()) if result.source else None,
            prediction=result.prediction,
            confidence=result.confidence,
            is_mock=result.is_mock,
            segmentation_base64=image_to_data_url(result.segmentation) if result.segmentation is not None else None,
        )


class BatchResponse(BaseModel):
    results: List[PredictionResponse]
    skipped: List[str]
    mock_mode: bool


class LoadResponse(BaseModel):
    loaded: bool
    mock_mode: bool


class HealthResponse(BaseModel):
    status: str
    model_state: str
    mock_mode: bool
    output_kind: Optional[str] = None
    model_format: Optional[str] = None
    last_error: Optional[str] = None
