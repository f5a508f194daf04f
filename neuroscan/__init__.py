"""NeuroScan: brain MRI tumour classification with a mock-mode fallback."""

from neuroscan.config import Settings, configure_logging
from neuroscan.outcomes import AnalysisResult, UploadedImage
from neuroscan.services import NeuroScanServices, build_services

__all__ = [
    "AnalysisResult",
    "NeuroScanServices",
    "Settings",
    "UploadedImage",
    "build_services",
    "configure_logging",
]

__version__ = "0.1.0"
