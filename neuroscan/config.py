import os
import logging
from dataclasses import dataclass
from pathlib import Path

from neuroscan.outcomes import ConfigurationError

# ----------------------------
# Paths
# ----------------------------
ROOT = Path(__file__).resolve().parents[1]
MODELS_DIR = ROOT / "models"

DEFAULT_MODEL_PATH = MODELS_DIR / "brain_tumor_classifier.keras"
DEFAULT_CACHE_DIR = MODELS_DIR / "cache"

# ----------------------------
# Fixed constants
# ----------------------------
IMG_SIZE = 224
ANALYSIS_RESULTS_KEY = "analysisResults"

MOCK_CONFIDENCE_RANGE = (70.0, 95.0)

NORMALIZATION_RANGES = {
    "unit": (0.0, 1.0),
    "symmetric": (-1.0, 1.0),
}

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class Settings:
    model_url: str = str(DEFAULT_MODEL_PATH)
    cache_dir: Path = DEFAULT_CACHE_DIR
    mock_mode: bool = False
    normalization: str = "unit"
    image_size: int = IMG_SIZE
    fetch_timeout: float = 60.0
    results_key: str = ANALYSIS_RESULTS_KEY
    log_level: str = "INFO"

    def __post_init__(self):
        if self.normalization not in NORMALIZATION_RANGES:
            raise ConfigurationError(
                f"Unknown normalization {self.normalization!r}; "
                f"expected one of {sorted(NORMALIZATION_RANGES)}"
            )
        if self.image_size <= 0:
            raise ConfigurationError("image_size must be positive")

    @property
    def normalization_range(self):
        return NORMALIZATION_RANGES[self.normalization]

    @classmethod
    def from_env(cls):
        """Read settings from NEUROSCAN_* environment variables."""
        try:
            timeout = float(os.environ.get("NEUROSCAN_FETCH_TIMEOUT", "60"))
        except ValueError as e:
            raise ConfigurationError(f"Invalid NEUROSCAN_FETCH_TIMEOUT: {e}") from e

        return cls(
            model_url=os.environ.get("NEUROSCAN_MODEL_URL", str(DEFAULT_MODEL_PATH)),
            cache_dir=Path(os.environ.get("NEUROSCAN_MODEL_CACHE_DIR", str(DEFAULT_CACHE_DIR))),
            mock_mode=_env_flag("NEUROSCAN_MOCK_MODE"),
            normalization=os.environ.get("NEUROSCAN_NORMALIZATION", "unit").strip().lower(),
            fetch_timeout=timeout,
            log_level=os.environ.get("NEUROSCAN_LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(settings=None):
    level = (settings.log_level if settings else "INFO")
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
