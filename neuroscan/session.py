import io
import json
import base64
import binascii
import logging
import mimetypes
from datetime import datetime, timezone
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from neuroscan.config import ANALYSIS_RESULTS_KEY
from neuroscan.outcomes import DecodeError, PersistenceError, UploadedImage
from neuroscan.preprocessing import load_image_with_orientation

logger = logging.getLogger(__name__)


# ----------------------------
# Upload helpers
# ----------------------------
DEFAULT_UPLOAD_NAME = "upload.jpg"


def upload_name(file):
    """The name shown for an upload, in results and in skip reports alike."""
    if isinstance(file, (str, Path)):
        return Path(file).name
    return getattr(file, "name", None) or getattr(file, "filename", None) or DEFAULT_UPLOAD_NAME


def as_uploaded_image(file):
    """
    Wrap whatever the caller handed us into an UploadedImage.
    Accepts UploadedImage, Streamlit UploadedFile (.name/.type), FastAPI
    UploadFile (.filename/.content_type/.file), paths and raw bytes.
    """
    if isinstance(file, UploadedImage):
        return file
    if isinstance(file, (bytes, bytearray)):
        return UploadedImage(name=upload_name(file), data=bytes(file), content_type="image/jpeg")
    if isinstance(file, (str, Path)):
        path = Path(file)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise DecodeError(f"Cannot read {path}: {e}") from e
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return UploadedImage(name=upload_name(path), data=data, content_type=content_type)

    name = upload_name(file)
    content_type = (
        getattr(file, "type", None)
        or getattr(file, "content_type", None)
        or mimetypes.guess_type(str(name))[0]
        or "application/octet-stream"
    )
    stream = getattr(file, "file", file)
    try:
        if hasattr(stream, "seek"):
            stream.seek(0)
        data = stream.read()
    except (OSError, ValueError) as e:
        raise DecodeError(f"Cannot read upload {name}: {e}") from e
    if not isinstance(data, (bytes, bytearray)):
        raise DecodeError(f"Upload {name} did not yield bytes")
    return UploadedImage(name=str(name), data=bytes(data), content_type=content_type)


def decode_image(upload):
    try:
        return load_image_with_orientation(io.BytesIO(upload.data))
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Could not decode {upload.name}: {e}") from e


def image_to_data_url(image):
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("utf-8")
    return f"data:image/png;base64,{encoded}"


def data_url_to_image(data_url):
    _, _, payload = str(data_url).partition("base64,")
    try:
        image = Image.open(io.BytesIO(base64.b64decode(payload)))
        image.load()
    except (binascii.Error, UnidentifiedImageError, OSError, ValueError) as e:
        raise DecodeError(f"Stored image is not a valid PNG data URL: {e}") from e
    return image


def segmentation_image(record):
    """The record's segmentation mask, or None when it has none or it cannot be decoded."""
    seg = record.get("segmentation")
    if not seg:
        return None
    try:
        return data_url_to_image(seg)
    except DecodeError as e:
        logger.warning("Ignoring stored segmentation: %s", e)
        return None


def result_to_record(result):
    return {
        "file": result.source.metadata() if result.source else None,
        "prediction": result.prediction,
        "confidence": result.confidence,
        "is_mock": result.is_mock,
        "segmentation": image_to_data_url(result.segmentation) if result.segmentation is not None else None,
        "analyzed_at": datetime.now(timezone.utc).isoformat(),
    }


def load_records(store, key=ANALYSIS_RESULTS_KEY):
    """Stored records, or [] when nothing usable is stored."""
    try:
        raw = store.get(key)
    except Exception as e:
        logger.warning("Could not read stored results: %s", e)
        return []
    if not raw:
        return []
    try:
        records = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning("Stored results are malformed: %s", e)
        return []
    if not isinstance(records, list):
        logger.warning("Stored results are not a list")
        return []
    return [r for r in records if isinstance(r, dict)]


# ----------------------------
# Session adapter
# ----------------------------
class AnalysisSession:
    """Bridges uploaded files to the orchestrator and keeps the batch in session storage."""

    def __init__(self, orchestrator, store=None, key=ANALYSIS_RESULTS_KEY):
        self.orchestrator = orchestrator
        self.store = store if store is not None else {}
        self.key = key

    def analyze(self, file):
        upload = as_uploaded_image(file)
        image = decode_image(upload)
        result = self.orchestrator.infer(image)
        return result.with_source(upload)

    def analyze_batch(self, files, progress=None, skipped=None):
        """
        Analyze files in order. Undecodable files are left out of the results;
        their names are appended to `skipped` when the caller passes a list.
        """
        files = list(files)
        results = []

        for i, file in enumerate(files, 1):
            try:
                results.append(self.analyze(file))
            except DecodeError as e:
                logger.warning("Skipping file: %s", e)
                if skipped is not None:
                    skipped.append(upload_name(file))
            if progress is not None:
                progress(i / len(files))

        try:
            self.save_results(results)
        except PersistenceError:
            logger.exception("Could not persist analysis results")
        return results

    # ----------------------------
    # Persistence
    # ----------------------------
    def save_results(self, results):
        try:
            payload = json.dumps([result_to_record(r) for r in results])
            self.store[self.key] = payload
        except Exception as e:
            raise PersistenceError(f"Could not store results: {e}") from e

    def load_results(self):
        return load_records(self.store, self.key)

    def clear_results(self):
        try:
            self.store.pop(self.key, None)
        except Exception as e:
            raise PersistenceError(f"Could not clear results: {e}") from e
