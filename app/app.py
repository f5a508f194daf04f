# ======================================================
# NeuroScan — Brain MRI Tumor Classification
# ======================================================

import sys
import json
from datetime import datetime, timezone
from pathlib import Path

import requests
import streamlit as st
from PIL import Image

# ======================================================
# PATHS
# ======================================================
ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from neuroscan import build_services, configure_logging
from neuroscan.config import ANALYSIS_RESULTS_KEY, Settings
from neuroscan.outcomes import DecodeError
from neuroscan.session import as_uploaded_image, decode_image, segmentation_image
from utils import api_client

# ======================================================
# STREAMLIT CONFIG
# ======================================================
st.set_page_config(page_title="NeuroScan", layout="wide")

DISCLAIMER = "Educational demo only. Not a medical diagnosis."

NOTES = {
    "Meningioma": "Extra-axial dural-based mass with broad dural attachment and smooth margins.",
    "Glioma": "Intra-axial infiltrative lesion; T2/FLAIR hyperintensity with ill-defined margins.",
    "Pituitary": "Sellar/suprasellar lesion; possible mass effect on the optic chiasm.",
    "No Tumor": "No convincing mass-like lesion pattern seen.",
}


# ======================================================
# HELPERS
# ======================================================
@st.cache_resource
def load_services():
    settings = Settings.from_env()
    configure_logging(settings)
    services = build_services(settings)
    services.load_model()
    return services


@st.cache_resource
def backend_status():
    """Ask the backend to load its model once; None when it is unreachable."""
    try:
        return api_client.load_model()
    except requests.RequestException:
        return None


def overlay(original, mask):
    """Blend the RGBA mask over the original scan."""
    base = original.convert("RGBA")
    if mask.size != base.size:
        mask = mask.resize(base.size, Image.NEAREST)
    return Image.alpha_composite(base, mask.convert("RGBA")).convert("RGB")


def analyze_with_backend(uploaded_files):
    """Send the batch to the API and store the records like the local path does."""
    resp = api_client.analyze(uploaded_files)
    now = datetime.now(timezone.utc).isoformat()
    records = [
        {
            "file": r.get("file"),
            "prediction": r["prediction"],
            "confidence": r["confidence"],
            "is_mock": r["is_mock"],
            "segmentation": r.get("segmentation_base64"),
            "analyzed_at": now,
        }
        for r in resp.get("results", [])
    ]
    st.session_state[ANALYSIS_RESULTS_KEY] = json.dumps(records)
    return records, resp.get("skipped", []), resp.get("mock_mode", False)


def render_record(record, original=None):
    file_info = record.get("file") or {}
    st.markdown(f"#### {file_info.get('name', 'Image')}")
    c1, c2 = st.columns(2)

    if original is not None:
        c1.image(original, caption="Original", width="content")
    mask = segmentation_image(record)
    if mask is not None and original is not None:
        c2.image(overlay(original, mask), caption="Segmentation overlay", width="content")
    elif mask is not None:
        c2.image(mask, caption="Segmentation mask", width="content")
    elif record.get("segmentation"):
        c2.info("The stored segmentation overlay could not be read.")
    else:
        c2.info("No segmentation overlay for this result.")

    label = record["prediction"]
    suffix = " (mock)" if record.get("is_mock") else ""
    st.write(f"**{label}** — {record['confidence']:.1f}%{suffix}")
    st.progress(min(max(record["confidence"] / 100.0, 0.0), 1.0))
    st.caption(NOTES.get(label, "Pattern-based features consistent with predicted class."))


# ======================================================
# HEADER
# ======================================================
st.title("🧠 NeuroScan")
st.subheader("Brain MRI tumor classification with segmentation overlay")
st.caption(DISCLAIMER)

use_backend = bool(api_client.BACKEND_URL)
services = None if use_backend else load_services()

if use_backend:
    status = backend_status()
    if status is None:
        st.error(f"Backend at {api_client.BACKEND_URL} is not reachable.")
    elif status.get("mock_mode"):
        st.warning("Mock results: the backend could not load the model, showing sample results instead.")
elif services.is_mock_mode():
    st.warning("Mock results: the model could not be loaded, showing sample results instead.")

# ======================================================
# IMAGE UPLOAD
# ======================================================
uploaded_files = st.file_uploader(
    "Upload brain MRI images",
    type=["jpg", "jpeg", "png"],
    accept_multiple_files=True,
)

if uploaded_files and st.button("Analyze"):
    originals = {}
    for f in uploaded_files:
        try:
            originals[f.name] = decode_image(as_uploaded_image(f)).convert("RGB")
        except DecodeError:
            # reported with the batch results below
            continue

    if use_backend:
        with st.spinner("Requesting predictions from backend..."):
            try:
                records, skipped, mock_mode = analyze_with_backend(uploaded_files)
            except requests.RequestException as e:
                st.error(f"Backend analysis failed: {e}")
                records, skipped, mock_mode = [], [], False
    else:
        bar = st.progress(0.0, text="Analyzing...")
        scoped = services.with_store(st.session_state)
        skipped = []
        scoped.analyze_batch(
            uploaded_files,
            progress=lambda p: bar.progress(p, text=f"Analyzing... {p:.0%}"),
            skipped=skipped,
        )
        records = scoped.stored_results()
        mock_mode = scoped.is_mock_mode()
        bar.empty()

    if mock_mode:
        st.info("Results were produced in mock mode.")
    for name in skipped:
        st.error(f"{name} could not be decoded and was skipped.")

    st.subheader("🔍 Results")
    for record in records:
        name = (record.get("file") or {}).get("name")
        render_record(record, originals.get(name))
        st.divider()
