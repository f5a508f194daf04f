import sys
from pathlib import Path

import pandas as pd
import streamlit as st

ROOT = Path(__file__).resolve().parents[2]
sys.path.append(str(ROOT))

from neuroscan.config import ANALYSIS_RESULTS_KEY
from neuroscan.session import load_records, segmentation_image

st.set_page_config(page_title="History · NeuroScan", layout="wide")

st.title("🗂️ Analysis History")
st.caption("Results from this session's most recent batch")


def records_to_frame(records):
    rows = []
    for i, r in enumerate(records):
        info = r.get("file") or {}
        rows.append({
            "id": i,
            "file": info.get("name", f"image {i + 1}"),
            "prediction": r.get("prediction", "Unknown"),
            "confidence": r.get("confidence", 0.0),
            "mock": bool(r.get("is_mock")),
            "analyzed_at": pd.to_datetime(r.get("analyzed_at"), errors="coerce"),
        })
    return pd.DataFrame(rows, columns=["id", "file", "prediction", "confidence", "mock", "analyzed_at"])


records = load_records(st.session_state, ANALYSIS_RESULTS_KEY)
if not records:
    st.info("No results available. Upload images on the main page first.")
    st.stop()

df = records_to_frame(records)

c1, c2, c3 = st.columns(3)
search = c1.text_input("Search file or label")
labels = c2.multiselect("Prediction", sorted(df["prediction"].unique()))
order = c3.radio("Sort by date", ["Newest first", "Oldest first"], horizontal=True)

view = df
if search:
    term = search.lower()
    view = view[
        view["file"].str.lower().str.contains(term, regex=False)
        | view["prediction"].str.lower().str.contains(term, regex=False)
    ]
if labels:
    view = view[view["prediction"].isin(labels)]
view = view.sort_values("analyzed_at", ascending=(order == "Oldest first"))

st.dataframe(view.drop(columns=["id"]), hide_index=True, use_container_width=True)

st.subheader("Segmentation masks")
for _, row in view.iterrows():
    record = records[int(row["id"])]
    if not record.get("segmentation"):
        continue
    mask = segmentation_image(record)
    if mask is None:
        st.info(f"{row['file']}: stored segmentation could not be read.")
    else:
        st.image(mask, caption=f"{row['file']} · {row['prediction']}", width=200)
