import os

import requests

BACKEND_URL = os.environ.get("NEUROSCAN_BACKEND_URL")


def _url(endpoint: str):
    if not BACKEND_URL:
        raise RuntimeError("No backend URL configured")
    return f"{BACKEND_URL.rstrip('/')}/{endpoint.lstrip('/')}"


def _file_tuple(uploaded_file):
    uploaded_file.seek(0)
    return (
        getattr(uploaded_file, "name", None) or "upload.jpg",
        uploaded_file.read(),
        getattr(uploaded_file, "type", None) or "application/octet-stream",
    )


def load_model():
    r = requests.post(_url("/load"), timeout=120)
    r.raise_for_status()
    return r.json()


def analyze(uploaded_files):
    files = [("files", _file_tuple(f)) for f in uploaded_files]
    r = requests.post(_url("/analyze"), files=files, timeout=300)
    r.raise_for_status()
    return r.json()
