"""Entry point for the NeuroScan API service.

Re-exports the FastAPI `app` from api/main.py at the repository root so
that `uvicorn main:app` works regardless of the working directory.
"""

from api.main import app  # re-export for uvicorn
