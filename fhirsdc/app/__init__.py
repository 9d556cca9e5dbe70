"""fhirsdc web application (FastAPI)."""
