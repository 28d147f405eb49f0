"""HTTP API for the caption reformatter (FastAPI)."""
