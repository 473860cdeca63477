"""HTTP surface: FastAPI app serving the now-playing and queue read models."""
