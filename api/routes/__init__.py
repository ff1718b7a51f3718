"""API Routes Package."""

from api.routes import health, compute, upload, files

__all__ = [
    "health",
    "compute",
    "upload",
    "files",
]
