"""API Package.

FastAPI server for the translation compute service.
"""

from api.server import create_app

__all__ = [
    "create_app",
]
