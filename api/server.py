"""FastAPI server for the translation compute service.

Main entry point for the API server.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from uuid import uuid4

from fastapi import FastAPI, Request

from api.routes import compute, files, health, upload
from core.config import Settings, load_settings
from core.observability.logging import configure_logging, get_logger, with_correlation
from core.storage.index import SQLiteIndex
from core.storage.objects import FilesystemObjectStore
from ingestion.pipeline import IngestionPipeline


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings: Settings = app.state.settings
    logger.info(
        "Compute service starting up",
        extra_fields={"storage_root": str(settings.storage_root), "index_db": str(settings.index_db_path)},
    )

    yield

    logger.info("Compute service shutting down")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Explicit settings; loaded from the environment when omitted
    """
    settings = settings or load_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)

    app = FastAPI(
        title="Translation Compute API",
        description="Fingerprinting, drift validation, sorting and quota-enforced ingestion of translation files",
        version=health.SERVICE_VERSION,
        lifespan=lifespan,
    )

    store = FilesystemObjectStore(settings.storage_root)
    index = SQLiteIndex(settings.index_db_path)
    index.init_schema()

    app.state.settings = settings
    app.state.store = store
    app.state.index = index
    app.state.pipeline = IngestionPipeline(store=store, index=index, limits=settings.quotas)

    @app.middleware("http")
    async def correlate_request(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid4().hex
        with with_correlation(request_id=request_id):
            response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response

    app.include_router(health.router, tags=["Health"])
    app.include_router(compute.router, tags=["Compute"])
    app.include_router(upload.router, tags=["Upload"])
    app.include_router(files.router, prefix="/files", tags=["Files"])

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:create_app", factory=True, host="0.0.0.0", port=8787)
