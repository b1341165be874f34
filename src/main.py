"""taskboard - task tracker REST service over a local SQLite store."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.core.config import constants, settings
from src.core.errors import RemoteCallError
from src.core.logging import configure_logfire, instrument_fastapi
from src.core.schema import init_db
from src.interface.api_router import router as tasks_router
from src.interface.local_store import LocalTaskStore


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    configure_logfire()

    await init_db(db_path=settings.sqlite_db_path)
    store = LocalTaskStore(db_path=settings.sqlite_db_path)
    app.state.store = store
    logger.info("Database initialized", extra={"db_path": settings.sqlite_db_path})

    yield
    # Shutdown
    await store.close()


app = FastAPI(
    title="taskboard",
    description="Task tracker with list, timeframe and kanban views",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(tasks_router)


@app.exception_handler(RemoteCallError)
async def store_error_handler(_request: Request, exc: RemoteCallError) -> JSONResponse:
    """Store failures become JSON errors; a missing record is a 404."""
    status_code = exc.status_code or constants.HTTP_SERVER_ERROR
    if status_code >= constants.HTTP_SERVER_ERROR:
        logger.error("store_error", extra={"operation": exc.operation, "error": str(exc)})
    return JSONResponse(content={"error": str(exc)}, status_code=status_code)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=constants.HTTP_OK)
