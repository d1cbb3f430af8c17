from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from unidrive.api.v1.router import router as v1_router
from unidrive.config import settings
from unidrive.database import SessionLocal
from unidrive.dependencies.storage import get_registry
from unidrive.exceptions import DriveError
from unidrive.logging_config import setup_logging
from unidrive.schemas.common import ErrorResponse
from unidrive.services.trash import RetentionSweeper

# Setup application logging
logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the trash sweeper with the app and close backend clients on shutdown."""
    registry = get_registry()
    sweeper = None
    if settings.TRASH_SWEEP_ENABLED:
        sweeper = RetentionSweeper(
            session_factory=SessionLocal,
            registry=registry,
            interval_seconds=settings.TRASH_SWEEP_INTERVAL_SECONDS,
            retention_days=settings.TRASH_RETENTION_DAYS,
        )
        await sweeper.start()
    app.state.sweeper = sweeper

    yield

    if sweeper is not None:
        await sweeper.stop()
    await registry.aclose()


app = FastAPI(title="unidrive", lifespan=lifespan)

# Every v1 endpoint is mounted under /api/v1
app.include_router(v1_router, prefix="/api/v1")


@app.exception_handler(DriveError)
async def drive_exception_handler(request: Request, exc: DriveError):
    """Map domain errors to their status code and a client-safe body."""
    if exc.status_code >= 500:
        logger.error(f"{exc.__class__.__name__} on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse.from_error(exc).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Unwrap the 'detail' field from HTTPException responses."""
    content = exc.detail

    if isinstance(content, dict):
        return JSONResponse(status_code=exc.status_code, content=content)

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": "Unauthorized" if exc.status_code == 401 else "Error",
            "message": content,
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    # Log the full traceback; the client always gets the same fixed message
    logger.error(
        f"Unhandled exception: {exc.__class__.__name__}: {str(exc)}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "message": "An unexpected error occurred",
        },
    )
