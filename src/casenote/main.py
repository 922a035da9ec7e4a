"""
CaseNote Backend Application

FastAPI application entrypoint with async lifespan management.
Handles startup checks (database, upload directory), maps the application
error taxonomy to HTTP responses, and disposes the engine on shutdown.

Start locally:
    uvicorn casenote.main:app --host 0.0.0.0 --port 8000 --reload

The ingestion registry is process-local: run a single worker.
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text

from casenote.api.v1.ingest import router as ingest_router
from casenote.api.v1.notes import router as notes_router
from casenote.api.v1.uploads import router as uploads_router
from casenote.core.config import settings
from casenote.core.database import dispose_engine, get_engine
from casenote.core.exceptions import (
    AuthError,
    JobStateError,
    NotFoundOrForbidden,
    UploadFailure,
    ValidationError,
)
from casenote.core.logging import setup_logging

# Initialize logging before any log statements
setup_logging()
logger = logging.getLogger(__name__)


async def wait_for_db(retries: int = 10, delay: int = 1) -> bool:
    """
    Wait for PostgreSQL to become available.

    Useful in containerized environments where the database may start
    after the application. Uses the process-wide engine, so the first
    successful check also warms the connection pool.

    Args:
        retries: Maximum connection attempts.
        delay: Seconds between attempts.

    Returns:
        True if connection established, False if all retries exhausted.
    """
    engine = get_engine()
    for i in range(retries):
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
                logger.info("Postgres connection established")
                return True
        except Exception as e:
            logger.warning(f"Waiting for Postgres ({i + 1}/{retries})... Error: {e}")
            await asyncio.sleep(delay)

    return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
        - Validates database connectivity (required, blocks startup on failure)
        - Creates the upload directory

    Shutdown:
        - Disposes the database engine
    """
    logger.info("Starting CaseNote...")
    logger.info(f"Log Level: {settings.LOG_LEVEL}")
    logger.info(f"OCR back-end: {settings.OCR_BACKEND} ({settings.OCR_LANGUAGE})")

    if not await wait_for_db():
        logger.critical("Could not connect to Postgres. Shutting down.")
        raise RuntimeError("Database connection failed")

    Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)

    yield  # Application runs here

    await dispose_engine()
    logger.info("Shutting down CaseNote...")


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

app.include_router(notes_router, prefix="/api/v1/notes", tags=["Notes"])
app.include_router(ingest_router, prefix="/api/v1/ingest", tags=["Ingestion"])
app.include_router(uploads_router, prefix="/api/v1/uploads", tags=["Uploads"])

# Served locally unless UPLOAD_BASE_URL points at an external host.
# check_dir=False: the directory is created in lifespan, after import
if settings.UPLOAD_BASE_URL.startswith("/"):
    app.mount(
        settings.UPLOAD_BASE_URL,
        StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False),
        name="files",
    )


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": exc.message, "field": exc.field},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
):
    """Malformed bodies are reported as 400 with one message per field."""
    fields = {
        ".".join(str(p) for p in err["loc"] if p != "body"): err["msg"]
        for err in exc.errors()
    }
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request body", "fields": fields},
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"error": str(exc) or "Unauthorized"},
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(NotFoundOrForbidden)
async def not_found_handler(request: Request, exc: NotFoundOrForbidden):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": str(exc)},
    )


@app.exception_handler(UploadFailure)
async def upload_failure_handler(request: Request, exc: UploadFailure):
    # 502 Bad Gateway: storage backend failure, the client may retry
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"error": "Upload failed", "details": str(exc)},
    )


@app.exception_handler(JobStateError)
async def job_state_handler(request: Request, exc: JobStateError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"error": str(exc)},
    )


@app.get("/health")
async def health_check():
    """
    Health check endpoint for load balancers and orchestrators.

    Returns:
        Static health status. Database connectivity is verified at startup.
    """
    return {
        "status": "ok",
        "service": "casenote",
        "environment": os.getenv("ENVIRONMENT", "unknown"),
        "ocr_backend": settings.OCR_BACKEND,
    }
