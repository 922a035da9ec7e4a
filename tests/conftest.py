"""
Pytest Configuration and Fixtures

Shared fixtures for offline tests (in-memory SQLite store, sample files,
auth headers, in-process API client) and for live tests requiring a
running Docker stack.
"""

import os
import tempfile

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Test environment defaults: MUST be set before any casenote imports.
#
# 1. Load .env first so that Docker-matching credentials are available.
# 2. setdefault fills in anything still missing (CI runners, fresh clones
#    without a .env file) so that pydantic Settings validation doesn't crash.
# ---------------------------------------------------------------------------
load_dotenv()

_test_env = {
    "POSTGRES_USER": "casenote",
    "POSTGRES_PASSWORD": "casenote_password",
    "POSTGRES_HOST": "localhost",
    "POSTGRES_PORT": "5432",
    "POSTGRES_DB": "casenote_db",
    "JWT_SECRET_KEY": "test-secret-key-that-is-long-enough-for-hs256",
    "OCR_BACKEND": "mock",
    "UPLOAD_DIR": tempfile.mkdtemp(prefix="casenote-uploads-"),
}
for _key, _value in _test_env.items():
    os.environ.setdefault(_key, _value)

# ---------------------------------------------------------------------------
# Imports (safe now that env vars are set)
# ---------------------------------------------------------------------------
import io  # noqa: E402
import time  # noqa: E402
from collections.abc import AsyncGenerator, Callable, Generator  # noqa: E402

import fitz  # noqa: E402
import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from PIL import Image  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from casenote.core.exceptions import UploadFailure  # noqa: E402
from casenote.core.security import create_access_token  # noqa: E402
from casenote.models import Base  # noqa: E402
from casenote.services.ingestion import IngestionPipeline, IngestionRegistry  # noqa: E402
from casenote.services.notes import NoteStore  # noqa: E402
from casenote.services.rasterizer import PdfRasterizer  # noqa: E402
from casenote.services.recognizer import MockRecognizer  # noqa: E402
from casenote.services.uploads import StoredFile, owner_folder  # noqa: E402

BASE_URL = "http://localhost:8000"

OWNER_A = "dr.adams@example.com"
OWNER_B = "dr.baker@example.com"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeUploadAdapter:
    """In-memory UploadAdapter that records calls."""

    def __init__(self, fail_save: bool = False, fail_delete: bool = False) -> None:
        self.files: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_save = fail_save
        self.fail_delete = fail_delete

    async def save(
        self,
        data: bytes,
        file_name: str,
        media_type: str,
        owner_id: str,
    ) -> StoredFile:
        if self.fail_save:
            raise UploadFailure("storage unavailable")
        storage_id = f"{owner_folder(owner_id)}/{len(self.files)}_{file_name}"
        self.files[storage_id] = data
        return StoredFile(url=f"https://files.test/{storage_id}", storage_id=storage_id)

    async def delete(self, storage_id: str) -> None:
        if self.fail_delete:
            raise UploadFailure("storage unavailable")
        self.files.pop(storage_id, None)
        self.deleted.append(storage_id)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory SQLite database with the notes schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,  # one shared connection keeps :memory: alive
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def uploads() -> FakeUploadAdapter:
    return FakeUploadAdapter()


@pytest.fixture
def store(uploads: FakeUploadAdapter) -> NoteStore:
    return NoteStore(uploads=uploads)


# ---------------------------------------------------------------------------
# Sample files
# ---------------------------------------------------------------------------


@pytest.fixture
def png_bytes() -> bytes:
    """Small white PNG."""
    buffer = io.BytesIO()
    Image.new("RGB", (64, 32), "white").save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def pdf_bytes() -> bytes:
    """Single-page 200x100pt PDF with known text."""
    doc = fitz.open()
    page = doc.new_page(width=200, height=100)
    page.insert_text((10, 50), "Hello scan")
    data = doc.tobytes()
    doc.close()
    return data


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------


def bearer(owner_id: str) -> dict[str, str]:
    """Bearer header for ``owner_id``."""
    return {"Authorization": f"Bearer {create_access_token(owner_id)}"}


@pytest.fixture
def auth_headers() -> Callable[[str], dict[str, str]]:
    """Factory for Authorization headers: ``auth_headers(owner_id)``."""
    return bearer


@pytest.fixture
def registry() -> IngestionRegistry:
    """Per-owner pipelines backed by the mock recognizer."""
    recognizer = MockRecognizer()
    rasterizer = PdfRasterizer()
    return IngestionRegistry(
        lambda: IngestionPipeline(recognizer=recognizer, rasterizer=rasterizer)
    )


@pytest_asyncio.fixture
async def api_client(
    session_factory: async_sessionmaker[AsyncSession],
    uploads: FakeUploadAdapter,
    registry: IngestionRegistry,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    In-process client with database, storage and OCR overridden.

    ASGITransport does not run the lifespan, so no Postgres is needed.
    """
    from casenote.api.v1.ingest import get_ingestion_registry
    from casenote.core.database import get_db
    from casenote.main import app
    from casenote.services.uploads import get_upload_adapter

    async def _get_test_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_upload_adapter] = lambda: uploads
    app.dependency_overrides[get_ingestion_registry] = lambda: registry

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Live stack
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def wait_for_api():
    """
    Block until the API is ready or timeout expires.

    Polls /health endpoint with 1s intervals for up to 30s.
    Fails the test session if API is unreachable (Docker likely not running).
    """
    url = f"{BASE_URL}/health"
    timeout = 30
    start = time.time()

    print("\n[Test] Waiting for API...")
    while time.time() - start < timeout:
        try:
            res = httpx.get(url, timeout=1.0)
            if res.status_code == 200:
                print("API Ready")
                return
        except httpx.RequestError:
            time.sleep(1)

    pytest.fail("API unreachable. Docker is likely down.")


@pytest.fixture(scope="session")
def live_client(wait_for_api) -> Generator[httpx.Client, None, None]:
    """
    Pre-configured HTTP client for live tests, authenticated as OWNER_A.

    Yields:
        httpx.Client: Session-scoped client, automatically closed after tests.
    """
    with httpx.Client(
        base_url=f"{BASE_URL}/api/v1",
        headers=bearer(OWNER_A),
        timeout=30.0,
    ) as client:
        yield client
