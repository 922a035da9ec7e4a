"""
Database Layer Unit Tests

Verifies the process-wide engine is created lazily and exactly once, even
under concurrent first use. create_async_engine is mocked: no Postgres.
"""

from __future__ import annotations

import threading
import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from casenote.core import database


@pytest.fixture(autouse=True)
def reset_singletons():
    """Isolate module globals between tests."""
    database._engine = None
    database._session_factory = None
    yield
    database._engine = None
    database._session_factory = None


def test_engine_is_lazy_and_reused():
    with patch("casenote.core.database.create_async_engine") as mock_create:
        mock_create.return_value = MagicMock(name="engine")

        assert database._engine is None
        first = database.get_engine()
        second = database.get_engine()

    assert first is second
    mock_create.assert_called_once()
    args, kwargs = mock_create.call_args
    assert args[0].startswith("postgresql+asyncpg://")
    assert kwargs["pool_size"] == 5


def test_concurrent_first_use_builds_one_engine():
    barrier = threading.Barrier(8)
    results = []

    def slow_engine(*args, **kwargs):
        time.sleep(0.01)
        return MagicMock(name="engine")

    def worker():
        barrier.wait()
        results.append(database.get_engine())

    with patch(
        "casenote.core.database.create_async_engine", side_effect=slow_engine
    ) as mock_create:
        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

    mock_create.assert_called_once()
    assert len({id(engine) for engine in results}) == 1


def test_session_factory_is_singleton():
    with patch("casenote.core.database.create_async_engine") as mock_create:
        mock_create.return_value = MagicMock(name="engine")
        assert database.get_session_factory() is database.get_session_factory()


@pytest.mark.asyncio
async def test_dispose_engine_resets_state():
    engine = MagicMock(name="engine")
    engine.dispose = AsyncMock()
    database._engine = engine
    database._session_factory = MagicMock(name="factory")

    await database.dispose_engine()

    engine.dispose.assert_awaited_once()
    assert database._engine is None
    assert database._session_factory is None


@pytest.mark.asyncio
async def test_dispose_without_engine_is_noop():
    await database.dispose_engine()
    assert database._engine is None
