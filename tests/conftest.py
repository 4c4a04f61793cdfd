"""Pytest configuration and shared fixtures."""

import sys
import asyncio
import inspect
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

# Ensure src directory is in Python path for all tests
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from todomvc_sync.cache import LocalCacheStore
from todomvc_sync.config import Config
from todomvc_sync.domain import TodoRecord
from todomvc_sync.remote import RemoteSyncClient


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):
    """Execute async tests without external plugins."""
    testfunction = pyfuncitem.obj
    if inspect.iscoroutinefunction(testfunction):
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            sig = inspect.signature(testfunction)
            call_kwargs = {name: pyfuncitem.funcargs[name] for name in sig.parameters}
            loop.run_until_complete(testfunction(**call_kwargs))
        finally:
            asyncio.set_event_loop(None)
            loop.close()
        return True
    return None


@pytest.fixture
def cache(tmp_path):
    """Cache store rooted in a temporary directory."""
    return LocalCacheStore(tmp_path / "data")


@pytest.fixture
def sample_todos():
    return [
        TodoRecord(id="a1", title="Buy milk", completed=False),
        TodoRecord(id="b2", title="Walk dog", completed=True),
        TodoRecord(id="c3", title="Write report", completed=False),
    ]


@pytest.fixture
def remote():
    """Remote client double whose calls succeed immediately."""
    mock = Mock(spec=RemoteSyncClient)
    mock.fetch_all = AsyncMock(return_value=[])
    mock.create = AsyncMock(return_value="srv-1")
    mock.update = AsyncMock(return_value=True)
    mock.delete = AsyncMock(return_value=True)
    mock.aclose = AsyncMock()
    return mock


@pytest.fixture(autouse=True)
def reset_config(monkeypatch):
    """Keep config singletons and environment overrides out of other tests."""
    for env_var in ("TODOMVC_API_URL", "TODOMVC_DATA_DIR", "TODOMVC_STORAGE_KEY"):
        monkeypatch.delenv(env_var, raising=False)
    Config._instance = None
    yield
    Config._instance = None
