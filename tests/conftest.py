import os
import pathlib
import sys

import pytest
from dependency_injector import providers

# Ensure repo root is on PYTHONPATH for direct package imports.
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from persistent_cache.core.cache import CacheEngine  # noqa: E402
from persistent_cache.core.codec import create_codec  # noqa: E402
from persistent_cache.core.config import Settings  # noqa: E402
from persistent_cache.core.container import (  # noqa: E402
    container,
    reset_cache_engine,
    set_cache_engine,
)
from persistent_cache.core.database import RecordStore  # noqa: E402


def _env_flag(name: str) -> bool:
    v = (os.environ.get(name) or '').strip().lower()
    return v in {'1', 'true', 'yes', 'y', 'on'}


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "slow: tests that sleep on the real clock (skipped unless PERSISTENT_CACHE_RUN_SLOW=1)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_slow = _env_flag('PERSISTENT_CACHE_RUN_SLOW')
    for item in items:
        if 'slow' in item.keywords and not run_slow:
            item.add_marker(pytest.mark.skip(reason='slow tests skipped; set PERSISTENT_CACHE_RUN_SLOW=1 to enable'))


class FakeClock:
    """Manually advanced wall clock shared by a store and its engine."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "cache.db")


@pytest.fixture
def store(db_path, clock):
    store = RecordStore(db_path, clock=clock)
    store.startup()
    yield store
    store.shutdown()


@pytest.fixture
def engine(store, clock) -> CacheEngine:
    return CacheEngine(store, create_codec("json"), clock=clock)


@pytest.fixture
def installed_engine(engine):
    """Engine installed as the process-wide singleton for memoized calls."""
    set_cache_engine(engine)
    yield engine
    reset_cache_engine()


@pytest.fixture
def container_settings(db_path):
    """Point the container at a temporary database and build lazily."""
    reset_cache_engine()
    container.settings.override(providers.Object(Settings(db_path=db_path)))
    yield db_path
    container.settings.reset_override()
    reset_cache_engine()
