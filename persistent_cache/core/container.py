"""Dependency injection container and the process-wide cache engine."""

import threading
from typing import Optional

from dependency_injector import containers, providers

from persistent_cache.core.cache import CacheEngine
from persistent_cache.core.codec import create_codec
from persistent_cache.core.config import Settings
from persistent_cache.core.database import RecordStore
from persistent_cache.core.logging import get_logger

logger = get_logger(__name__)


class Container(containers.DeclarativeContainer):
    """Cache dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    codec = providers.Factory(
        create_codec,
        name=settings.provided.codec
    )

    record_store = providers.Factory(
        RecordStore,
        db_path=settings.provided.db_path,
        echo=settings.provided.database_echo,
        busy_timeout=settings.provided.busy_timeout
    )

    # Owns the record store it is built with
    cache_engine = providers.Factory(
        CacheEngine,
        store=record_store,
        codec=codec
    )


# Global container instance
container = Container()

_engine: Optional[CacheEngine] = None
_engine_lock = threading.Lock()


def get_cache_engine() -> CacheEngine:
    """Get or create the cache engine singleton.

    Double-checked: the unlocked read serves every call after the first, and
    the engine is only published once its store has started, so no caller
    sees a half-built instance.
    """
    global _engine
    engine = _engine
    if engine is None:
        with _engine_lock:
            if _engine is None:
                settings = container.settings()
                logger.debug("Creating cache engine instance", db_path=settings.db_path)
                engine = container.cache_engine()
                engine.startup()
                _engine = engine
            engine = _engine
    return engine


def set_cache_engine(engine: CacheEngine) -> None:
    """Install ``engine`` as the singleton (tests, embedding applications).

    It is used as given: an engine whose store was never started serves
    every call as a miss and drops every write.
    """
    global _engine
    with _engine_lock:
        _engine = engine


def reset_cache_engine() -> None:
    """Drop the singleton so the next access builds a fresh one."""
    global _engine
    with _engine_lock:
        if _engine is not None:
            _engine.shutdown()
        _engine = None
