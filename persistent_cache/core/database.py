"""SQLite record store for memoized results, built on SQLModel and SQLAlchemy 2.0."""

import time
from contextlib import contextmanager
from typing import Callable, Optional, Tuple

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, Session, create_engine, select

from persistent_cache.core.exceptions import CacheStoreError
from persistent_cache.core.logging import get_logger
from persistent_cache.models.cache import CacheRecord

logger = get_logger(__name__)


class RecordStore:
    """Persistent table of cache entries.

    Statements run in their own short session, so SQLite's locking serialises
    conflicting writers. Nothing here is guarded by an application lock.
    """

    def __init__(self, db_path: str, echo: bool = False, busy_timeout: float = 30.0,
                 clock: Callable[[], float] = time.time):
        self.db_path = db_path
        self.echo = echo
        self.busy_timeout = busy_timeout
        self.clock = clock
        self.engine = None

    def startup(self) -> None:
        """Open the database file and create the cache table if missing.

        Raises:
            CacheStoreError: the file cannot be opened or the schema created.
        """
        try:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=self.echo,
                connect_args={
                    "check_same_thread": False,
                    "timeout": self.busy_timeout,
                },
            )
            SQLModel.metadata.create_all(self.engine, tables=[CacheRecord.__table__])
            logger.debug("Cache store initialized", db_path=self.db_path)

        except SQLAlchemyError as e:
            logger.error("Cache store startup failed", db_path=self.db_path, error=str(e))
            if self.engine is not None:
                self.engine.dispose()
                self.engine = None
            raise CacheStoreError(self.db_path, str(e)) from e

    def shutdown(self) -> None:
        """Close database connections."""
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
            logger.debug("Cache store connections closed", db_path=self.db_path)

    @contextmanager
    def get_session(self):
        """Get database session.

        Raises:
            CacheStoreError: ``startup`` has not run or ``shutdown`` already has.
        """
        engine = self.engine
        if engine is None:
            raise CacheStoreError(self.db_path, "Cache store not initialized")

        with Session(engine) as session:
            try:
                yield session
            except Exception:
                session.rollback()
                raise

    def insert(self, function_id: str, argument_key: str, payload: bytes) -> bool:
        """Append an entry stamped with the current time."""
        try:
            with self.get_session() as session:
                session.add(CacheRecord(
                    function=function_id,
                    args=argument_key,
                    result=payload,
                    timestamp=int(self.clock()),
                ))
                session.commit()
                return True

        except (SQLAlchemyError, CacheStoreError) as e:
            logger.debug("Cache insert failed", function=function_id, key=argument_key, error=str(e))
            return False

    def lookup(self, function_id: str, argument_key: str) -> Optional[Tuple[bytes, int]]:
        """Return ``(payload, created_at)`` of the newest matching entry, or None."""
        try:
            with self.get_session() as session:
                stmt = (
                    select(CacheRecord.result, CacheRecord.timestamp)
                    .where(CacheRecord.function == function_id, CacheRecord.args == argument_key)
                    .order_by(CacheRecord.timestamp.desc(), CacheRecord.id.desc())
                    .limit(1)
                )
                row = session.exec(stmt).first()
                if row is None:
                    return None
                payload, created_at = row
                return payload, created_at

        except (SQLAlchemyError, CacheStoreError) as e:
            logger.debug("Cache lookup failed", function=function_id, key=argument_key, error=str(e))
            return None

    def delete(self, function_id: str, argument_key: str) -> bool:
        """Remove every entry for (function, key)."""
        try:
            with self.get_session() as session:
                session.execute(
                    delete(CacheRecord).where(
                        CacheRecord.function == function_id,
                        CacheRecord.args == argument_key,
                    )
                )
                session.commit()
                return True

        except (SQLAlchemyError, CacheStoreError) as e:
            logger.debug("Cache delete failed", function=function_id, key=argument_key, error=str(e))
            return False

    def delete_all(self, function_id: str) -> int:
        """Remove all entries for a function. Returns count deleted."""
        try:
            with self.get_session() as session:
                result = session.execute(
                    delete(CacheRecord).where(CacheRecord.function == function_id)
                )
                session.commit()
                return result.rowcount or 0

        except (SQLAlchemyError, CacheStoreError) as e:
            logger.debug("Cache delete failed", function=function_id, error=str(e))
            return 0
