"""Cache engine over the SQLite record store.

Expiration is lazy: an entry is checked against its TTL when it is read and
deleted then. There is no background sweep, so expired rows for keys that are
never read again stay in the file.
"""

import time
from typing import Any, Callable, Tuple

from persistent_cache.core.codec import Codec
from persistent_cache.core.database import RecordStore
from persistent_cache.core.exceptions import CodecError
from persistent_cache.core.logging import get_logger, log_cache_operation

logger = get_logger(__name__)


class CacheEngine:
    """Reads and writes memoized results for one record store.

    Read-path problems (missing, expired, undecodable) all come back as a
    miss, and write-path problems are logged and dropped, so the caller of a
    memoized function never sees a cache error.
    """

    def __init__(self, store: RecordStore, codec: Codec,
                 clock: Callable[[], float] = time.time):
        self.store = store
        self.codec = codec
        self.clock = clock

    def startup(self) -> None:
        """Open the backing store. Raises CacheStoreError on failure."""
        self.store.startup()

    def shutdown(self) -> None:
        self.store.shutdown()

    def get(self, function_id: str, argument_key: str, ttl: float,
            result_type: Any = Any) -> Tuple[Any, bool]:
        """Look up a live entry.

        Args:
            function_id: Identifier of the memoized function
            argument_key: Key derived from the call arguments
            ttl: Lifetime of an entry in seconds
            result_type: Annotation the payload is decoded against

        Returns:
            ``(value, True)`` on a hit, ``(None, False)`` otherwise
        """
        row = self.store.lookup(function_id, argument_key)
        if row is None:
            log_cache_operation(logger, "get", argument_key, hit=False, function=function_id)
            return None, False

        payload, created_at = row
        if self.clock() >= created_at + ttl:
            self.store.delete(function_id, argument_key)
            log_cache_operation(logger, "expire", argument_key, hit=False,
                                function=function_id, created_at=created_at)
            return None, False

        try:
            value = self.codec.decode(payload, result_type)
        except CodecError as e:
            # Left in place; it expires like any other row
            logger.debug("Deserialization error", function=function_id, key=argument_key, error=str(e))
            return None, False

        log_cache_operation(logger, "get", argument_key, hit=True, function=function_id)
        return value, True

    def set(self, function_id: str, argument_key: str, value: Any,
            result_type: Any = Any) -> bool:
        """Store a result. Returns False when nothing was written."""
        try:
            payload = self.codec.encode(value, result_type)
        except CodecError as e:
            logger.debug("Serialization error", function=function_id, key=argument_key, error=str(e))
            return False

        written = self.store.insert(function_id, argument_key, payload)
        if written:
            log_cache_operation(logger, "set", argument_key, function=function_id,
                                size=len(payload))
        return written

    def invalidate(self, function_id: str) -> int:
        """Drop every entry recorded for a function."""
        deleted = self.store.delete_all(function_id)
        log_cache_operation(logger, "invalidate", function_id, deleted=deleted)
        return deleted
