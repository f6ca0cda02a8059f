"""Persistent cache exception hierarchy."""


class CacheError(Exception):
    """Base exception for all cache-related errors."""


class CacheStoreError(CacheError):
    """The backing store is not open, or could not be opened with its schema."""

    def __init__(self, db_path: str, message: str):
        self.db_path = db_path
        super().__init__(f"[{db_path}] {message}")


class CodecError(CacheError):
    """A value could not be encoded to, or decoded from, its stored payload."""
