"""SQLite-backed table holding memoized function results."""

from typing import Optional
from sqlalchemy import Column, Index, Integer, LargeBinary, Text, text
from sqlmodel import SQLModel, Field


class CacheRecord(SQLModel, table=True):
    """One memoized result for a (function, args) pair.

    No uniqueness constraint: concurrent misses may write duplicate rows and
    reads pick the most recent one.
    """

    __tablename__ = "cache"
    __table_args__ = (
        Index("ix_cache_function_args", "function", "args"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    function: str = Field(sa_column=Column(Text, nullable=False))
    args: str = Field(sa_column=Column(Text, nullable=False))
    result: bytes = Field(sa_column=Column(LargeBinary, nullable=False))
    timestamp: int = Field(
        sa_column=Column(
            Integer,
            nullable=False,
            server_default=text("(strftime('%s', 'now'))")
        )
    )  # Unix seconds, UTC
