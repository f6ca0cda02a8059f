"""Environment-driven configuration with Pydantic v2."""

from typing import Literal, Optional
from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Cache settings driven entirely by environment variables."""

    # Storage
    db_path: str = Field(default="cache.db")
    database_echo: bool = Field(default=False)
    busy_timeout: float = Field(default=30.0, gt=0, le=600)  # seconds waited on a locked database

    # Serialization
    codec: Literal["json", "pickle"] = Field(default="json")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["console", "json"] = Field(default="console")
    log_file: Optional[str] = Field(default=None)

    @field_validator("db_path")
    @classmethod
    def validate_db_path(cls, v):
        """Ensure database directory exists for SQLite."""
        if v:
            Path(v).parent.mkdir(parents=True, exist_ok=True)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    model_config = {
        "env_prefix": "PERSISTENT_CACHE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
    }
