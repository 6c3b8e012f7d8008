"""
Configuration management for File Relay.

Uses pydantic-settings to load configuration from environment variables
and .env files.
"""

import re
from functools import lru_cache
from pathlib import Path
from typing import Literal
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Source / archive directories
    source_dir: Path = Path("/var/lib/file-relay/inbox")
    archive_dir: Path = Path("/var/lib/file-relay/processed")
    quarantine_dir_name: str = ".failed"
    done_dir_name: str = ".done"
    success_action: Literal["delete", "move"] = "delete"
    archive_extension: str = "txt"

    # Relational store
    database_url: str = "sqlite:///file-relay.db"
    messages_table: str = "messages"
    create_table_on_start: bool = True

    # Dispatch Configuration
    branch_timeout: float = 30.0  # seconds
    dispatch_workers: int = 4
    ingest_workers: int = 1
    settle_seconds: float = 0.2

    # API Configuration
    api_port: int = 8000
    log_level: str = "INFO"
    api_title: str = "File Relay API"
    api_version: str = "1.0.0"
    start_watcher_with_api: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("messages_table")
    @classmethod
    def _check_table_name(cls, value: str) -> str:
        # Interpolated into SQL text, so only plain identifiers are allowed
        if not _TABLE_NAME.match(value):
            raise ValueError(f"Invalid table name: {value!r}")
        return value

    @field_validator("archive_extension")
    @classmethod
    def _strip_extension_dot(cls, value: str) -> str:
        return value.lstrip(".")

    @property
    def quarantine_dir(self) -> Path:
        """Directory failed source files are moved into."""
        return self.source_dir / self.quarantine_dir_name

    @property
    def done_dir(self) -> Path:
        """Directory handled source files are moved into when success_action is 'move'."""
        return self.source_dir / self.done_dir_name


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
