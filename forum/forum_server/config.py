"""
Configuration management for the forum server.

All configuration is done via environment variables with the FORUM_ prefix.
Uses pydantic-settings for loading and validation.

Invariants:
    - All settings have sensible defaults for local development
    - page_size and recent_window_hours are always positive

How to change safely:
    - Add new settings with defaults that keep existing deployments working
    - Never rename an env variable without supporting the old name
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Forum server configuration loaded from environment."""

    # Storage
    data_dir: str = Field(default="/var/lib/forum", description="Directory for SQLite files")
    content_db_name: str = Field(default="content.db", description="Content store file name")
    acl_db_name: str = Field(default="acl.db", description="ACL store file name")
    wal_mode: bool = Field(default=True, description="Enable SQLite WAL journal mode")
    busy_timeout_ms: int = Field(default=5000, description="SQLite busy timeout")
    cache_size_pages: int = Field(default=-64000, description="SQLite cache size (negative = KB)")

    # Listings
    page_size: int = Field(default=50, description="Topics per page")
    recent_window_hours: int = Field(default=24, description="Recency window for recent topics")

    # Security
    admin_role: str = Field(default="ROLE_ADMIN", description="Role granted admin on new content")

    # Observability
    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING or ERROR")
    log_format: str = Field(default="json", description="json or text")

    model_config = {"env_prefix": "FORUM_"}

    @field_validator("page_size", "recent_window_hours")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "text"):
            raise ValueError(f"Invalid log format '{value}'. Must be one of: json, text")
        return value

    @property
    def admin_principal(self) -> str:
        """Principal string for the administrative role."""
        return f"role:{self.admin_role}"

    @property
    def recent_window_ms(self) -> int:
        return self.recent_window_hours * 3600 * 1000

    @property
    def content_db_path(self) -> Path:
        return Path(self.data_dir) / self.content_db_name

    @property
    def acl_db_path(self) -> Path:
        return Path(self.data_dir) / self.acl_db_name

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Forum configuration loaded",
            extra={
                "data_dir": self.data_dir,
                "wal_mode": self.wal_mode,
                "page_size": self.page_size,
                "recent_window_hours": self.recent_window_hours,
                "admin_role": self.admin_role,
                "log_level": self.log_level,
            },
        )
