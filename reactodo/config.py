# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Configuration management for the Reactodo service.

Handles environment variables and application settings.
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class ReactodoConfig:
    """Configuration for the Reactodo service."""

    # Slack OAuth app credentials (required)
    slack_client_id: str
    slack_client_secret: str

    # Encryption of stored access tokens (required)
    encryption_key: str

    # Bearer token verification for UI-facing endpoints (required)
    jwt_secret: str

    # Public base URL used to build webhook URLs (required)
    app_base_url: str

    # Request signature verification; skipped when unset
    slack_signing_secret: Optional[str] = None

    # PostgreSQL; in-memory stores are used when unset
    database_url: Optional[str] = None

    # Title generation
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 3000

    # Logging configuration (optional)
    log_level: str = "INFO"
    log_format: str = "json"

    # External call timeouts (optional)
    message_fetch_timeout_seconds: float = 5.0
    title_timeout_seconds: float = 5.0

    # Retry configuration (optional)
    max_retries: int = 3
    retry_backoff_base: float = 2.0

    @classmethod
    def from_env(cls) -> "ReactodoConfig":
        """Load configuration from environment variables."""
        return cls(
            slack_client_id=os.environ["SLACK_CLIENT_ID"],
            slack_client_secret=os.environ["SLACK_CLIENT_SECRET"],
            encryption_key=os.environ["ENCRYPTION_KEY"],
            jwt_secret=os.environ["JWT_SECRET"],
            app_base_url=os.environ["APP_BASE_URL"].rstrip("/"),
            slack_signing_secret=os.environ.get("SLACK_SIGNING_SECRET") or None,
            database_url=os.environ.get("DATABASE_URL") or None,
            openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
            openai_model=os.environ.get("OPENAI_MODEL", "gpt-4o-mini"),
            host=os.environ.get("HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", "3000")),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            log_format=os.environ.get("LOG_FORMAT", "json"),
            message_fetch_timeout_seconds=float(os.environ.get("MESSAGE_FETCH_TIMEOUT_SECONDS", "5")),
            title_timeout_seconds=float(os.environ.get("TITLE_TIMEOUT_SECONDS", "5")),
            max_retries=int(os.environ.get("MAX_RETRIES", "3")),
            retry_backoff_base=float(os.environ.get("RETRY_BACKOFF_BASE", "2.0")),
        )

    def validate(self) -> None:
        """Validate configuration values."""
        if not self.app_base_url.startswith(("http://", "https://")):
            raise ValueError("APP_BASE_URL must start with http:// or https://")

        if len(self.encryption_key) < 32:
            raise ValueError("ENCRYPTION_KEY must be at least 32 characters")

        if len(self.jwt_secret) < 16:
            raise ValueError("JWT_SECRET must be at least 16 characters")

        if self.message_fetch_timeout_seconds <= 0 or self.message_fetch_timeout_seconds > 30:
            raise ValueError("MESSAGE_FETCH_TIMEOUT_SECONDS must be between 0 and 30")

        if self.title_timeout_seconds <= 0 or self.title_timeout_seconds > 30:
            raise ValueError("TITLE_TIMEOUT_SECONDS must be between 0 and 30")

        if self.max_retries < 0 or self.max_retries > 10:
            raise ValueError("MAX_RETRIES must be between 0 and 10")

        if self.log_format not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be 'json' or 'text'")
