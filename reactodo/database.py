# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
PostgreSQL connection pool and schema.

A single asyncpg pool shared by the Postgres-backed stores.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import asyncpg

from reactodo.errors import StorageError


logger = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS user_slack_profiles (
    user_id VARCHAR(255) PRIMARY KEY,
    slack_user_id VARCHAR(32),
    webhook_notifications_enabled BOOLEAN NOT NULL DEFAULT TRUE,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS slack_connections (
    id UUID PRIMARY KEY,
    user_id VARCHAR(255) NOT NULL,
    workspace_id VARCHAR(32) NOT NULL,
    workspace_name VARCHAR(255) NOT NULL,
    team_name VARCHAR(255) NOT NULL,
    access_token TEXT NOT NULL,
    scope TEXT NOT NULL DEFAULT '',
    bot_user_id VARCHAR(32),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (user_id, workspace_id)
);

CREATE TABLE IF NOT EXISTS user_slack_webhooks (
    id UUID PRIMARY KEY,
    user_id VARCHAR(255) NOT NULL,
    slack_connection_id UUID NOT NULL REFERENCES slack_connections(id) ON DELETE CASCADE,
    webhook_id VARCHAR(64) NOT NULL UNIQUE,
    webhook_secret VARCHAR(128) NOT NULL,
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    event_count INTEGER NOT NULL DEFAULT 0,
    last_event_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (user_id, slack_connection_id)
);

CREATE TABLE IF NOT EXISTS slack_event_processed (
    event_key TEXT PRIMARY KEY,
    user_id VARCHAR(255) NOT NULL,
    channel_id VARCHAR(64) NOT NULL DEFAULT '',
    message_ts VARCHAR(64) NOT NULL DEFAULT '',
    reaction VARCHAR(128) NOT NULL DEFAULT '',
    todo_id UUID,
    processed_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS user_emoji_settings (
    user_id VARCHAR(255) PRIMARY KEY,
    today_emoji VARCHAR(64) NOT NULL,
    tomorrow_emoji VARCHAR(64) NOT NULL,
    later_emoji VARCHAR(64) NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS todos (
    id UUID PRIMARY KEY,
    user_id VARCHAR(255) NOT NULL,
    title TEXT NOT NULL,
    body TEXT NOT NULL,
    urgency VARCHAR(16) NOT NULL,
    deadline DATE,
    created_via VARCHAR(32) NOT NULL DEFAULT 'manual',
    status VARCHAR(16) NOT NULL DEFAULT 'open',
    importance_score DOUBLE PRECISION NOT NULL DEFAULT 0.5,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_slack_connections_user ON slack_connections(user_id);
CREATE INDEX IF NOT EXISTS idx_user_slack_webhooks_user ON user_slack_webhooks(user_id);
CREATE INDEX IF NOT EXISTS idx_todos_user ON todos(user_id);
"""


class Database:
    """Owns the asyncpg pool used by the Postgres stores."""

    def __init__(self, database_url: str, min_size: int = 2, max_size: int = 10):
        self.database_url = database_url
        self.min_size = min_size
        self.max_size = max_size
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    async def connect(self) -> None:
        if self._pool is None:
            logger.info("Creating database connection pool")
            self._pool = await asyncpg.create_pool(
                self.database_url,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=30
            )
            logger.info("Database connection pool created")

    async def disconnect(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Database connection pool closed")

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

    async def initialize_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        logger.info("Initializing database schema")
        async with self.pool.acquire() as conn:
            await conn.execute(SCHEMA_SQL)
        logger.info("Database schema initialized")



def parse_uuid(value: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


@asynccontextmanager
async def storage_operation(operation: str):
    """Translate driver errors raised inside the block into StorageError."""
    try:
        yield
    except asyncpg.PostgresError as e:
        logger.error(
            "Database operation failed",
            extra={'operation': operation, 'error': str(e)}
        )
        raise StorageError(f"{operation} failed: {type(e).__name__}", operation=operation, original_error=e) from e
