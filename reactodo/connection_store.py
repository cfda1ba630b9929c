# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Storage for Slack workspace connections and their webhooks.

ConnectionStore is the interface the services depend on. The in-memory
implementation backs tests and local runs without a database; the
Postgres implementation encrypts access tokens at rest.
"""

import logging
import secrets
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from reactodo.database import Database, parse_uuid, storage_operation
from reactodo.encryption import TokenCipher
from reactodo.models import Connection, Webhook, utcnow
from reactodo.oauth_validator import ValidatedConnection


logger = logging.getLogger(__name__)


def generate_webhook_id() -> str:
    """URL-safe identifier from 32 random bytes."""
    return secrets.token_urlsafe(32)


def generate_webhook_secret() -> str:
    return secrets.token_hex(64)


class ConnectionStore(ABC):
    """Persistence for connections and webhook registrations."""

    @abstractmethod
    async def upsert_connection(self, user_id: str, validated: ValidatedConnection) -> Connection:
        """Insert or update the connection keyed by (user_id, workspace_id)."""

    @abstractmethod
    async def get_connection(self, connection_id: str) -> Optional[Connection]:
        ...

    @abstractmethod
    async def list_connections(self, user_id: str) -> List[Connection]:
        ...

    @abstractmethod
    async def delete_connection(self, connection_id: str) -> bool:
        ...

    @abstractmethod
    async def get_webhook(self, webhook_id: str) -> Optional[Webhook]:
        """Look up a webhook by its public identifier."""

    @abstractmethod
    async def get_webhook_for_connection(self, user_id: str, connection_id: str) -> Optional[Webhook]:
        ...

    @abstractmethod
    async def list_webhooks(self, user_id: str) -> List[Webhook]:
        ...

    @abstractmethod
    async def create_webhook(self, user_id: str, connection_id: str) -> Webhook:
        ...

    @abstractmethod
    async def set_webhook_active(self, webhook_id: str, is_active: bool) -> Optional[Webhook]:
        ...

    @abstractmethod
    async def record_webhook_event(self, webhook_id: str, at: Optional[datetime] = None) -> None:
        """Increment the event counter and stamp the last event time."""

    @abstractmethod
    async def delete_webhooks_for_connections(self, connection_ids: Iterable[str]) -> int:
        """Remove every webhook attached to the given connections."""


class InMemoryConnectionStore(ConnectionStore):
    """Dictionary-backed store."""

    def __init__(self):
        self.connections: Dict[str, Connection] = {}
        self.webhooks: Dict[str, Webhook] = {}

    async def upsert_connection(self, user_id: str, validated: ValidatedConnection) -> Connection:
        for existing in self.connections.values():
            if existing.user_id == user_id and existing.workspace_id == validated.workspace_id:
                existing.workspace_name = validated.workspace_name
                existing.team_name = validated.team_name
                existing.access_token = validated.access_token
                existing.scope = validated.scope
                existing.bot_user_id = validated.bot_user_id
                existing.updated_at = utcnow()
                return existing.model_copy()

        connection = Connection(
            id=str(uuid.uuid4()),
            user_id=user_id,
            workspace_id=validated.workspace_id,
            workspace_name=validated.workspace_name,
            team_name=validated.team_name,
            access_token=validated.access_token,
            scope=validated.scope,
            bot_user_id=validated.bot_user_id,
        )
        self.connections[connection.id] = connection
        return connection.model_copy()

    async def get_connection(self, connection_id: str) -> Optional[Connection]:
        connection = self.connections.get(connection_id)
        return connection.model_copy() if connection else None

    async def list_connections(self, user_id: str) -> List[Connection]:
        return [c.model_copy() for c in self.connections.values() if c.user_id == user_id]

    async def delete_connection(self, connection_id: str) -> bool:
        if self.connections.pop(connection_id, None) is None:
            return False
        # Mirror ON DELETE CASCADE
        for key in [k for k, w in self.webhooks.items() if w.connection_id == connection_id]:
            del self.webhooks[key]
        return True

    async def get_webhook(self, webhook_id: str) -> Optional[Webhook]:
        webhook = self.webhooks.get(webhook_id)
        return webhook.model_copy() if webhook else None

    async def get_webhook_for_connection(self, user_id: str, connection_id: str) -> Optional[Webhook]:
        for webhook in self.webhooks.values():
            if webhook.user_id == user_id and webhook.connection_id == connection_id:
                return webhook.model_copy()
        return None

    async def list_webhooks(self, user_id: str) -> List[Webhook]:
        return [w.model_copy() for w in self.webhooks.values() if w.user_id == user_id]

    async def create_webhook(self, user_id: str, connection_id: str) -> Webhook:
        webhook = Webhook(
            id=str(uuid.uuid4()),
            user_id=user_id,
            connection_id=connection_id,
            webhook_id=generate_webhook_id(),
            webhook_secret=generate_webhook_secret(),
        )
        self.webhooks[webhook.webhook_id] = webhook
        return webhook.model_copy()

    async def set_webhook_active(self, webhook_id: str, is_active: bool) -> Optional[Webhook]:
        webhook = self.webhooks.get(webhook_id)
        if webhook is None:
            return None
        webhook.is_active = is_active
        webhook.updated_at = utcnow()
        return webhook.model_copy()

    async def record_webhook_event(self, webhook_id: str, at: Optional[datetime] = None) -> None:
        webhook = self.webhooks.get(webhook_id)
        if webhook is not None:
            webhook.event_count += 1
            webhook.last_event_at = at or utcnow()

    async def delete_webhooks_for_connections(self, connection_ids: Iterable[str]) -> int:
        targets = set(connection_ids)
        doomed = [k for k, w in self.webhooks.items() if w.connection_id in targets]
        for key in doomed:
            del self.webhooks[key]
        return len(doomed)


class PostgresConnectionStore(ConnectionStore):
    """
    PostgreSQL-backed store.

    Access tokens are sealed with TokenCipher before they are written and
    opened again when rows are read.
    """

    def __init__(self, database: Database, cipher: TokenCipher):
        self.database = database
        self.cipher = cipher

    def _to_connection(self, row) -> Connection:
        return Connection(
            id=str(row['id']),
            user_id=row['user_id'],
            workspace_id=row['workspace_id'],
            workspace_name=row['workspace_name'],
            team_name=row['team_name'],
            access_token=self.cipher.decrypt(row['access_token']),
            scope=row['scope'],
            bot_user_id=row['bot_user_id'],
            created_at=row['created_at'],
            updated_at=row['updated_at'],
        )

    @staticmethod
    def _to_webhook(row) -> Webhook:
        return Webhook(
            id=str(row['id']),
            user_id=row['user_id'],
            connection_id=str(row['slack_connection_id']),
            webhook_id=row['webhook_id'],
            webhook_secret=row['webhook_secret'],
            is_active=row['is_active'],
            event_count=row['event_count'],
            last_event_at=row['last_event_at'],
            created_at=row['created_at'],
            updated_at=row['updated_at'],
        )

    async def upsert_connection(self, user_id: str, validated: ValidatedConnection) -> Connection:
        query = """
        INSERT INTO slack_connections (
            id, user_id, workspace_id, workspace_name, team_name,
            access_token, scope, bot_user_id
        ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
        ON CONFLICT (user_id, workspace_id) DO UPDATE SET
            workspace_name = EXCLUDED.workspace_name,
            team_name = EXCLUDED.team_name,
            access_token = EXCLUDED.access_token,
            scope = EXCLUDED.scope,
            bot_user_id = EXCLUDED.bot_user_id,
            updated_at = NOW()
        RETURNING *
        """
        async with storage_operation("upsert_connection"):
            async with self.database.pool.acquire() as conn:
                row = await conn.fetchrow(
                    query,
                    uuid.uuid4(),
                    user_id,
                    validated.workspace_id,
                    validated.workspace_name,
                    validated.team_name,
                    self.cipher.encrypt(validated.access_token),
                    validated.scope,
                    validated.bot_user_id,
                )

        logger.info(
            "Upserted Slack connection",
            extra={'user_id': user_id, 'workspace_id': validated.workspace_id}
        )
        return self._to_connection(row)

    async def get_connection(self, connection_id: str) -> Optional[Connection]:
        key = parse_uuid(connection_id)
        if key is None:
            return None
        async with storage_operation("get_connection"):
            async with self.database.pool.acquire() as conn:
                row = await conn.fetchrow(
                    "SELECT * FROM slack_connections WHERE id = $1", key
                )
        return self._to_connection(row) if row else None

    async def list_connections(self, user_id: str) -> List[Connection]:
        async with storage_operation("list_connections"):
            async with self.database.pool.acquire() as conn:
                rows = await conn.fetch(
                    "SELECT * FROM slack_connections WHERE user_id = $1 ORDER BY created_at",
                    user_id
                )
        return [self._to_connection(row) for row in rows]

    async def delete_connection(self, connection_id: str) -> bool:
        key = parse_uuid(connection_id)
        if key is None:
            return False
        async with storage_operation("delete_connection"):
            async with self.database.pool.acquire() as conn:
                result = await conn.execute(
                    "DELETE FROM slack_connections WHERE id = $1", key
                )
        # asyncpg returns "DELETE <count>"
        return result.split()[-1] != "0"

    async def get_webhook(self, webhook_id: str) -> Optional[Webhook]:
        async with storage_operation("get_webhook"):
            async with self.database.pool.acquire() as conn:
                row = await conn.fetchrow(
                    "SELECT * FROM user_slack_webhooks WHERE webhook_id = $1", webhook_id
                )
        return self._to_webhook(row) if row else None

    async def get_webhook_for_connection(self, user_id: str, connection_id: str) -> Optional[Webhook]:
        key = parse_uuid(connection_id)
        if key is None:
            return None
        async with storage_operation("get_webhook_for_connection"):
            async with self.database.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT * FROM user_slack_webhooks
                    WHERE user_id = $1 AND slack_connection_id = $2
                    """,
                    user_id,
                    key
                )
        return self._to_webhook(row) if row else None

    async def list_webhooks(self, user_id: str) -> List[Webhook]:
        async with storage_operation("list_webhooks"):
            async with self.database.pool.acquire() as conn:
                rows = await conn.fetch(
                    "SELECT * FROM user_slack_webhooks WHERE user_id = $1 ORDER BY created_at",
                    user_id
                )
        return [self._to_webhook(row) for row in rows]

    async def create_webhook(self, user_id: str, connection_id: str) -> Webhook:
        async with storage_operation("create_webhook"):
            async with self.database.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO user_slack_webhooks (
                        id, user_id, slack_connection_id, webhook_id, webhook_secret
                    ) VALUES ($1, $2, $3, $4, $5)
                    RETURNING *
                    """,
                    uuid.uuid4(),
                    user_id,
                    uuid.UUID(connection_id),
                    generate_webhook_id(),
                    generate_webhook_secret(),
                )
        return self._to_webhook(row)

    async def set_webhook_active(self, webhook_id: str, is_active: bool) -> Optional[Webhook]:
        async with storage_operation("set_webhook_active"):
            async with self.database.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    UPDATE user_slack_webhooks
                    SET is_active = $2, updated_at = NOW()
                    WHERE webhook_id = $1
                    RETURNING *
                    """,
                    webhook_id,
                    is_active
                )
        return self._to_webhook(row) if row else None

    async def record_webhook_event(self, webhook_id: str, at: Optional[datetime] = None) -> None:
        async with storage_operation("record_webhook_event"):
            async with self.database.pool.acquire() as conn:
                await conn.execute(
                    """
                    UPDATE user_slack_webhooks
                    SET event_count = event_count + 1,
                        last_event_at = $2,
                        updated_at = NOW()
                    WHERE webhook_id = $1
                    """,
                    webhook_id,
                    at or utcnow()
                )

    async def delete_webhooks_for_connections(self, connection_ids: Iterable[str]) -> int:
        ids = [key for key in (parse_uuid(cid) for cid in connection_ids) if key is not None]
        if not ids:
            return 0
        async with storage_operation("delete_webhooks_for_connections"):
            async with self.database.pool.acquire() as conn:
                result = await conn.execute(
                    "DELETE FROM user_slack_webhooks WHERE slack_connection_id = ANY($1::uuid[])",
                    ids
                )
        return int(result.split()[-1])
