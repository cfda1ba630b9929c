# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Storage for processed reaction events.

The insert-if-absent operation is the only synchronization point of the
webhook pipeline: exactly one caller inserts a given event key.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

import asyncpg

from reactodo.database import Database, parse_uuid, storage_operation
from reactodo.models import ProcessedEvent


logger = logging.getLogger(__name__)


class ProcessedEventStore(ABC):

    @abstractmethod
    async def find(self, event_key: str) -> Optional[ProcessedEvent]:
        ...

    @abstractmethod
    async def insert_if_absent(self, record: ProcessedEvent) -> bool:
        """
        Atomically insert a record unless its key exists.

        Returns:
            True if this call inserted the record, False if the key was
            already present
        """

    @abstractmethod
    async def attach_todo(self, event_key: str, todo_id: str) -> None:
        ...

    @abstractmethod
    async def delete_pending(self, event_key: str) -> bool:
        """Remove a record that has no task attached yet."""


class InMemoryProcessedEventStore(ProcessedEventStore):

    def __init__(self):
        self.events: Dict[str, ProcessedEvent] = {}
        self._lock = asyncio.Lock()

    async def find(self, event_key: str) -> Optional[ProcessedEvent]:
        record = self.events.get(event_key)
        return record.model_copy() if record else None

    async def insert_if_absent(self, record: ProcessedEvent) -> bool:
        async with self._lock:
            if record.event_key in self.events:
                return False
            self.events[record.event_key] = record.model_copy()
            return True

    async def attach_todo(self, event_key: str, todo_id: str) -> None:
        async with self._lock:
            record = self.events.get(event_key)
            if record is None:
                raise KeyError(event_key)
            record.todo_id = todo_id

    async def delete_pending(self, event_key: str) -> bool:
        async with self._lock:
            record = self.events.get(event_key)
            if record is None or record.todo_id is not None:
                return False
            del self.events[event_key]
            return True


class PostgresProcessedEventStore(ProcessedEventStore):

    def __init__(self, database: Database):
        self.database = database

    @staticmethod
    def _to_record(row) -> ProcessedEvent:
        return ProcessedEvent(
            event_key=row['event_key'],
            user_id=row['user_id'],
            channel_id=row['channel_id'],
            message_ts=row['message_ts'],
            reaction=row['reaction'],
            todo_id=str(row['todo_id']) if row['todo_id'] else None,
            processed_at=row['processed_at'],
        )

    async def find(self, event_key: str) -> Optional[ProcessedEvent]:
        async with storage_operation("find_processed_event"):
            async with self.database.pool.acquire() as conn:
                row = await conn.fetchrow(
                    "SELECT * FROM slack_event_processed WHERE event_key = $1", event_key
                )
        return self._to_record(row) if row else None

    async def insert_if_absent(self, record: ProcessedEvent) -> bool:
        query = """
        INSERT INTO slack_event_processed (
            event_key, user_id, channel_id, message_ts, reaction, processed_at
        ) VALUES ($1, $2, $3, $4, $5, $6)
        ON CONFLICT (event_key) DO NOTHING
        RETURNING event_key
        """
        async with storage_operation("insert_processed_event"):
            try:
                async with self.database.pool.acquire() as conn:
                    inserted = await conn.fetchval(
                        query,
                        record.event_key,
                        record.user_id,
                        record.channel_id,
                        record.message_ts,
                        record.reaction,
                        record.processed_at,
                    )
            except asyncpg.UniqueViolationError:
                logger.info(
                    "Processed event already recorded",
                    extra={'event_key': record.event_key}
                )
                return False
        return inserted is not None

    async def attach_todo(self, event_key: str, todo_id: str) -> None:
        async with storage_operation("attach_todo"):
            async with self.database.pool.acquire() as conn:
                result = await conn.execute(
                    "UPDATE slack_event_processed SET todo_id = $2 WHERE event_key = $1",
                    event_key,
                    parse_uuid(todo_id)
                )
        if result.split()[-1] == "0":
            raise KeyError(event_key)

    async def delete_pending(self, event_key: str) -> bool:
        async with storage_operation("delete_pending_event"):
            async with self.database.pool.acquire() as conn:
                result = await conn.execute(
                    "DELETE FROM slack_event_processed WHERE event_key = $1 AND todo_id IS NULL",
                    event_key
                )
        return result.split()[-1] != "0"
