# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
At-most-once task creation per reaction event.

Slack delivers events at least once and retries on slow responses, so
the same reaction can arrive several times, sometimes concurrently. The
guard keys each reaction as ``channel:ts:reaction:user`` and lets exactly
one delivery reserve that key.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from reactodo.event_store import ProcessedEventStore
from reactodo.models import ProcessedEvent, ReactionEvent


logger = logging.getLogger(__name__)


def event_key(channel_id: str, message_ts: str, reaction: str, reacting_user_id: str) -> str:
    """
    Deterministic deduplication key.

    Empty components are allowed and simply leave an empty segment.
    """
    return f"{channel_id or ''}:{message_ts or ''}:{reaction or ''}:{reacting_user_id or ''}"


def event_key_for(event: ReactionEvent) -> str:
    return event_key(event.item.channel, event.item.ts, event.reaction, event.user)


@dataclass
class IdempotencyCheck:
    """
    Attributes:
        already_processed: Another delivery owns (or finished) this key
        todo_id: Task created for the key, when known
    """
    already_processed: bool
    todo_id: Optional[str] = None


class IdempotencyGuard:
    """Records and checks processed event keys."""

    def __init__(self, store: ProcessedEventStore):
        self.store = store

    async def check(self, key: str) -> IdempotencyCheck:
        """Read-only check used before any work is done."""
        existing = await self.store.find(key)
        if existing is None:
            return IdempotencyCheck(already_processed=False)
        return IdempotencyCheck(already_processed=True, todo_id=existing.todo_id)

    async def reserve(self, record: ProcessedEvent) -> IdempotencyCheck:
        """
        Claim the event key for this delivery.

        Returns:
            ``already_processed=False`` when this caller won the key and
            must go on to create the task
        """
        if await self.store.insert_if_absent(record):
            logger.debug("Reserved event key", extra={'event_key': record.event_key})
            return IdempotencyCheck(already_processed=False)

        logger.info(
            "Duplicate delivery lost the reservation",
            extra={'event_key': record.event_key}
        )
        return await self.check(record.event_key)

    async def complete(self, key: str, todo_id: str) -> None:
        """Attach the created task to the reserved key."""
        await self.store.attach_todo(key, todo_id)

    async def release(self, key: str) -> None:
        """
        Drop a reservation that never produced a task.

        Records that already carry a task are left untouched.
        """
        released = await self.store.delete_pending(key)
        logger.info("Released event reservation", extra={'event_key': key, 'released': released})
