# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Storage for per-user Slack settings: the Slack user ID, the webhook
notification flag and the reaction emoji mapping.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from reactodo.database import Database, storage_operation
from reactodo.models import EmojiUrgencyMap, UserSlackProfile


logger = logging.getLogger(__name__)


class UserStore(ABC):

    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[UserSlackProfile]:
        ...

    @abstractmethod
    async def set_slack_user_id(self, user_id: str, slack_user_id: Optional[str]) -> None:
        """Store the Slack user ID, or clear it when ``slack_user_id`` is None."""

    @abstractmethod
    async def get_emoji_settings(self, user_id: str) -> Any:
        """
        Raw stored emoji mapping.

        Callers normalize the value; it may be None, a list of rows or a
        single row.
        """

    @abstractmethod
    async def save_emoji_settings(self, user_id: str, mapping: EmojiUrgencyMap) -> None:
        ...

    @abstractmethod
    async def delete_emoji_settings(self, user_id: str) -> None:
        ...


class InMemoryUserStore(UserStore):

    def __init__(self):
        self.profiles: Dict[str, UserSlackProfile] = {}
        self.emoji_settings: Dict[str, Any] = {}

    async def get_profile(self, user_id: str) -> Optional[UserSlackProfile]:
        profile = self.profiles.get(user_id)
        return profile.model_copy() if profile else None

    async def set_slack_user_id(self, user_id: str, slack_user_id: Optional[str]) -> None:
        profile = self.profiles.get(user_id) or UserSlackProfile(user_id=user_id)
        self.profiles[user_id] = profile.model_copy(update={'slack_user_id': slack_user_id})

    async def get_emoji_settings(self, user_id: str) -> Any:
        return self.emoji_settings.get(user_id)

    async def save_emoji_settings(self, user_id: str, mapping: EmojiUrgencyMap) -> None:
        self.emoji_settings[user_id] = mapping.model_dump()

    async def delete_emoji_settings(self, user_id: str) -> None:
        self.emoji_settings.pop(user_id, None)


class PostgresUserStore(UserStore):

    def __init__(self, database: Database):
        self.database = database

    async def get_profile(self, user_id: str) -> Optional[UserSlackProfile]:
        async with storage_operation("get_profile"):
            async with self.database.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT user_id, slack_user_id, webhook_notifications_enabled
                    FROM user_slack_profiles WHERE user_id = $1
                    """,
                    user_id
                )
        if not row:
            return None
        return UserSlackProfile(
            user_id=row['user_id'],
            slack_user_id=row['slack_user_id'],
            webhook_notifications_enabled=row['webhook_notifications_enabled'],
        )

    async def set_slack_user_id(self, user_id: str, slack_user_id: Optional[str]) -> None:
        async with storage_operation("set_slack_user_id"):
            async with self.database.pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO user_slack_profiles (user_id, slack_user_id)
                    VALUES ($1, $2)
                    ON CONFLICT (user_id) DO UPDATE SET
                        slack_user_id = EXCLUDED.slack_user_id,
                        updated_at = NOW()
                    """,
                    user_id,
                    slack_user_id
                )
        logger.info(
            "Updated Slack user ID",
            extra={'user_id': user_id, 'cleared': slack_user_id is None}
        )

    async def get_emoji_settings(self, user_id: str) -> Any:
        async with storage_operation("get_emoji_settings"):
            async with self.database.pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT today_emoji, tomorrow_emoji, later_emoji
                    FROM user_emoji_settings WHERE user_id = $1
                    """,
                    user_id
                )
        return [dict(row) for row in rows] or None

    async def save_emoji_settings(self, user_id: str, mapping: EmojiUrgencyMap) -> None:
        async with storage_operation("save_emoji_settings"):
            async with self.database.pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO user_emoji_settings (user_id, today_emoji, tomorrow_emoji, later_emoji)
                    VALUES ($1, $2, $3, $4)
                    ON CONFLICT (user_id) DO UPDATE SET
                        today_emoji = EXCLUDED.today_emoji,
                        tomorrow_emoji = EXCLUDED.tomorrow_emoji,
                        later_emoji = EXCLUDED.later_emoji,
                        updated_at = NOW()
                    """,
                    user_id,
                    mapping.today_emoji,
                    mapping.tomorrow_emoji,
                    mapping.later_emoji
                )

    async def delete_emoji_settings(self, user_id: str) -> None:
        async with storage_operation("delete_emoji_settings"):
            async with self.database.pool.acquire() as conn:
                await conn.execute("DELETE FROM user_emoji_settings WHERE user_id = $1", user_id)
