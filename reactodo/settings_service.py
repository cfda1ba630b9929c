# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""Per-user Slack settings: reaction emoji mapping and Slack user ID."""

import logging
from typing import Any, Dict, Optional

from reactodo.emoji_mapping import EmojiMappingResolver
from reactodo.errors import ErrorKind, ServiceResult
from reactodo.models import EmojiUrgencyMap, is_valid_slack_user_id
from reactodo.user_store import UserStore


logger = logging.getLogger(__name__)


class SettingsService:

    def __init__(self, users: UserStore, resolver: EmojiMappingResolver):
        self.users = users
        self.resolver = resolver

    async def get_emoji_settings(self, user_id: str) -> ServiceResult:
        mapping = self.resolver.normalize(await self.users.get_emoji_settings(user_id))
        return ServiceResult.ok({
            **mapping.model_dump(),
            'is_default': self.resolver.is_default(mapping),
            'available': self.resolver.available(),
        })

    async def update_emoji_settings(self, user_id: str, request: Dict[str, Any]) -> ServiceResult:
        """Validate and save a new mapping; every violation is reported."""
        validation = self.resolver.validate_update(request)
        if not validation.is_valid:
            return ServiceResult.fail(ErrorKind.VALIDATION_FAILED, "Invalid emoji settings", validation.errors)

        mapping = EmojiUrgencyMap(
            today_emoji=request['today_emoji'],
            tomorrow_emoji=request['tomorrow_emoji'],
            later_emoji=request['later_emoji'],
        )
        await self.users.save_emoji_settings(user_id, mapping)
        logger.info("Emoji settings updated", extra={'user_id': user_id, **mapping.model_dump()})
        return ServiceResult.ok({**mapping.model_dump(), 'is_default': self.resolver.is_default(mapping)})

    async def reset_emoji_settings(self, user_id: str) -> ServiceResult:
        await self.users.delete_emoji_settings(user_id)
        return ServiceResult.ok({**self.resolver.default.model_dump(), 'is_default': True})

    async def set_slack_user_id(self, user_id: str, slack_user_id: Optional[str]) -> ServiceResult:
        """Store the user's Slack ID; an empty value clears it."""
        value = (slack_user_id or "").strip() or None
        if value is not None and not is_valid_slack_user_id(value):
            return ServiceResult.fail(
                ErrorKind.VALIDATION_FAILED, "Invalid Slack User ID format", ["Invalid Slack User ID format"]
            )
        await self.users.set_slack_user_id(user_id, value)
        return ServiceResult.ok({'slack_user_id': value})
