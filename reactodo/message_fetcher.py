# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Retrieval of the message a reaction was added to.

The message is looked up in the channel history first and, when it is a
thread reply, in the replies of recent thread parents. A local timeout
bounds the whole lookup.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from reactodo.models import SlackMessage
from reactodo.slack_api_client import SlackAPIClient, SlackAPIRetryError


logger = logging.getLogger(__name__)


# How far back the thread scan looks for parents.
THREAD_SCAN_LIMIT = 100
REPLIES_LIMIT = 200


class MessageFetchError(Exception):
    """Raised when the reacted message cannot be retrieved."""

    def __init__(self, message: str, reason: str, original_error: Optional[Exception] = None):
        self.message = message
        self.reason = reason
        self.original_error = original_error
        super().__init__(message)


class MessageFetcher:
    """Fetches a single Slack message by channel and timestamp."""

    def __init__(self, slack_client: SlackAPIClient, timeout_seconds: float = 5.0):
        self.slack_client = slack_client
        self.timeout_seconds = timeout_seconds

    async def fetch(self, access_token: str, channel: str, ts: str) -> SlackMessage:
        """
        Fetch the message at ``ts`` in ``channel``.

        Raises:
            MessageFetchError: On timeout, Slack API failure, or when no
                message exists at that timestamp
        """
        try:
            raw = await asyncio.wait_for(
                self._lookup(access_token, channel, ts),
                timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            logger.warning(
                "Timed out fetching Slack message",
                extra={'channel': channel, 'ts': ts, 'timeout_seconds': self.timeout_seconds}
            )
            raise MessageFetchError("Timed out fetching message", reason="timeout", original_error=e) from e
        except SlackAPIRetryError as e:
            raise MessageFetchError(
                f"Slack API error: {e.slack_error or e.message}", reason="slack_api_error", original_error=e
            ) from e

        if raw is None:
            logger.warning("No message found for reaction", extra={'channel': channel, 'ts': ts})
            raise MessageFetchError("Message not found", reason="not_found")

        return SlackMessage(
            text=raw.get('text') or "",
            user=raw.get('user'),
            ts=raw.get('ts') or ts,
            channel=channel,
            thread_ts=raw.get('thread_ts'),
        )

    async def _lookup(self, token: str, channel: str, ts: str) -> Optional[Dict[str, Any]]:
        history = await self.slack_client.conversations_history(
            token, channel=channel, latest=ts, oldest=ts, inclusive=True, limit=1
        )
        found = _find_by_ts(history.get('messages') or [], ts)
        if found is not None:
            return found

        logger.debug("Message not in channel history, scanning threads", extra={'channel': channel})
        return await self._lookup_in_threads(token, channel, ts)

    async def _lookup_in_threads(self, token: str, channel: str, ts: str) -> Optional[Dict[str, Any]]:
        recent = await self.slack_client.conversations_history(
            token, channel=channel, limit=THREAD_SCAN_LIMIT
        )
        parents = [m for m in recent.get('messages') or [] if m.get('reply_count', 0) > 0]

        for parent in parents:
            replies = await self.slack_client.conversations_replies(
                token, channel=channel, ts=parent['ts'], limit=REPLIES_LIMIT, inclusive=True
            )
            found = _find_by_ts(replies.get('messages') or [], ts)
            if found is not None:
                return found
        return None


def _find_by_ts(messages: List[Dict[str, Any]], ts: str) -> Optional[Dict[str, Any]]:
    for message in messages:
        if message.get('ts') == ts:
            return message
    return None
