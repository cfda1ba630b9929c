# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Slack Web API access with retries.

Every connection carries its own access token, so the client builds an
AsyncWebClient per token and wraps each call in exponential backoff for
rate limits and transient server errors.
"""

import asyncio
import logging
import random
from typing import Any, Callable, Dict, Optional

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient


logger = logging.getLogger(__name__)


RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
RETRYABLE_ERROR_CODES = {'internal_error', 'service_unavailable', 'fatal_error', 'ratelimited'}


class SlackAPIRetryError(Exception):
    """Raised when a Slack API call fails for good."""

    def __init__(self, message: str, original_error: Optional[Exception] = None, attempts: int = 0):
        self.message = message
        self.original_error = original_error
        self.attempts = attempts
        super().__init__(message)

    @property
    def slack_error(self) -> Optional[str]:
        if isinstance(self.original_error, SlackApiError):
            return self.original_error.response.get('error')
        return None


class SlackAPIClient:
    """
    Slack Web API client with retry logic.

    Args:
        max_retries: Retries after the first attempt
        retry_backoff_base: Base of the exponential backoff in seconds
        client_factory: Builds a web client for an access token
    """

    def __init__(
        self,
        max_retries: int = 3,
        retry_backoff_base: float = 2.0,
        client_factory: Optional[Callable[[str], AsyncWebClient]] = None
    ):
        self.max_retries = max_retries
        self.retry_backoff_base = retry_backoff_base
        self._client_factory = client_factory or (lambda token: AsyncWebClient(token=token))

    @staticmethod
    def is_retryable(error: SlackApiError) -> bool:
        if error.response.status_code in RETRYABLE_STATUS_CODES:
            return True
        return error.response.get('error') in RETRYABLE_ERROR_CODES

    def backoff_seconds(self, attempt: int, retry_after: Optional[int] = None) -> float:
        """Wait before the next attempt; Slack's Retry-After wins when given."""
        base_wait = float(retry_after) if retry_after is not None else self.retry_backoff_base ** attempt
        return base_wait + base_wait * 0.1 * random.random()

    @staticmethod
    def _retry_after(error: SlackApiError) -> Optional[int]:
        value = (error.response.headers or {}).get('Retry-After')
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    async def call(self, token: str, method_name: str, **kwargs) -> Dict[str, Any]:
        """
        Call a Web API method with retries.

        Args:
            token: Access token of the connection
            method_name: Dotted method name, e.g. ``conversations.history``
            **kwargs: Method arguments

        Returns:
            Response data

        Raises:
            SlackAPIRetryError: On a non-retryable error or once retries run out
        """
        client = self._client_factory(token)
        api_method = getattr(client, method_name.replace('.', '_'))
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                response = await api_method(**kwargs)
                return response.data if hasattr(response, 'data') else response

            except SlackApiError as e:
                last_error = e
                if not self.is_retryable(e):
                    logger.error(
                        f"Non-retryable Slack API error: {method_name}",
                        extra={
                            'method': method_name,
                            'error': e.response.get('error'),
                            'status_code': e.response.status_code,
                        }
                    )
                    raise SlackAPIRetryError(
                        f"Slack API error: {e.response.get('error')}",
                        original_error=e,
                        attempts=attempt + 1
                    ) from e

                if attempt >= self.max_retries:
                    break

                backoff = self.backoff_seconds(attempt, self._retry_after(e))
                logger.warning(
                    f"Retryable Slack API error, retrying in {backoff:.2f}s",
                    extra={
                        'method': method_name,
                        'attempt': attempt + 1,
                        'error': e.response.get('error'),
                        'status_code': e.response.status_code,
                    }
                )
                await asyncio.sleep(backoff)

            except Exception as e:
                logger.error(
                    f"Unexpected error calling Slack API: {method_name}",
                    extra={'method': method_name, 'attempt': attempt + 1, 'error': str(e)},
                    exc_info=True
                )
                raise SlackAPIRetryError(
                    f"Unexpected error: {type(e).__name__}",
                    original_error=e,
                    attempts=attempt + 1
                ) from e

        raise SlackAPIRetryError(
            f"Slack API call failed after {self.max_retries + 1} attempts",
            original_error=last_error,
            attempts=self.max_retries + 1
        )

    async def conversations_history(self, token: str, **kwargs) -> Dict[str, Any]:
        return await self.call(token, "conversations.history", **kwargs)

    async def conversations_replies(self, token: str, **kwargs) -> Dict[str, Any]:
        return await self.call(token, "conversations.replies", **kwargs)
