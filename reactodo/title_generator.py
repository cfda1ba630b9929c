# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Task title generation with the OpenAI chat completions API.

Generation is best effort: a missing API key, an API error, a timeout or
an empty completion all degrade to a fixed fallback title.
"""

import asyncio
import logging
from typing import Optional

import openai
from openai import AsyncOpenAI


logger = logging.getLogger(__name__)


MAX_CONTENT_LENGTH = 2000
MAX_TITLE_LENGTH = 15
DEFAULT_MODEL = "gpt-4o-mini"

SYSTEM_PROMPT = (
    "You write short headings for to-do items. Reply with a single heading of at "
    "most {max_length} characters that captures what needs to be done, in the "
    "same language as the message. Reply with the heading only."
)


def fallback_title(reaction: str) -> str:
    """Placeholder title used when generation is unavailable."""
    return f"Slack reaction: {reaction}"


class TitleGenerationError(Exception):
    """Raised when no title could be generated."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(message)


def clean_title(raw: str, max_length: int = MAX_TITLE_LENGTH) -> str:
    """Strip whitespace and wrapping quotes, then cap the length."""
    title = (raw or "").strip()
    while len(title) >= 2 and title[0] == title[-1] and title[0] in "\"'`「":
        title = title[1:-1].strip()
    title = title.strip("「」").strip()
    return title[:max_length]


class TitleGenerator:
    """
    Generates task titles from Slack message text.

    Args:
        client: OpenAI client, or None when no API key is configured
        model: Chat model name
        timeout_seconds: Local bound on one generation
        max_length: Maximum title length in characters
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI],
        model: str = DEFAULT_MODEL,
        timeout_seconds: float = 5.0,
        max_length: int = MAX_TITLE_LENGTH
    ):
        self.client = client
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.max_length = max_length

    async def generate(self, content: str) -> str:
        """
        Generate a title for ``content``.

        Raises:
            TitleGenerationError: If generation is unavailable, fails, times
                out, or returns a blank title
        """
        if self.client is None:
            raise TitleGenerationError("Title generation is not configured")

        text = (content or "").strip()
        if not text:
            raise TitleGenerationError("Content is empty")
        text = text[:MAX_CONTENT_LENGTH]

        try:
            completion = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": SYSTEM_PROMPT.format(max_length=self.max_length)},
                        {"role": "user", "content": text},
                    ],
                    max_tokens=50,
                    temperature=0.7,
                ),
                timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise TitleGenerationError("Title generation timed out", original_error=e) from e
        except openai.OpenAIError as e:
            raise TitleGenerationError(f"OpenAI error: {type(e).__name__}", original_error=e) from e

        choices = completion.choices or []
        raw = choices[0].message.content if choices else None
        title = clean_title(raw or "", self.max_length)
        if not title:
            raise TitleGenerationError("Model returned an empty title")
        return title

    async def generate_or_none(self, content: str) -> Optional[str]:
        """Generated title, or None when generation failed for any reason."""
        try:
            return await self.generate(content)
        except TitleGenerationError as e:
            logger.warning(
                "Title generation failed, falling back",
                extra={'reason': e.message, 'model': self.model}
            )
            return None
        except Exception as e:
            logger.warning(
                "Unexpected title generation error, falling back",
                extra={'reason': type(e).__name__, 'model': self.model},
                exc_info=True
            )
            return None
