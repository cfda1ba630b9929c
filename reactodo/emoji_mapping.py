# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Reaction to urgency mapping.

Normalizes whatever is stored for a user (nothing, null, a list of rows,
a single row, or junk) into a strict EmojiUrgencyMap and resolves a
reaction name against it.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from reactodo.errors import ValidationResult
from reactodo.models import EmojiUrgencyMap, Urgency


logger = logging.getLogger(__name__)


DEFAULT_EMOJI_MAP = EmojiUrgencyMap(
    today_emoji="fire",
    tomorrow_emoji="calendar",
    later_emoji="memo",
)

# Emoji a user may pick from, with the glyph shown in settings.
AVAILABLE_EMOJIS: Dict[str, str] = {
    "fire": "\U0001F525",
    "calendar": "\U0001F4C5",
    "memo": "\U0001F4DD",
    "warning": "⚠️",
    "clock": "\U0001F550",
    "hourglass": "⏳",
    "pushpin": "\U0001F4CC",
    "bookmark": "\U0001F516",
    "bulb": "\U0001F4A1",
    "star": "⭐",
    "zap": "⚡",
    "bell": "\U0001F514",
}

_FIELDS = (
    ("today", "today_emoji"),
    ("tomorrow", "tomorrow_emoji"),
    ("later", "later_emoji"),
)


class EmojiMappingResolver:
    """Resolves reactions to urgency buckets with a fixed default fallback."""

    def __init__(self, default: EmojiUrgencyMap = DEFAULT_EMOJI_MAP):
        self.default = default

    def normalize(self, stored: Any) -> EmojiUrgencyMap:
        """
        Strict mapping for a stored value.

        A list contributes its first element. Anything that is not a
        mapping with three non-empty emoji names falls back to the default.
        """
        if isinstance(stored, EmojiUrgencyMap):
            return stored

        if isinstance(stored, (list, tuple)):
            stored = stored[0] if stored else None

        if not isinstance(stored, dict):
            return self.default

        candidate = {key: stored.get(key) for _, key in _FIELDS}
        if not all(isinstance(value, str) and value.strip() for value in candidate.values()):
            logger.warning(
                "Stored emoji mapping is malformed, using defaults",
                extra={'stored_keys': sorted(str(k) for k in stored.keys())}
            )
            return self.default

        try:
            return EmojiUrgencyMap.model_validate(candidate)
        except ValidationError:
            return self.default

    def resolve(self, stored: Any, reaction: str) -> Optional[Urgency]:
        """
        Urgency bucket for a reaction.

        Returns:
            The bucket, or None when the reaction is not one of the three
            configured emoji
        """
        return self.normalize(stored).urgency_for(reaction)

    def is_default(self, mapping: EmojiUrgencyMap) -> bool:
        return mapping == self.default

    @staticmethod
    def validate_update(request: Dict[str, Any]) -> ValidationResult:
        """
        Check a mapping submitted for saving.

        Every emoji must be a known name and the three must differ; all
        violations are reported together.
        """
        errors: List[str] = []
        values = []
        for _, key in _FIELDS:
            value = request.get(key) if isinstance(request, dict) else None
            values.append(value)
            if not isinstance(value, str) or value not in AVAILABLE_EMOJIS:
                errors.append(f"Invalid {key}: {value if value is not None else ''}")

        if len(set(str(v) for v in values)) < len(values):
            errors.append("Each emoji must be unique across today, tomorrow, and later settings")

        return ValidationResult(errors=errors)

    @staticmethod
    def available() -> List[Dict[str, str]]:
        return [{'name': name, 'display': glyph} for name, glyph in AVAILABLE_EMOJIS.items()]
