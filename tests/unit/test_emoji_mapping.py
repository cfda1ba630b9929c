# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Unit tests for the reaction emoji mapping.

Tests normalization of stored settings, resolution to urgency buckets and
validation of submitted mappings.
"""

import pytest

from reactodo.emoji_mapping import AVAILABLE_EMOJIS, DEFAULT_EMOJI_MAP, EmojiMappingResolver
from reactodo.models import EmojiUrgencyMap, Urgency


UNIQUE_ERROR = "Each emoji must be unique across today, tomorrow, and later settings"


@pytest.fixture
def resolver():
    return EmojiMappingResolver()


@pytest.fixture
def custom_row():
    return {'today_emoji': 'zap', 'tomorrow_emoji': 'bell', 'later_emoji': 'bookmark'}


class TestNormalize:

    @pytest.mark.parametrize("stored", [None, [], "fire", 42, {}, {'today_emoji': 'zap'}])
    def test_unusable_values_fall_back_to_defaults(self, resolver, stored):
        assert resolver.normalize(stored) == DEFAULT_EMOJI_MAP

    def test_single_row_is_used_directly(self, resolver, custom_row):
        mapping = resolver.normalize(custom_row)

        assert mapping == EmojiUrgencyMap(**custom_row)

    def test_list_uses_first_row(self, resolver, custom_row):
        second = {'today_emoji': 'star', 'tomorrow_emoji': 'bulb', 'later_emoji': 'clock'}

        assert resolver.normalize([custom_row, second]) == EmojiUrgencyMap(**custom_row)

    def test_row_with_blank_emoji_falls_back(self, resolver, custom_row):
        custom_row['later_emoji'] = '   '

        assert resolver.normalize(custom_row) == DEFAULT_EMOJI_MAP

    def test_extra_columns_are_ignored(self, resolver, custom_row):
        row = {**custom_row, 'id': 'row-1', 'user_id': 'user-1', 'updated_at': '2026-01-01'}

        assert resolver.normalize(row) == EmojiUrgencyMap(**custom_row)


class TestResolve:

    @pytest.mark.parametrize("reaction,expected", [
        ('fire', Urgency.TODAY),
        ('calendar', Urgency.TOMORROW),
        ('memo', Urgency.LATER),
        ('thumbsup', None),
    ])
    def test_default_mapping(self, resolver, reaction, expected):
        assert resolver.resolve(None, reaction) is expected

    def test_custom_mapping_replaces_defaults(self, resolver, custom_row):
        assert resolver.resolve(custom_row, 'zap') is Urgency.TODAY
        assert resolver.resolve(custom_row, 'bell') is Urgency.TOMORROW
        assert resolver.resolve(custom_row, 'bookmark') is Urgency.LATER
        assert resolver.resolve(custom_row, 'fire') is None


class TestValidateUpdate:

    def test_valid_request(self, resolver, custom_row):
        result = resolver.validate_update(custom_row)

        assert result.is_valid
        assert result.errors == []

    def test_unknown_emoji_are_each_reported(self, resolver):
        result = resolver.validate_update({
            'today_emoji': 'rocket',
            'tomorrow_emoji': 'calendar',
            'later_emoji': 'tada',
        })

        assert result.errors == ["Invalid today_emoji: rocket", "Invalid later_emoji: tada"]

    def test_duplicates_are_reported(self, resolver):
        result = resolver.validate_update({
            'today_emoji': 'fire',
            'tomorrow_emoji': 'fire',
            'later_emoji': 'memo',
        })

        assert result.errors == [UNIQUE_ERROR]

    def test_all_violations_are_reported_together(self, resolver):
        result = resolver.validate_update({
            'today_emoji': '',
            'tomorrow_emoji': 'nope',
            'later_emoji': 'nope',
        })

        assert result.errors == [
            "Invalid today_emoji: ",
            "Invalid tomorrow_emoji: nope",
            "Invalid later_emoji: nope",
            UNIQUE_ERROR,
        ]

    def test_missing_fields_are_invalid(self, resolver):
        result = resolver.validate_update({'today_emoji': 'fire'})

        assert "Invalid tomorrow_emoji: " in result.errors
        assert "Invalid later_emoji: " in result.errors


def test_default_mapping_uses_allowed_emoji():
    for name in DEFAULT_EMOJI_MAP.model_dump().values():
        assert name in AVAILABLE_EMOJIS


def test_is_default(resolver, custom_row):
    assert resolver.is_default(DEFAULT_EMOJI_MAP)
    assert not resolver.is_default(EmojiUrgencyMap(**custom_row))
