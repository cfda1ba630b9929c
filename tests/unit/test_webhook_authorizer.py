# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Unit tests for webhook resolution and reaction ownership.
"""

import pytest

from reactodo.webhook_authorizer import AuthorizationOutcome, WebhookAuthorizer


@pytest.fixture
def authorizer(connections, users):
    return WebhookAuthorizer(connections, users)


class TestAuthorize:

    @pytest.mark.asyncio
    async def test_owner_reaction_is_authorized(self, authorizer, owner):
        result = await authorizer.authorize("wh1", owner.slack_user_id)

        assert result.authorized
        assert result.webhook.webhook_id == "wh1"
        assert result.profile.slack_user_id == owner.slack_user_id

    @pytest.mark.asyncio
    async def test_other_user_is_ignored(self, authorizer, owner):
        result = await authorizer.authorize("wh1", "U0SOMEONE01")

        assert result.outcome is AuthorizationOutcome.IGNORED
        assert not result.authorized

    @pytest.mark.asyncio
    async def test_unknown_webhook(self, authorizer, owner):
        result = await authorizer.authorize("missing", owner.slack_user_id)

        assert result.outcome is AuthorizationOutcome.WEBHOOK_NOT_FOUND
        assert result.webhook is None

    @pytest.mark.asyncio
    async def test_inactive_webhook(self, authorizer, connections, owner):
        connections.webhooks["wh1"].is_active = False

        result = await authorizer.authorize("wh1", owner.slack_user_id)

        assert result.outcome is AuthorizationOutcome.WEBHOOK_INACTIVE

    @pytest.mark.asyncio
    async def test_owner_without_slack_id(self, authorizer, users, owner):
        users.profiles[owner.user_id].slack_user_id = None

        result = await authorizer.authorize("wh1", owner.slack_user_id)

        assert result.outcome is AuthorizationOutcome.OWNER_SLACK_ID_MISSING

    @pytest.mark.asyncio
    async def test_owner_without_profile(self, authorizer, users, owner):
        del users.profiles[owner.user_id]

        result = await authorizer.authorize("wh1", owner.slack_user_id)

        assert result.outcome is AuthorizationOutcome.OWNER_SLACK_ID_MISSING


class TestCheckReaction:

    @pytest.mark.parametrize("reacting,owner_id,expected", [
        ("U0OWNER0001", "U0OWNER0001", AuthorizationOutcome.AUTHORIZED),
        ("U0OTHER0001", "U0OWNER0001", AuthorizationOutcome.IGNORED),
        ("", "U0OWNER0001", AuthorizationOutcome.IGNORED),
        ("U0OWNER0001", None, AuthorizationOutcome.OWNER_SLACK_ID_MISSING),
        ("U0OWNER0001", "", AuthorizationOutcome.OWNER_SLACK_ID_MISSING),
    ])
    def test_outcomes(self, reacting, owner_id, expected):
        assert WebhookAuthorizer.check_reaction(reacting, owner_id) is expected
