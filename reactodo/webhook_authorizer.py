# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Webhook liveness and reaction ownership checks.

Only reactions added by the webhook owner's own Slack account create
tasks. Reactions from anyone else in the channel are expected traffic and
are ignored without an error.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from reactodo.connection_store import ConnectionStore
from reactodo.models import UserSlackProfile, Webhook
from reactodo.user_store import UserStore


logger = logging.getLogger(__name__)


OWNER_SLACK_ID_MISSING_MESSAGE = (
    "Slack User ID not configured. Please set your Slack User ID in the settings."
)


class AuthorizationOutcome(str, Enum):
    AUTHORIZED = "authorized"
    IGNORED = "ignored"
    WEBHOOK_NOT_FOUND = "webhook_not_found"
    WEBHOOK_INACTIVE = "webhook_inactive"
    OWNER_SLACK_ID_MISSING = "owner_slack_id_missing"


@dataclass
class WebhookAuthorization:
    outcome: AuthorizationOutcome
    webhook: Optional[Webhook] = None
    profile: Optional[UserSlackProfile] = None

    @property
    def authorized(self) -> bool:
        return self.outcome is AuthorizationOutcome.AUTHORIZED


class WebhookAuthorizer:
    """Resolves a webhook and decides whether a reaction may act on it."""

    def __init__(self, connections: ConnectionStore, users: UserStore):
        self.connections = connections
        self.users = users

    async def resolve_webhook(self, webhook_id: str) -> WebhookAuthorization:
        """Look up the webhook and its owner's profile."""
        webhook = await self.connections.get_webhook(webhook_id)
        if webhook is None:
            return WebhookAuthorization(AuthorizationOutcome.WEBHOOK_NOT_FOUND)
        if not webhook.is_active:
            logger.info("Event for inactive webhook", extra={'webhook_id': webhook_id})
            return WebhookAuthorization(AuthorizationOutcome.WEBHOOK_INACTIVE, webhook=webhook)

        profile = await self.users.get_profile(webhook.user_id)
        if profile is None or not profile.slack_user_id:
            return WebhookAuthorization(
                AuthorizationOutcome.OWNER_SLACK_ID_MISSING, webhook=webhook, profile=profile
            )
        return WebhookAuthorization(AuthorizationOutcome.AUTHORIZED, webhook=webhook, profile=profile)

    @staticmethod
    def check_reaction(reacting_user_id: str, owner_slack_user_id: Optional[str]) -> AuthorizationOutcome:
        if not owner_slack_user_id:
            return AuthorizationOutcome.OWNER_SLACK_ID_MISSING
        if reacting_user_id != owner_slack_user_id:
            return AuthorizationOutcome.IGNORED
        return AuthorizationOutcome.AUTHORIZED

    async def authorize(self, webhook_id: str, reacting_user_id: str) -> WebhookAuthorization:
        """
        Full check for one reaction.

        Args:
            webhook_id: Public webhook identifier from the URL
            reacting_user_id: Slack user who added the reaction

        Returns:
            WebhookAuthorization; the webhook and profile are populated
            whenever they were found
        """
        resolved = await self.resolve_webhook(webhook_id)
        if not resolved.authorized:
            return resolved

        outcome = self.check_reaction(reacting_user_id, resolved.profile.slack_user_id)
        if outcome is AuthorizationOutcome.IGNORED:
            logger.debug(
                "Reaction from non-owner ignored",
                extra={'webhook_id': webhook_id, 'reacting_user_id': reacting_user_id}
            )
        return WebhookAuthorization(outcome, webhook=resolved.webhook, profile=resolved.profile)
