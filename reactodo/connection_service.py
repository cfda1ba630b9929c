# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Connection lifecycle: connect a workspace through OAuth, manage its
webhook, and disconnect it again.

Disconnecting runs three independent steps (remove webhooks, remove the
connection, clear the stored Slack user ID) and reports which of them
succeeded, so a caller can tell a partial failure from a total one.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from reactodo.connection_store import ConnectionStore
from reactodo.errors import ErrorKind, ServiceResult
from reactodo.logging_config import log_error_with_context
from reactodo.models import Connection
from reactodo.oauth_client import OAuthExchangeError, SlackOAuthClient
from reactodo.oauth_validator import OAuthTokenValidator
from reactodo.user_store import UserStore


logger = logging.getLogger(__name__)


WEBHOOK_PATH = "/api/slack/events/user/"


def build_webhook_url(app_base_url: str, webhook_id: str) -> str:
    return f"{app_base_url.rstrip('/')}{WEBHOOK_PATH}{webhook_id}"


class DisconnectStatus(str, Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class DisconnectReport:
    """What a disconnect actually removed."""
    disconnected_workspaces: List[str] = field(default_factory=list)
    connections_removed: int = 0
    webhooks_removed: int = 0
    slack_user_id_cleared: bool = False
    steps_succeeded: int = 0
    steps_failed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def status(self) -> DisconnectStatus:
        if self.steps_failed == 0:
            return DisconnectStatus.COMPLETE
        if self.steps_succeeded == 0:
            return DisconnectStatus.FAILED
        return DisconnectStatus.PARTIAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'disconnected_workspaces': self.disconnected_workspaces,
            'items_removed': {
                'connections': self.connections_removed,
                'webhooks': self.webhooks_removed,
                'user_id_cleared': self.slack_user_id_cleared,
            },
            'errors': self.errors,
        }


class ConnectionLifecycleService:
    """Orchestrates connection creation, webhook management and removal."""

    def __init__(
        self,
        connections: ConnectionStore,
        users: UserStore,
        oauth_client: SlackOAuthClient,
        validator: OAuthTokenValidator,
        app_base_url: str
    ):
        self.connections = connections
        self.users = users
        self.oauth_client = oauth_client
        self.validator = validator
        self.app_base_url = app_base_url

    def webhook_url(self, webhook_id: str) -> str:
        return build_webhook_url(self.app_base_url, webhook_id)

    async def connect(self, user_id: str, code: str) -> ServiceResult:
        """
        Complete an OAuth installation for ``user_id``.

        Exchanges the code, validates the response, upserts the connection
        keyed by (user_id, workspace_id), stores the installing user's Slack
        ID and makes sure the connection has an active webhook.
        """
        if not code:
            return ServiceResult.fail(
                ErrorKind.VALIDATION_FAILED, "Missing authorization code", ["Missing authorization code"]
            )

        try:
            payload = await self.oauth_client.exchange_code(code)
        except OAuthExchangeError as e:
            log_error_with_context(logger, "OAuth code exchange failed", e, user_id=user_id)
            return ServiceResult.fail(ErrorKind.EXTERNAL_SERVICE_FAILURE, e.message, [e.error_code])

        validation = self.validator.validate(payload)
        if not validation.is_valid:
            logger.warning(
                "OAuth response rejected",
                extra={'user_id': user_id, 'errors': validation.errors}
            )
            return ServiceResult.fail(ErrorKind.VALIDATION_FAILED, "Invalid OAuth response", validation.errors)

        validated = validation.connection
        try:
            connection = await self.connections.upsert_connection(user_id, validated)
        except Exception as e:
            log_error_with_context(logger, "Failed to save Slack connection", e, user_id=user_id)
            return ServiceResult.fail(ErrorKind.INTERNAL, "Failed to save Slack connection")

        slack_user_id_saved = False
        if validated.slack_user_id:
            try:
                await self.users.set_slack_user_id(user_id, validated.slack_user_id)
                slack_user_id_saved = True
            except Exception as e:
                log_error_with_context(
                    logger, "Failed to store Slack user ID", e,
                    user_id=user_id, connection_id=connection.id
                )

        webhook_created = False
        webhook_id = None
        if slack_user_id_saved:
            webhook_result = await self.ensure_webhook(user_id, connection.id)
            if webhook_result.success:
                webhook_created = webhook_result.status_code == 201
                webhook_id = webhook_result.data['webhook_id']
            else:
                logger.warning(
                    "Automatic webhook setup failed",
                    extra={'user_id': user_id, 'connection_id': connection.id, 'error': webhook_result.error}
                )

        logger.info(
            "Slack workspace connected",
            extra={
                'user_id': user_id,
                'workspace_id': connection.workspace_id,
                'token_type': validated.token_type.value,
                'webhook_created': webhook_created,
            }
        )
        return ServiceResult.ok({
            'connection': connection.summary(),
            'slack_user_id': validated.slack_user_id,
            'token_type': validated.token_type.value,
            'webhook_created': webhook_created,
            'webhook_id': webhook_id,
            'webhook_url': self.webhook_url(webhook_id) if webhook_id else None,
        })

    async def list_connections(self, user_id: str) -> ServiceResult:
        connections = await self.connections.list_connections(user_id)
        return ServiceResult.ok([c.summary() for c in connections])

    async def _owned_connection(self, user_id: str, connection_id: str):
        connection = await self.connections.get_connection(connection_id)
        if connection is None:
            return None, ServiceResult.fail(ErrorKind.NOT_FOUND, "Slack connection not found")
        if connection.user_id != user_id:
            logger.warning(
                "Connection ownership mismatch",
                extra={'user_id': user_id, 'connection_id': connection_id}
            )
            return None, ServiceResult.fail(ErrorKind.UNAUTHORIZED, "Access denied")
        return connection, None

    async def disconnect(self, user_id: str, connection_id: str) -> ServiceResult:
        """
        Remove one connection owned by ``user_id``.

        Nothing is deleted when the connection belongs to someone else.
        """
        connection, failure = await self._owned_connection(user_id, connection_id)
        if failure:
            return failure
        report = await self._remove(user_id, [connection])
        return self._disconnect_result(report)

    async def disconnect_all(self, user_id: str) -> ServiceResult:
        """Remove every connection of ``user_id``."""
        connections = await self.connections.list_connections(user_id)
        if not connections:
            return ServiceResult.ok({'message': 'No connections to disconnect', **DisconnectReport().to_dict()})
        report = await self._remove(user_id, connections)
        return self._disconnect_result(report)

    async def _remove(self, user_id: str, connections: List[Connection]) -> DisconnectReport:
        report = DisconnectReport()
        connection_ids = [c.id for c in connections]

        try:
            report.webhooks_removed = await self.connections.delete_webhooks_for_connections(connection_ids)
            report.steps_succeeded += 1
        except Exception as e:
            log_error_with_context(logger, "Failed to remove webhooks", e, user_id=user_id)
            report.steps_failed += 1
            report.errors.append("Failed to remove webhooks")

        connection_failures = 0
        for connection in connections:
            try:
                if await self.connections.delete_connection(connection.id):
                    report.connections_removed += 1
                    report.disconnected_workspaces.append(connection.workspace_name)
            except Exception as e:
                log_error_with_context(
                    logger, "Failed to remove connection", e, user_id=user_id, connection_id=connection.id
                )
                connection_failures += 1
        if connection_failures:
            report.steps_failed += 1
            report.errors.append(f"Failed to remove {connection_failures} connection(s)")
        else:
            report.steps_succeeded += 1

        try:
            profile = await self.users.get_profile(user_id)
            if profile is not None and profile.slack_user_id:
                await self.users.set_slack_user_id(user_id, None)
                report.slack_user_id_cleared = True
            report.steps_succeeded += 1
        except Exception as e:
            log_error_with_context(logger, "Failed to clear Slack user ID", e, user_id=user_id)
            report.steps_failed += 1
            report.errors.append("Failed to clear Slack user ID")

        logger.info(
            "Slack disconnect finished",
            extra={'user_id': user_id, **report.to_dict()}
        )
        return report

    @staticmethod
    def _disconnect_result(report: DisconnectReport) -> ServiceResult:
        status = report.status
        if status is DisconnectStatus.COMPLETE:
            return ServiceResult.ok({'message': 'Slack integration disconnected', **report.to_dict()})
        if status is DisconnectStatus.PARTIAL:
            return ServiceResult.fail(
                ErrorKind.INTERNAL, "Disconnect partially completed", report.errors, data=report.to_dict()
            )
        return ServiceResult.fail(ErrorKind.INTERNAL, "Disconnect failed", report.errors, data=report.to_dict())

    async def ensure_webhook(self, user_id: str, connection_id: str) -> ServiceResult:
        """
        Create the webhook for a connection, or reactivate the existing one.

        Returns 201 when a webhook was created and 200 otherwise.
        """
        connection, failure = await self._owned_connection(user_id, connection_id)
        if failure:
            return failure

        existing = await self.connections.get_webhook_for_connection(user_id, connection.id)
        if existing is not None:
            message = "Webhook already active"
            if not existing.is_active:
                existing = await self.connections.set_webhook_active(existing.webhook_id, True)
                message = "Webhook reactivated successfully"
                logger.info("Webhook reactivated", extra={'user_id': user_id, 'connection_id': connection.id})
            return ServiceResult.ok(
                {'message': message, **existing.public_view(self.webhook_url(existing.webhook_id))}
            )

        webhook = await self.connections.create_webhook(user_id, connection.id)
        logger.info("Webhook created", extra={'user_id': user_id, 'connection_id': connection.id})
        return ServiceResult.ok(
            {'message': 'Webhook created successfully', **webhook.public_view(self.webhook_url(webhook.webhook_id))},
            status_code=201
        )

    async def deactivate_webhook(self, user_id: str, webhook_id: str) -> ServiceResult:
        webhook = await self.connections.get_webhook(webhook_id)
        if webhook is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Webhook not found")
        if webhook.user_id != user_id:
            return ServiceResult.fail(ErrorKind.UNAUTHORIZED, "Access denied")

        webhook = await self.connections.set_webhook_active(webhook_id, False)
        return ServiceResult.ok(
            {'message': 'Webhook deactivated', **webhook.public_view(self.webhook_url(webhook.webhook_id))}
        )

    async def list_webhooks(self, user_id: str) -> ServiceResult:
        webhooks = await self.connections.list_webhooks(user_id)
        return ServiceResult.ok([w.public_view(self.webhook_url(w.webhook_id)) for w in webhooks])
