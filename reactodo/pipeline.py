# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Webhook event pipeline.

Processes one Events API delivery for a user's webhook and returns one of
a closed set of outcomes:

- Ignored: not a reaction event, or the reaction came from someone other
  than the webhook owner
- AlreadyProcessed: the reaction already produced a task
- NotConfigured: the emoji is not one of the owner's three task emoji
- Created: a task was created
- Failed: a genuine failure, classified by ErrorKind

Soft outcomes map to 2xx so Slack does not redeliver them.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from reactodo.connection_store import ConnectionStore
from reactodo.emoji_mapping import EmojiMappingResolver
from reactodo.errors import ERROR_STATUS_CODES, ErrorKind
from reactodo.idempotency import IdempotencyGuard, event_key_for
from reactodo.logging_config import log_error_with_context
from reactodo.message_fetcher import MessageFetcher, MessageFetchError
from reactodo.models import EventEnvelope, ProcessedEvent, ReactionEvent, Urgency, Webhook
from reactodo.task_materializer import TaskMaterializer
from reactodo.title_generator import TitleGenerator
from reactodo.user_store import UserStore
from reactodo.webhook_authorizer import (
    OWNER_SLACK_ID_MISSING_MESSAGE,
    AuthorizationOutcome,
    WebhookAuthorizer,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ignored:
    message: str


@dataclass(frozen=True)
class AlreadyProcessed:
    event_key: str
    todo_id: Optional[str] = None


@dataclass(frozen=True)
class NotConfigured:
    reaction: str


@dataclass(frozen=True)
class Created:
    todo_id: str
    title: str
    urgency: Urgency


@dataclass(frozen=True)
class Failed:
    """
    Attributes:
        kind: Error classification
        message: Caller-facing message
        todo_id: Task that exists despite the failure, if any
        detail: Internal cause, logged but never returned to the caller
    """
    kind: ErrorKind
    message: str
    todo_id: Optional[str] = None
    detail: Optional[str] = None


PipelineOutcome = Union[Ignored, AlreadyProcessed, NotConfigured, Created, Failed]


def outcome_status(outcome: PipelineOutcome) -> int:
    """HTTP status for a pipeline outcome."""
    if isinstance(outcome, (Created, Ignored, AlreadyProcessed, NotConfigured)):
        return 200
    if isinstance(outcome, Failed):
        return ERROR_STATUS_CODES[outcome.kind]
    raise TypeError(f"Unknown pipeline outcome: {type(outcome).__name__}")


def outcome_body(outcome: PipelineOutcome) -> Dict[str, Any]:
    """JSON body for a pipeline outcome."""
    if isinstance(outcome, Created):
        return {
            'success': True,
            'status': 'created',
            'message': 'Task created successfully',
            'todo_id': outcome.todo_id,
            'title': outcome.title,
            'urgency': outcome.urgency.value,
        }
    if isinstance(outcome, Ignored):
        return {'success': True, 'status': 'ignored', 'message': outcome.message}
    if isinstance(outcome, AlreadyProcessed):
        return {
            'success': True,
            'status': 'already_processed',
            'message': 'Event already processed',
            'todo_id': outcome.todo_id,
        }
    if isinstance(outcome, NotConfigured):
        return {
            'success': True,
            'status': 'not_configured',
            'message': 'Emoji not configured for task creation',
            'reaction': outcome.reaction,
        }
    if isinstance(outcome, Failed):
        body = {'success': False, 'error': outcome.message, 'kind': outcome.kind.value}
        if outcome.todo_id:
            body['todo_id'] = outcome.todo_id
        return body
    raise TypeError(f"Unknown pipeline outcome: {type(outcome).__name__}")


class WebhookEventPipeline:
    """Turns a reaction delivery into at most one task."""

    def __init__(
        self,
        authorizer: WebhookAuthorizer,
        guard: IdempotencyGuard,
        emoji_resolver: EmojiMappingResolver,
        users: UserStore,
        connections: ConnectionStore,
        message_fetcher: MessageFetcher,
        title_generator: TitleGenerator,
        materializer: TaskMaterializer
    ):
        self.authorizer = authorizer
        self.guard = guard
        self.emoji_resolver = emoji_resolver
        self.users = users
        self.connections = connections
        self.message_fetcher = message_fetcher
        self.title_generator = title_generator
        self.materializer = materializer

    async def process(self, webhook_id: str, payload: Any) -> PipelineOutcome:
        """
        Process one delivery.

        Never raises; unexpected errors become ``Failed(INTERNAL)``.
        """
        try:
            outcome = await self._run(webhook_id, payload)
        except Exception as e:
            log_error_with_context(
                logger, "Unexpected error processing Slack event", e, webhook_id=webhook_id
            )
            outcome = Failed(ErrorKind.INTERNAL, "Failed to process event", detail=str(e))

        logger.info(
            "Slack event processed",
            extra={
                'webhook_id': webhook_id,
                'outcome': type(outcome).__name__,
                'status_code': outcome_status(outcome),
            }
        )
        return outcome

    async def _run(self, webhook_id: str, payload: Any) -> PipelineOutcome:
        resolved = await self.authorizer.resolve_webhook(webhook_id)
        if resolved.outcome in (AuthorizationOutcome.WEBHOOK_NOT_FOUND, AuthorizationOutcome.WEBHOOK_INACTIVE):
            return Failed(ErrorKind.NOT_FOUND, "Webhook not found or inactive")
        webhook = resolved.webhook

        try:
            envelope = EventEnvelope.model_validate(payload)
            reaction = envelope.reaction_event()
        except ValidationError as e:
            return Failed(ErrorKind.VALIDATION_FAILED, "Invalid event payload", detail=str(e))

        if reaction is None:
            return Ignored("Event received")

        owner_slack_id = resolved.profile.slack_user_id if resolved.profile else None
        ownership = self.authorizer.check_reaction(reaction.user, owner_slack_id)
        if ownership is AuthorizationOutcome.OWNER_SLACK_ID_MISSING:
            return Failed(ErrorKind.VALIDATION_FAILED, OWNER_SLACK_ID_MISSING_MESSAGE)
        if ownership is AuthorizationOutcome.IGNORED:
            return Ignored("Reaction ignored - only the webhook owner can create tasks")

        key = event_key_for(reaction)
        existing = await self.guard.check(key)
        if existing.already_processed:
            return self._duplicate(key, existing.todo_id)

        stored_mapping = await self.users.get_emoji_settings(webhook.user_id)
        urgency = self.emoji_resolver.resolve(stored_mapping, reaction.reaction)
        if urgency is None:
            return NotConfigured(reaction=reaction.reaction)

        reservation = await self.guard.reserve(ProcessedEvent(
            event_key=key,
            user_id=webhook.user_id,
            channel_id=reaction.item.channel,
            message_ts=reaction.item.ts,
            reaction=reaction.reaction,
        ))
        if reservation.already_processed:
            return self._duplicate(key, reservation.todo_id)

        try:
            outcome = await self._create_task(webhook, reaction, key, urgency)
        except Exception:
            await self._release(key)
            raise

        if isinstance(outcome, Failed) and outcome.todo_id is None:
            await self._release(key)
        return outcome

    @staticmethod
    def _duplicate(key: str, todo_id: Optional[str]) -> PipelineOutcome:
        """
        Outcome for a delivery whose key is already reserved.

        A reservation without a task may still be released by the delivery
        holding it, so the duplicate answers non-2xx and Slack redelivers.
        """
        if todo_id is None:
            logger.info("Event is still being processed", extra={'event_key': key})
            return Failed(ErrorKind.CONFLICT, "Event is being processed")
        return AlreadyProcessed(event_key=key, todo_id=todo_id)

    async def _create_task(
        self,
        webhook: Webhook,
        reaction: ReactionEvent,
        key: str,
        urgency: Urgency
    ) -> PipelineOutcome:
        connection = await self.connections.get_connection(webhook.connection_id)
        if connection is None:
            return Failed(ErrorKind.INTERNAL, "Slack connection not found")

        try:
            message = await self.message_fetcher.fetch(
                connection.access_token, reaction.item.channel, reaction.item.ts
            )
        except MessageFetchError as e:
            logger.warning(
                "Could not fetch reacted message",
                extra={'webhook_id': webhook.webhook_id, 'reason': e.reason}
            )
            return Failed(ErrorKind.EXTERNAL_SERVICE_FAILURE, "Failed to fetch Slack message", detail=e.message)

        if not message.text.strip():
            return Failed(ErrorKind.EXTERNAL_SERVICE_FAILURE, "Slack message has no text")

        title = await self.title_generator.generate_or_none(message.text)

        result = await self.materializer.materialize(
            user_id=webhook.user_id,
            event_key=key,
            message_text=message.text,
            urgency=urgency,
            title=title,
            reaction=reaction.reaction,
        )
        if not result.success:
            return Failed(
                result.kind or ErrorKind.INTERNAL,
                result.error or "Failed to create task",
                todo_id=result.task.id if result.task else None,
            )

        try:
            await self.connections.record_webhook_event(webhook.webhook_id)
        except Exception as e:
            logger.warning(
                "Failed to update webhook stats",
                extra={'webhook_id': webhook.webhook_id, 'error': str(e)}
            )

        return Created(todo_id=result.task.id, title=result.task.title, urgency=urgency)

    async def _release(self, key: str) -> None:
        try:
            await self.guard.release(key)
        except Exception as e:
            log_error_with_context(logger, "Failed to release event reservation", e, event_key=key)
