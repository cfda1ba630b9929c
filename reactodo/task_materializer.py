# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Creation of a task from a reacted Slack message.

The task is written first and the processed-event record is then linked
to it. If that second write fails the task stays in place and the failure
is reported; the event key remains reserved, so duplicate prevention
still holds for later deliveries, but the record carries no task ID.
"""

import logging
import random
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

from reactodo.errors import ErrorKind
from reactodo.idempotency import IdempotencyGuard
from reactodo.logging_config import log_error_with_context
from reactodo.models import Task, TaskSource, Urgency
from reactodo.task_store import TaskStore, new_task_id
from reactodo.title_generator import fallback_title


logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def urgency_to_deadline(urgency: Urgency, today: date) -> Optional[date]:
    """Default deadline for an urgency bucket; ``later`` has none."""
    if urgency is Urgency.TODAY:
        return today
    if urgency is Urgency.TOMORROW:
        return today + timedelta(days=1)
    return None


def initial_importance_score(
    deadline: Optional[date],
    today: date,
    rng: Callable[[float, float], float] = random.uniform
) -> float:
    """
    Starting importance for a new task.

    Overdue tasks start at 0.7 and tasks due today at 0.6; everything else
    gets a random score in [0.3, 0.7] until the user ranks it.
    """
    if deadline is not None:
        if deadline < today:
            return 0.7
        if deadline == today:
            return 0.6
    return round(rng(0.3, 0.7), 3)


@dataclass
class MaterializationResult:
    """
    Attributes:
        task: Created task; present whenever the task write succeeded
        kind: Error classification when something failed
        error: Error message when something failed
    """
    task: Optional[Task] = None
    kind: Optional[ErrorKind] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.task is not None and self.kind is None


class TaskMaterializer:
    """Persists the task and links it to its event key."""

    def __init__(
        self,
        tasks: TaskStore,
        guard: IdempotencyGuard,
        today: Callable[[], date] = utc_today
    ):
        self.tasks = tasks
        self.guard = guard
        self.today = today

    def build_task(
        self,
        user_id: str,
        message_text: str,
        urgency: Urgency,
        title: Optional[str],
        reaction: str,
        deadline: Optional[date] = None
    ) -> Task:
        today = self.today()
        if deadline is None:
            deadline = urgency_to_deadline(urgency, today)
        if not title or not title.strip():
            title = fallback_title(reaction)

        return Task(
            id=new_task_id(),
            user_id=user_id,
            title=title.strip(),
            body=message_text,
            urgency=urgency,
            deadline=deadline,
            created_via=TaskSource.SLACK_WEBHOOK,
            importance_score=initial_importance_score(deadline, today),
        )

    async def materialize(
        self,
        user_id: str,
        event_key: str,
        message_text: str,
        urgency: Urgency,
        title: Optional[str],
        reaction: str,
        deadline: Optional[date] = None
    ) -> MaterializationResult:
        """
        Create the task and record it against ``event_key``.

        Returns:
            MaterializationResult. ``task`` is set but ``kind`` is INTERNAL
            when the task exists and only the event link failed.
        """
        task = self.build_task(user_id, message_text, urgency, title, reaction, deadline)

        try:
            task = await self.tasks.create_task(task)
        except Exception as e:
            log_error_with_context(logger, "Failed to create task", e, user_id=user_id, event_key=event_key)
            return MaterializationResult(kind=ErrorKind.INTERNAL, error="Failed to create task")

        try:
            await self.guard.complete(event_key, task.id)
        except Exception as e:
            log_error_with_context(
                logger,
                "Task created but processed event could not be linked",
                e,
                user_id=user_id,
                event_key=event_key,
                todo_id=task.id
            )
            return MaterializationResult(
                task=task,
                kind=ErrorKind.INTERNAL,
                error="Task created but the processed event could not be recorded"
            )

        logger.info(
            "Task created from Slack reaction",
            extra={'user_id': user_id, 'todo_id': task.id, 'urgency': urgency.value}
        )
        return MaterializationResult(task=task)
