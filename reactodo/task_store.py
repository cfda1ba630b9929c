# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""Storage for tasks created by the reaction pipeline."""

import uuid
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from reactodo.database import Database, parse_uuid, storage_operation
from reactodo.models import Task, TaskSource, TaskStatus, Urgency


class TaskStore(ABC):

    @abstractmethod
    async def create_task(self, task: Task) -> Task:
        ...

    @abstractmethod
    async def get_task(self, task_id: str) -> Optional[Task]:
        ...

    @abstractmethod
    async def list_tasks(self, user_id: str) -> List[Task]:
        ...


def new_task_id() -> str:
    return str(uuid.uuid4())


class InMemoryTaskStore(TaskStore):

    def __init__(self):
        self.tasks: Dict[str, Task] = {}

    async def create_task(self, task: Task) -> Task:
        self.tasks[task.id] = task.model_copy()
        return task

    async def get_task(self, task_id: str) -> Optional[Task]:
        task = self.tasks.get(task_id)
        return task.model_copy() if task else None

    async def list_tasks(self, user_id: str) -> List[Task]:
        return [t.model_copy() for t in self.tasks.values() if t.user_id == user_id]


class PostgresTaskStore(TaskStore):

    def __init__(self, database: Database):
        self.database = database

    @staticmethod
    def _to_task(row) -> Task:
        return Task(
            id=str(row['id']),
            user_id=row['user_id'],
            title=row['title'],
            body=row['body'],
            urgency=Urgency(row['urgency']),
            deadline=row['deadline'],
            created_via=TaskSource(row['created_via']),
            status=TaskStatus(row['status']),
            importance_score=row['importance_score'],
            created_at=row['created_at'],
        )

    async def create_task(self, task: Task) -> Task:
        async with storage_operation("create_task"):
            async with self.database.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO todos (
                        id, user_id, title, body, urgency, deadline,
                        created_via, status, importance_score, created_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                    RETURNING *
                    """,
                    uuid.UUID(task.id),
                    task.user_id,
                    task.title,
                    task.body,
                    task.urgency.value,
                    task.deadline,
                    task.created_via.value,
                    task.status.value,
                    task.importance_score,
                    task.created_at,
                )
        return self._to_task(row)

    async def get_task(self, task_id: str) -> Optional[Task]:
        key = parse_uuid(task_id)
        if key is None:
            return None
        async with storage_operation("get_task"):
            async with self.database.pool.acquire() as conn:
                row = await conn.fetchrow("SELECT * FROM todos WHERE id = $1", key)
        return self._to_task(row) if row else None

    async def list_tasks(self, user_id: str) -> List[Task]:
        async with storage_operation("list_tasks"):
            async with self.database.pool.acquire() as conn:
                rows = await conn.fetch(
                    "SELECT * FROM todos WHERE user_id = $1 ORDER BY created_at DESC", user_id
                )
        return [self._to_task(row) for row in rows]
