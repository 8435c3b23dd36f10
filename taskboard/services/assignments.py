"""
Assignee replacement with diff-based notifications.

The assignee set of a task is replaced wholesale (delete all rows, insert the
requested ones) inside one transaction. Only users that were not assigned
before the replacement are notified; retained and removed users never are.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.errors import NotFoundError, ValidationError
from taskboard.models.tasks import Task
from taskboard.services.store import TaskStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskRef:
    """What a notification needs to know about the task."""
    id: int
    workspace_id: uuid.UUID
    title: str
    due_date: date | None
    priority: str

    @classmethod
    def from_task(cls, task: Task, overrides: dict | None = None) -> "TaskRef":
        overrides = overrides or {}
        return cls(
            id=task.id,
            workspace_id=task.workspace_id,
            title=overrides.get("title", task.title),
            due_date=overrides.get("due_date", task.due_date),
            priority=overrides.get("priority", task.priority),
        )


@dataclass(frozen=True)
class AssignmentChange:
    before: frozenset[int]
    after: tuple[int, ...]
    added: tuple[int, ...]
    removed: frozenset[int]


def unique_ids(user_ids) -> list[int]:
    """Drop duplicates, keeping request order."""
    return list(dict.fromkeys(user_ids or []))


class AssignmentDiffEngine:
    def __init__(self, store: TaskStore, notifier):
        self.store = store
        self.notifier = notifier

    async def ensure_users_exist(self, db: AsyncSession, user_ids: list[int]) -> None:
        missing = set(user_ids) - await self.store.existing_user_ids(db, user_ids)
        if missing:
            raise ValidationError(f"Unknown assignee id(s): {', '.join(str(i) for i in sorted(missing))}")

    async def replace_assignees(self, task: TaskRef, desired_user_ids, actor_id: int) -> AssignmentChange:
        desired = unique_ids(desired_user_ids)

        async with self.store.transaction() as db:
            await self.ensure_users_exist(db, desired)
            # Locking the task row serializes concurrent replacements, so the
            # "before" snapshot below is the one this transaction replaces.
            if await self.store.get_task(db, task.id, for_update=True) is None:
                raise NotFoundError("Task not found")
            before = await self.store.current_assignee_ids(db, task.id)
            await self.store.delete_assignments(db, task.id)
            if desired:
                await self.store.insert_assignments(db, task.id, desired)

        change = AssignmentChange(
            before=frozenset(before),
            after=tuple(desired),
            added=tuple(u for u in desired if u not in before),
            removed=frozenset(before - set(desired)),
        )
        logger.info(
            "Task %s assignees replaced: +%s -%s",
            task.id, list(change.added), sorted(change.removed),
        )

        await self.notify_assignees(task, change.added, actor_id)
        return change

    async def notify_assignees(self, task: TaskRef, user_ids, actor_id: int) -> int:
        """
        Enqueue one assignment email per user with notifications enabled.

        Best effort: failures are logged and never reach the caller.
        Returns the number of messages queued.
        """
        if not user_ids:
            return 0

        try:
            async with self.store.session() as db:
                users = await self.store.users_by_ids(db, user_ids)
                actor = await self.store.get_user(db, actor_id)
        except Exception:
            logger.exception("Could not load assignees of task %s for notification", task.id)
            return 0

        assigned_by = (actor.name or actor.email) if actor else "A teammate"
        queued = 0
        for user in users:
            if not user.email_notifications_enabled:
                continue
            try:
                await self.notifier.queue_task_assignment_notification(
                    to=user.email,
                    task_id=task.id,
                    task_title=task.title,
                    assigned_by_name=assigned_by,
                    due_date=task.due_date,
                    priority=task.priority,
                    workspace_id=task.workspace_id,
                )
                queued += 1
            except Exception:
                logger.exception("Failed to queue assignment notification for user %s", user.id)
        return queued
