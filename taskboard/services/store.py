"""
Persistence access for tasks, categories and assignments.

Every read/write used by the engine lives here as a parameterized SQLAlchemy
statement. Methods take the session to run on so that callers decide whether
a call joins an open transaction or runs on its own short session.
"""
from collections.abc import Iterable
from typing import Any

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased, joinedload, selectinload

from taskboard.database import transaction
from taskboard.models.tasks import Category, Task, TaskAssignment, TaskStatus
from taskboard.models.user import User
from taskboard.schemas.task import AssigneeSummary, TaskView


def to_task_view(task: Task, subtask_count: int = 0, completed_subtask_count: int = 0) -> TaskView:
    return TaskView(
        id=task.id,
        workspace_id=task.workspace_id,
        title=task.title,
        description=task.description,
        category_id=task.category_id,
        category_name=task.category.name if task.category else None,
        category_color=task.category.color if task.category else None,
        assignees=[AssigneeSummary.model_validate(u) for u in task.assignees],
        priority=task.priority,
        status=task.status,
        due_date=task.due_date,
        completed_at=task.completed_at,
        position=task.position,
        parent_task_id=task.parent_task_id,
        subtask_count=subtask_count or 0,
        completed_subtask_count=completed_subtask_count or 0,
        created_by=task.created_by,
        created_by_name=task.creator.name if task.creator else None,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


class TaskStore:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]):
        self.sessions = sessions

    # ── Connection handling ─────────────────────────────

    def session(self) -> AsyncSession:
        """Short-lived session for reads and single-statement writes."""
        return self.sessions()

    def transaction(self):
        """Dedicated session inside one transaction, see ``database.transaction``."""
        return transaction(self.sessions)

    # ── Joined task views ───────────────────────────────

    def view_statement(self):
        subtask = aliased(Task)
        subtask_count = (
            select(func.count(subtask.id))
            .where(subtask.parent_task_id == Task.id)
            .correlate(Task)
            .scalar_subquery()
        )
        completed_subtask_count = (
            select(func.count(subtask.id))
            .where(subtask.parent_task_id == Task.id, subtask.status == TaskStatus.completed.value)
            .correlate(Task)
            .scalar_subquery()
        )
        return select(
            Task,
            subtask_count.label("subtask_count"),
            completed_subtask_count.label("completed_subtask_count"),
        ).options(
            joinedload(Task.category),
            joinedload(Task.creator),
            selectinload(Task.assignees),
        )

    async def load_views(self, db: AsyncSession, stmt) -> list[TaskView]:
        result = await db.execute(stmt)
        return [to_task_view(task, subtasks, completed) for task, subtasks, completed in result.all()]

    async def get_view(self, db: AsyncSession, task_id: int) -> TaskView | None:
        views = await self.load_views(db, self.view_statement().where(Task.id == task_id))
        return views[0] if views else None

    # ── Tasks ───────────────────────────────────────────

    async def get_task(self, db: AsyncSession, task_id: int, for_update: bool = False) -> Task | None:
        stmt = select(Task).where(Task.id == task_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalars().first()

    async def get_task_family(self, db: AsyncSession, task_id: int) -> list[Task]:
        """The task plus its direct subtasks, locked for the rest of the transaction."""
        result = await db.execute(
            select(Task)
            .where((Task.id == task_id) | (Task.parent_task_id == task_id))
            .order_by(Task.id)
            .with_for_update()
        )
        return list(result.scalars().all())

    async def insert_task(self, db: AsyncSession, values: dict[str, Any]) -> Task:
        task = Task(**values)
        db.add(task)
        await db.flush()
        return task

    async def update_task_fields(self, db: AsyncSession, task_id: int, values: dict[str, Any]) -> None:
        await db.execute(
            update(Task)
            .where(Task.id == task_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    async def delete_tasks(self, db: AsyncSession, task_ids: list[int]) -> None:
        if not task_ids:
            return
        await db.execute(
            delete(TaskAssignment)
            .where(TaskAssignment.task_id.in_(task_ids))
            .execution_options(synchronize_session=False)
        )
        # children first so the parent FK never dangles mid-statement
        await db.execute(
            delete(Task)
            .where(Task.id.in_(task_ids), Task.parent_task_id.is_not(None))
            .execution_options(synchronize_session=False)
        )
        await db.execute(
            delete(Task)
            .where(Task.id.in_(task_ids))
            .execution_options(synchronize_session=False)
        )

    async def count_in_category(self, db: AsyncSession, category_id: int, exclude_task_id: int | None = None) -> int:
        stmt = select(func.count(Task.id)).where(Task.category_id == category_id)
        if exclude_task_id is not None:
            stmt = stmt.where(Task.id != exclude_task_id)
        result = await db.execute(stmt)
        return result.scalar_one()

    # ── Categories ──────────────────────────────────────

    async def get_category(self, db: AsyncSession, category_id: int) -> Category | None:
        result = await db.execute(select(Category).where(Category.id == category_id))
        return result.scalars().first()

    async def lock_categories(self, db: AsyncSession, category_ids: Iterable[int | None]) -> None:
        """Row-lock categories in ascending id order; a no-op on SQLite."""
        ids = sorted({c for c in category_ids if c is not None})
        if not ids:
            return
        await db.execute(
            select(Category.id).where(Category.id.in_(ids)).order_by(Category.id).with_for_update()
        )

    # ── Assignments and users ───────────────────────────

    async def current_assignee_ids(self, db: AsyncSession, task_id: int) -> set[int]:
        result = await db.execute(select(TaskAssignment.user_id).where(TaskAssignment.task_id == task_id))
        return set(result.scalars().all())

    async def delete_assignments(self, db: AsyncSession, task_id: int) -> None:
        await db.execute(
            delete(TaskAssignment)
            .where(TaskAssignment.task_id == task_id)
            .execution_options(synchronize_session=False)
        )

    async def insert_assignments(self, db: AsyncSession, task_id: int, user_ids: list[int]) -> None:
        if not user_ids:
            return
        await db.execute(
            insert(TaskAssignment),
            [{"task_id": task_id, "user_id": user_id} for user_id in user_ids],
        )

    async def existing_user_ids(self, db: AsyncSession, user_ids: Iterable[int]) -> set[int]:
        ids = set(user_ids)
        if not ids:
            return set()
        result = await db.execute(select(User.id).where(User.id.in_(ids)))
        return set(result.scalars().all())

    async def users_by_ids(self, db: AsyncSession, user_ids: Iterable[int]) -> list[User]:
        ids = list(user_ids)
        if not ids:
            return []
        result = await db.execute(select(User).where(User.id.in_(ids)).order_by(User.id))
        return list(result.scalars().all())

    async def get_user(self, db: AsyncSession, user_id: int) -> User | None:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalars().first()
