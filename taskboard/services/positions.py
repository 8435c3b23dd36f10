"""
Dense ordering of tasks inside a category.

For every (workspace, category) the task positions are exactly 0..n-1.
Every mutation here keeps that true for each category it touches:

* create appends at ``n``;
* delete closes the gap left behind;
* move closes the gap in the source category first, then opens the slot in
  the target category, then places the task. Both shifts are computed from
  the position read at the start of the transaction.

Categories use the same close/open primitives for their per-workspace order.
"""
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.errors import NotFoundError, ValidationError
from taskboard.models.tasks import Task
from taskboard.services.store import TaskStore

logger = logging.getLogger(__name__)


async def close_gap(db: AsyncSession, model, scope, position: int, exclude_id: int | None = None) -> None:
    """Shift every row in ``scope`` after ``position`` one slot down."""
    stmt = update(model).where(*scope, model.position > position)
    if exclude_id is not None:
        stmt = stmt.where(model.id != exclude_id)
    await db.execute(
        stmt.values(position=model.position - 1).execution_options(synchronize_session=False)
    )


async def open_slot(db: AsyncSession, model, scope, position: int, exclude_id: int | None = None) -> None:
    """Shift every row in ``scope`` at or after ``position`` one slot up."""
    stmt = update(model).where(*scope, model.position >= position)
    if exclude_id is not None:
        stmt = stmt.where(model.id != exclude_id)
    await db.execute(
        stmt.values(position=model.position + 1).execution_options(synchronize_session=False)
    )


def category_scope(workspace_id: uuid.UUID, category_id: int):
    return (Task.workspace_id == workspace_id, Task.category_id == category_id)


@dataclass(frozen=True)
class Move:
    task_id: int
    from_category_id: int | None
    from_position: int | None
    to_category_id: int | None
    to_position: int | None


@dataclass(frozen=True)
class Slot:
    workspace_id: uuid.UUID
    category_id: int | None
    position: int | None


class PositionReorderer:
    def __init__(self, store: TaskStore):
        self.store = store

    async def append_position(self, db: AsyncSession, category_id: int) -> int:
        return await self.store.count_in_category(db, category_id)

    async def move(self, task_id: int, target_position: int | None, target_category_id: int | None = None) -> Move:
        """
        Move a task to ``target_position`` in ``target_category_id``.

        An omitted category means the task's current one. Anything past the
        end is clamped to it. A position of None appends at the end; only
        ``update_task`` passes None, when a plain field update changes the
        category. The position endpoint always supplies an explicit position.
        """
        if target_position is not None and target_position < 0:
            raise ValidationError("Position must be zero or greater")

        async with self.store.transaction() as db:
            task = await self.store.get_task(db, task_id, for_update=True)
            if task is None:
                raise NotFoundError("Task not found")

            source_category_id, old_position = task.category_id, task.position
            if target_category_id is None:
                target_category_id = source_category_id
            if target_category_id is None:
                raise ValidationError("A category is required to position a task")

            await self.store.lock_categories(db, [source_category_id, target_category_id])
            target = await self.store.get_category(db, target_category_id)
            if target is None or target.workspace_id != task.workspace_id:
                raise NotFoundError("Category not found")

            size = await self.store.count_in_category(db, target_category_id, exclude_task_id=task.id)
            position = size if target_position is None else min(target_position, size)

            if source_category_id is not None and old_position is not None:
                await close_gap(
                    db, Task, category_scope(task.workspace_id, source_category_id), old_position, exclude_id=task.id
                )
            await open_slot(db, Task, category_scope(task.workspace_id, target_category_id), position, exclude_id=task.id)
            await self.store.update_task_fields(
                db, task.id, {"category_id": target_category_id, "position": position}
            )

        logger.info(
            "Moved task %s from category %s[%s] to %s[%s]",
            task_id, source_category_id, old_position, target_category_id, position,
        )
        return Move(task_id, source_category_id, old_position, target_category_id, position)

    async def detach(self, task_id: int) -> Move:
        """Take a task out of its category, closing the gap it leaves."""
        async with self.store.transaction() as db:
            task = await self.store.get_task(db, task_id, for_update=True)
            if task is None:
                raise NotFoundError("Task not found")
            source_category_id, old_position = task.category_id, task.position
            if source_category_id is not None:
                await self.store.lock_categories(db, [source_category_id])
                if old_position is not None:
                    await close_gap(
                        db, Task, category_scope(task.workspace_id, source_category_id), old_position, exclude_id=task.id
                    )
            await self.store.update_task_fields(db, task.id, {"category_id": None, "position": None})

        return Move(task_id, source_category_id, old_position, None, None)

    async def release_slots(self, db: AsyncSession, slots: list[Slot]) -> None:
        """
        Close the gaps left by rows already deleted in this transaction.

        Highest position first, so every shift sees the positions of the
        rows still left in the category.
        """
        placed = [s for s in slots if s.category_id is not None and s.position is not None]
        for slot in sorted(placed, key=lambda s: s.position, reverse=True):
            await close_gap(db, Task, category_scope(slot.workspace_id, slot.category_id), slot.position)
