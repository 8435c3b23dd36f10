"""
Filtered, keyset-paginated task reads.

Results are ordered by id and a page is requested as "ids greater than the
cursor", which stays stable while other requests insert or delete tasks.
"""
import uuid
from dataclasses import dataclass

from sqlalchemy import or_, select

from taskboard.models.tasks import Task, TaskAssignment
from taskboard.schemas.task import SubtaskList, TaskPage
from taskboard.services.store import TaskStore
from taskboard.utils.sanitization import escape_like

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class TaskFilters:
    workspace_id: uuid.UUID
    category_id: int | None = None
    status: str | None = None
    priority: str | None = None
    assignee_ids: tuple[int, ...] = ()
    search: str | None = None
    cursor: int | None = None
    limit: int = DEFAULT_PAGE_SIZE


class TaskQueryEngine:
    def __init__(self, store: TaskStore):
        self.store = store

    def build(self, filters: TaskFilters):
        stmt = self.store.view_statement().where(Task.workspace_id == filters.workspace_id)

        if filters.category_id is not None:
            stmt = stmt.where(Task.category_id == filters.category_id)
        if filters.status:
            stmt = stmt.where(Task.status == filters.status)
        if filters.priority:
            stmt = stmt.where(Task.priority == filters.priority)
        if filters.assignee_ids:
            # match-any against the assignment set
            stmt = stmt.where(
                select(TaskAssignment.task_id)
                .where(
                    TaskAssignment.task_id == Task.id,
                    TaskAssignment.user_id.in_(list(filters.assignee_ids)),
                )
                .exists()
            )
        if filters.search:
            pattern = f"%{escape_like(filters.search)}%"
            stmt = stmt.where(
                or_(
                    Task.title.ilike(pattern, escape="\\"),
                    Task.description.ilike(pattern, escape="\\"),
                )
            )
        if filters.cursor is not None:
            stmt = stmt.where(Task.id > filters.cursor)

        return stmt.order_by(Task.id).limit(filters.limit + 1)

    async def list(self, filters: TaskFilters) -> TaskPage:
        async with self.store.session() as db:
            tasks = await self.store.load_views(db, self.build(filters))

        has_more = len(tasks) > filters.limit
        if has_more:
            tasks = tasks[:filters.limit]

        return TaskPage(
            tasks=tasks,
            count=len(tasks),
            has_more=has_more,
            next_cursor=tasks[-1].id if has_more else None,
        )

    async def list_subtasks(self, parent_id: int) -> SubtaskList:
        stmt = (
            self.store.view_statement()
            .where(Task.parent_task_id == parent_id)
            .order_by(Task.position.is_(None), Task.position, Task.id)
        )
        async with self.store.session() as db:
            subtasks = await self.store.load_views(db, stmt)
        return SubtaskList(subtasks=subtasks, count=len(subtasks))
