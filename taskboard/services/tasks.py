"""
Public task operations.

TaskLifecycleManager validates input, checks workspace roles, and delegates
to the reorderer, the assignment engine and the query engine. Activity and
notification side effects run after the data is committed and never fail
the operation.
"""
import logging
from datetime import datetime, timezone

from taskboard.errors import AuthorizationError, NotFoundError, ValidationError
from taskboard.models.tasks import Task, TaskPriority, TaskStatus
from taskboard.schemas.task import SubtaskList, TaskCreate, TaskPage, TaskPositionUpdate, TaskUpdate, TaskView
from taskboard.services.activity import ActivityRecorder
from taskboard.services.assignments import AssignmentDiffEngine, TaskRef, unique_ids
from taskboard.services.positions import PositionReorderer, Slot
from taskboard.services.queries import MAX_PAGE_SIZE, TaskFilters, TaskQueryEngine
from taskboard.services.store import TaskStore
from taskboard.services.workspace_access import WorkspaceAccess

logger = logging.getLogger(__name__)

PRIORITIES = [p.value for p in TaskPriority]
STATUSES = [s.value for s in TaskStatus]

VIEWER_MODIFY = "Viewers cannot modify tasks"
VIEWER_DELETE = "Viewers cannot delete tasks"


def validate_title(title: str | None) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Task title is required")
    return title


def validate_priority(priority: str | None) -> str:
    if priority not in PRIORITIES:
        raise ValidationError("Invalid priority. Must be: low, medium, high, or urgent")
    return priority


def validate_status(status: str | None) -> str:
    if status not in STATUSES:
        raise ValidationError("Invalid status. Must be: todo, in_progress, or completed")
    return status


def completion_timestamp(old_status: str | None, new_status: str):
    """
    ``completed_at`` for a status write: now when a task becomes completed,
    None when it leaves (or never reaches) completed, and the sentinel
    ``...`` for completed -> completed, meaning leave it as it is.
    """
    if new_status != TaskStatus.completed.value:
        return None
    if old_status == TaskStatus.completed.value:
        return ...
    return datetime.now(timezone.utc)


class TaskLifecycleManager:
    def __init__(
        self,
        store: TaskStore,
        reorderer: PositionReorderer,
        assignments: AssignmentDiffEngine,
        queries: TaskQueryEngine,
        access: WorkspaceAccess,
        activity: ActivityRecorder,
    ):
        self.store = store
        self.reorderer = reorderer
        self.assignments = assignments
        self.queries = queries
        self.access = access
        self.activity = activity

    # ── Helpers ─────────────────────────────────────────

    async def _load_task(self, task_id: int, actor_id: int, editor_message: str | None = None) -> Task:
        """
        Fetch a task the actor can see. Tasks in other workspaces look
        missing; viewers get ``editor_message`` when one is given.
        """
        async with self.store.session() as db:
            task = await self.store.get_task(db, task_id)
        if task is None:
            raise NotFoundError("Task not found")

        membership = await self.access.verify_workspace_access(actor_id, task.workspace_id)
        if membership is None:
            raise NotFoundError("Task not found")
        if editor_message and not membership.can_edit:
            raise AuthorizationError(editor_message)
        return task

    async def _view(self, task_id: int) -> TaskView:
        async with self.store.session() as db:
            view = await self.store.get_view(db, task_id)
        if view is None:
            raise NotFoundError("Task not found")
        return view

    async def _check_category(self, category_id: int, workspace_id) -> None:
        async with self.store.session() as db:
            category = await self.store.get_category(db, category_id)
        if category is None or category.workspace_id != workspace_id:
            raise NotFoundError("Category not found")

    # ── Operations ──────────────────────────────────────

    async def create_task(self, data: TaskCreate, actor_id: int) -> TaskView:
        title = validate_title(data.title)
        priority = validate_priority(data.priority or TaskPriority.medium.value)
        status = validate_status(data.status or TaskStatus.todo.value)
        await self.access.require_editor(actor_id, data.workspace_id, VIEWER_MODIFY)

        assignee_ids = unique_ids(data.assignee_ids)
        completed_at = completion_timestamp(None, status)

        async with self.store.transaction() as db:
            await self.assignments.ensure_users_exist(db, assignee_ids)

            if data.parent_task_id is not None:
                parent = await self.store.get_task(db, data.parent_task_id)
                if parent is None or parent.workspace_id != data.workspace_id:
                    raise NotFoundError("Parent task not found")
                if parent.parent_task_id is not None:
                    raise ValidationError("Subtasks cannot have subtasks")

            position = None
            if data.category_id is not None:
                await self.store.lock_categories(db, [data.category_id])
                category = await self.store.get_category(db, data.category_id)
                if category is None or category.workspace_id != data.workspace_id:
                    raise NotFoundError("Category not found")
                position = await self.reorderer.append_position(db, data.category_id)

            task = await self.store.insert_task(db, {
                "workspace_id": data.workspace_id,
                "title": title,
                "description": data.description,
                "category_id": data.category_id,
                "parent_task_id": data.parent_task_id,
                "priority": priority,
                "status": status,
                "due_date": data.due_date,
                "completed_at": completed_at,
                "position": position,
                "created_by": actor_id,
            })
            await self.store.insert_assignments(db, task.id, assignee_ids)
            ref = TaskRef.from_task(task)

        logger.info("Task %s created in workspace %s by user %s", ref.id, ref.workspace_id, actor_id)

        await self.activity.log_activity(
            ref.workspace_id, actor_id, "created", "task", ref.id,
            {"title": title, "category_id": data.category_id},
        )
        await self.assignments.notify_assignees(ref, assignee_ids, actor_id)
        return await self._view(ref.id)

    async def get_task(self, task_id: int, actor_id: int) -> TaskView:
        await self._load_task(task_id, actor_id)
        return await self._view(task_id)

    async def update_task(self, task_id: int, patch: TaskUpdate, actor_id: int) -> TaskView:
        changes = patch.model_dump(exclude_unset=True)
        replace_assignees = "assignee_ids" in changes
        assignee_ids = unique_ids(changes.pop("assignee_ids", None))

        if not changes and not replace_assignees:
            raise ValidationError("No fields to update")
        if "title" in changes:
            changes["title"] = validate_title(changes["title"])
        if "priority" in changes:
            validate_priority(changes["priority"])
        if "status" in changes:
            validate_status(changes["status"])

        task = await self._load_task(task_id, actor_id, VIEWER_MODIFY)

        if "status" in changes:
            completed_at = completion_timestamp(task.status, changes["status"])
            if completed_at is not ...:
                changes["completed_at"] = completed_at

        # category changes go through the reorderer so positions stay dense
        move_category = "category_id" in changes and changes["category_id"] != task.category_id
        target_category_id = changes.pop("category_id", None)
        if move_category and target_category_id is not None:
            await self._check_category(target_category_id, task.workspace_id)
        if replace_assignees:
            async with self.store.session() as db:
                await self.assignments.ensure_users_exist(db, assignee_ids)

        if replace_assignees:
            await self.assignments.replace_assignees(TaskRef.from_task(task, changes), assignee_ids, actor_id)

        if move_category:
            if target_category_id is None:
                await self.reorderer.detach(task_id)
            else:
                await self.reorderer.move(task_id, None, target_category_id)

        if changes:
            async with self.store.session() as db:
                await self.store.update_task_fields(db, task_id, changes)
                await db.commit()

        fields = sorted(f for f in changes if f != "completed_at")
        if move_category:
            fields.append("category_id")
        if replace_assignees:
            fields.append("assignee_ids")
        logger.info("Task %s updated by user %s: %s", task_id, actor_id, fields)

        await self.activity.log_activity(task.workspace_id, actor_id, "updated", "task", task_id, {"fields": fields})
        return await self._view(task_id)

    async def update_task_position(self, task_id: int, data: TaskPositionUpdate, actor_id: int) -> TaskView:
        task = await self._load_task(task_id, actor_id, VIEWER_MODIFY)
        move = await self.reorderer.move(task_id, data.position, data.category_id)

        await self.activity.log_activity(
            task.workspace_id, actor_id, "moved", "task", task_id,
            {
                "from_category_id": move.from_category_id,
                "from_position": move.from_position,
                "to_category_id": move.to_category_id,
                "to_position": move.to_position,
            },
        )
        return await self._view(task_id)

    async def delete_task(self, task_id: int, actor_id: int) -> None:
        task = await self._load_task(task_id, actor_id, VIEWER_DELETE)

        async with self.store.transaction() as db:
            family = await self.store.get_task_family(db, task_id)
            if not any(t.id == task_id for t in family):
                raise NotFoundError("Task not found")
            slots = [Slot(t.workspace_id, t.category_id, t.position) for t in family]
            await self.store.lock_categories(db, [s.category_id for s in slots])
            await self.store.delete_tasks(db, [t.id for t in family])
            await self.reorderer.release_slots(db, slots)

        logger.info("Task %s deleted by user %s with %s subtask(s)", task_id, actor_id, len(family) - 1)
        await self.activity.log_activity(
            task.workspace_id, actor_id, "deleted", "task", task_id,
            {"title": task.title, "subtasks_deleted": len(family) - 1},
        )

    async def get_all_tasks(self, filters: TaskFilters, actor_id: int) -> TaskPage:
        await self.access.require_member(actor_id, filters.workspace_id)
        if filters.status:
            validate_status(filters.status)
        if filters.priority:
            validate_priority(filters.priority)
        if not 1 <= filters.limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")
        return await self.queries.list(filters)

    async def get_subtasks(self, parent_id: int, actor_id: int) -> SubtaskList:
        await self._load_task(parent_id, actor_id)
        return await self.queries.list_subtasks(parent_id)
