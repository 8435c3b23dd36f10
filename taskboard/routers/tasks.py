import uuid

from fastapi import APIRouter, Depends, Query, status

from taskboard.dependencies import get_current_user, get_task_manager
from taskboard.errors import ValidationError
from taskboard.models.user import User as UserModel
from taskboard.schemas.task import (
    MessageResponse, SubtaskList, TaskCreate, TaskPage, TaskPositionUpdate, TaskUpdate, TaskView
)
from taskboard.services.queries import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, TaskFilters
from taskboard.services.tasks import TaskLifecycleManager

router = APIRouter(prefix="/tasks", tags=["tasks"])


def parse_id_list(raw: str | None) -> tuple[int, ...]:
    """``"1,2, 3"`` -> ``(1, 2, 3)``."""
    if not raw:
        return ()
    try:
        return tuple(int(part) for part in raw.split(",") if part.strip())
    except ValueError:
        raise ValidationError("assigneeIds must be a comma-separated list of ids")


@router.get("", response_model=TaskPage)
async def list_tasks(
    workspace_id: uuid.UUID = Query(..., alias="workspaceId"),
    category_id: int | None = Query(None, alias="categoryId"),
    task_status: str | None = Query(None, alias="status"),
    priority: str | None = Query(None),
    assignee_ids: str | None = Query(None, alias="assigneeIds"),
    search: str | None = Query(None),
    cursor: int | None = Query(None),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    current_user: UserModel = Depends(get_current_user),
    manager: TaskLifecycleManager = Depends(get_task_manager),
):
    filters = TaskFilters(
        workspace_id=workspace_id,
        category_id=category_id,
        status=task_status,
        priority=priority,
        assignee_ids=parse_id_list(assignee_ids),
        search=search.strip() if search else None,
        cursor=cursor,
        limit=limit,
    )
    return await manager.get_all_tasks(filters, current_user.id)


@router.get("/{task_id}", response_model=TaskView)
async def get_task(
    task_id: int,
    current_user: UserModel = Depends(get_current_user),
    manager: TaskLifecycleManager = Depends(get_task_manager),
):
    return await manager.get_task(task_id, current_user.id)


@router.post("", response_model=TaskView, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    current_user: UserModel = Depends(get_current_user),
    manager: TaskLifecycleManager = Depends(get_task_manager),
):
    return await manager.create_task(task_data, current_user.id)


@router.put("/{task_id}", response_model=TaskView)
async def update_task(
    task_id: int,
    update_data: TaskUpdate,
    current_user: UserModel = Depends(get_current_user),
    manager: TaskLifecycleManager = Depends(get_task_manager),
):
    return await manager.update_task(task_id, update_data, current_user.id)


@router.patch("/{task_id}/position", response_model=TaskView)
async def update_task_position(
    task_id: int,
    position_data: TaskPositionUpdate,
    current_user: UserModel = Depends(get_current_user),
    manager: TaskLifecycleManager = Depends(get_task_manager),
):
    return await manager.update_task_position(task_id, position_data, current_user.id)


@router.delete("/{task_id}", response_model=MessageResponse)
async def delete_task(
    task_id: int,
    current_user: UserModel = Depends(get_current_user),
    manager: TaskLifecycleManager = Depends(get_task_manager),
):
    await manager.delete_task(task_id, current_user.id)
    return {"message": "Task deleted successfully"}


@router.get("/{parent_id}/subtasks", response_model=SubtaskList)
async def get_subtasks(
    parent_id: int,
    current_user: UserModel = Depends(get_current_user),
    manager: TaskLifecycleManager = Depends(get_task_manager),
):
    return await manager.get_subtasks(parent_id, current_user.id)
