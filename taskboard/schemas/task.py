import uuid
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from datetime import date, datetime
from taskboard.utils.sanitization import sanitize_string


class CamelModel(BaseModel):
    """Accepts camelCase or snake_case keys, serializes camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ── Request bodies ──────────────────────────────────────

class TaskCreate(CamelModel):
    workspace_id: uuid.UUID
    title: str = Field(..., max_length=500)
    description: str | None = Field(None, max_length=10000)
    category_id: int | None = None
    parent_task_id: int | None = None
    # priority/status are checked by the task service so bad values share one error shape
    priority: str | None = None
    status: str | None = None
    due_date: date | None = None
    assignee_ids: list[int] = Field(default_factory=list)

    @field_validator("title", "description", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class TaskUpdate(CamelModel):
    title: str | None = Field(None, max_length=500)
    description: str | None = Field(None, max_length=10000)
    category_id: int | None = None
    priority: str | None = None
    status: str | None = None
    due_date: date | None = None
    assignee_ids: list[int] | None = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class TaskPositionUpdate(CamelModel):
    category_id: int | None = None
    position: int


# ── Responses ───────────────────────────────────────────

class AssigneeSummary(CamelModel):
    id: int
    name: str | None = None
    email: str


class TaskView(CamelModel):
    id: int
    workspace_id: uuid.UUID
    title: str
    description: str | None = None
    category_id: int | None = None
    category_name: str | None = None
    category_color: str | None = None
    assignees: list[AssigneeSummary] = []
    priority: str
    status: str
    due_date: date | None = None
    completed_at: datetime | None = None
    position: int | None = None
    parent_task_id: int | None = None
    subtask_count: int = 0
    completed_subtask_count: int = 0
    created_by: int | None = None
    created_by_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TaskPage(CamelModel):
    tasks: list[TaskView]
    count: int
    has_more: bool
    next_cursor: int | None = None


class SubtaskList(CamelModel):
    subtasks: list[TaskView]
    count: int


class MessageResponse(BaseModel):
    message: str
