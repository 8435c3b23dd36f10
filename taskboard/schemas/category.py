import uuid
from datetime import datetime
from pydantic import Field, field_validator
from taskboard.schemas.task import CamelModel
from taskboard.utils.sanitization import sanitize_string


class CategoryCreate(CamelModel):
    workspace_id: uuid.UUID
    name: str = Field(..., max_length=100)
    color: str = "#3B82F6"

    @field_validator("name", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class CategoryUpdate(CamelModel):
    name: str | None = Field(None, max_length=100)
    color: str | None = None
    position: int | None = None

    @field_validator("name", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class CategoryView(CamelModel):
    id: int
    workspace_id: uuid.UUID
    name: str
    color: str
    position: int
    task_count: int = 0
    created_by: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CategoryList(CamelModel):
    categories: list[CategoryView]
    count: int
