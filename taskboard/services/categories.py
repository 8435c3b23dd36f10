"""
Categories: the named, colored, ordered buckets tasks are placed in.

Category positions are dense per workspace, kept with the same close/open
shifts the task reorderer uses.
"""
import logging
import re
import uuid

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskboard.database import transaction
from taskboard.errors import ConflictError, NotFoundError, ValidationError, AuthorizationError
from taskboard.models.tasks import Category, Task
from taskboard.schemas.category import CategoryCreate, CategoryList, CategoryUpdate, CategoryView
from taskboard.services.activity import ActivityRecorder
from taskboard.services.positions import close_gap, open_slot
from taskboard.services.workspace_access import WorkspaceAccess

logger = logging.getLogger(__name__)

HEX_COLOR = re.compile(r"^#[0-9A-F]{6}$", re.IGNORECASE)
VIEWER_MODIFY = "Viewers cannot modify categories"


def validate_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Category name is required")
    return name


def validate_color(color: str | None) -> str:
    if not color or not HEX_COLOR.match(color):
        raise ValidationError("Invalid color format. Use hex format (e.g., #3B82F6)")
    return color


class CategoryService:
    def __init__(self, sessions: async_sessionmaker[AsyncSession], access: WorkspaceAccess, activity: ActivityRecorder):
        self.sessions = sessions
        self.access = access
        self.activity = activity

    def _view_statement(self):
        task_count = (
            select(func.count(Task.id))
            .where(Task.category_id == Category.id)
            .correlate(Category)
            .scalar_subquery()
        )
        return select(Category, task_count.label("task_count"))

    async def _views(self, db: AsyncSession, stmt) -> list[CategoryView]:
        result = await db.execute(stmt)
        views = []
        for category, task_count in result.all():
            view = CategoryView.model_validate(category)
            view.task_count = task_count or 0
            views.append(view)
        return views

    async def _view(self, category_id: int) -> CategoryView:
        async with self.sessions() as db:
            views = await self._views(db, self._view_statement().where(Category.id == category_id))
        if not views:
            raise NotFoundError("Category not found")
        return views[0]

    async def _load(self, category_id: int, actor_id: int) -> Category:
        async with self.sessions() as db:
            result = await db.execute(select(Category).where(Category.id == category_id))
            category = result.scalars().first()
        if category is None:
            raise NotFoundError("Category not found")

        membership = await self.access.verify_workspace_access(actor_id, category.workspace_id)
        if membership is None:
            raise NotFoundError("Category not found")
        if not membership.can_edit:
            raise AuthorizationError(VIEWER_MODIFY)
        return category

    async def _lock_workspace(self, db: AsyncSession, workspace_id: uuid.UUID) -> None:
        await db.execute(
            select(Category.id)
            .where(Category.workspace_id == workspace_id)
            .order_by(Category.id)
            .with_for_update()
        )

    async def _ensure_unique_name(self, db: AsyncSession, workspace_id, name: str, exclude_id: int | None = None):
        stmt = select(Category.id).where(
            Category.workspace_id == workspace_id,
            func.lower(Category.name) == name.lower(),
        )
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        result = await db.execute(stmt)
        if result.scalars().first() is not None:
            raise ConflictError("Category with this name already exists")

    async def list_categories(self, workspace_id: uuid.UUID, actor_id: int) -> CategoryList:
        await self.access.require_member(actor_id, workspace_id)
        stmt = (
            self._view_statement()
            .where(Category.workspace_id == workspace_id)
            .order_by(Category.position, Category.id)
        )
        async with self.sessions() as db:
            categories = await self._views(db, stmt)
        return CategoryList(categories=categories, count=len(categories))

    async def create_category(self, data: CategoryCreate, actor_id: int) -> CategoryView:
        name = validate_name(data.name)
        color = validate_color(data.color)
        await self.access.require_editor(actor_id, data.workspace_id, VIEWER_MODIFY)

        async with transaction(self.sessions) as db:
            await self._lock_workspace(db, data.workspace_id)
            await self._ensure_unique_name(db, data.workspace_id, name)
            result = await db.execute(
                select(func.count(Category.id)).where(Category.workspace_id == data.workspace_id)
            )
            category = Category(
                workspace_id=data.workspace_id,
                name=name,
                color=color,
                position=result.scalar_one(),
                created_by=actor_id,
            )
            db.add(category)
            await db.flush()
            category_id = category.id

        logger.info("Category %s created in workspace %s", category_id, data.workspace_id)
        await self.activity.log_activity(
            data.workspace_id, actor_id, "created", "category", category_id, {"name": name}
        )
        return await self._view(category_id)

    async def update_category(self, category_id: int, data: CategoryUpdate, actor_id: int) -> CategoryView:
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")
        if "name" in changes:
            changes["name"] = validate_name(changes["name"])
        if "color" in changes:
            validate_color(changes["color"])
        new_position = changes.pop("position", None)
        if new_position is not None and new_position < 0:
            raise ValidationError("Position must be zero or greater")

        category = await self._load(category_id, actor_id)
        scope = (Category.workspace_id == category.workspace_id,)

        async with transaction(self.sessions) as db:
            await self._lock_workspace(db, category.workspace_id)
            if "name" in changes:
                await self._ensure_unique_name(db, category.workspace_id, changes["name"], exclude_id=category_id)

            if new_position is not None:
                result = await db.execute(
                    select(Category.position).where(Category.id == category_id)
                )
                old_position = result.scalar_one()
                result = await db.execute(
                    select(func.count(Category.id)).where(*scope, Category.id != category_id)
                )
                new_position = min(new_position, result.scalar_one())
                await close_gap(db, Category, scope, old_position, exclude_id=category_id)
                await open_slot(db, Category, scope, new_position, exclude_id=category_id)
                changes["position"] = new_position

            if changes:
                await db.execute(
                    update(Category)
                    .where(Category.id == category_id)
                    .values(**changes)
                    .execution_options(synchronize_session=False)
                )

        await self.activity.log_activity(
            category.workspace_id, actor_id, "updated", "category", category_id, {"fields": sorted(changes)}
        )
        return await self._view(category_id)

    async def delete_category(self, category_id: int, actor_id: int) -> None:
        category = await self._load(category_id, actor_id)

        async with transaction(self.sessions) as db:
            await self._lock_workspace(db, category.workspace_id)
            result = await db.execute(select(func.count(Task.id)).where(Task.category_id == category_id))
            task_count = result.scalar_one()
            if task_count:
                raise ConflictError(
                    f"Cannot delete category with {task_count} task(s). Move or delete tasks first."
                )
            result = await db.execute(select(Category.position).where(Category.id == category_id))
            position = result.scalar_one()
            await db.execute(
                delete(Category).where(Category.id == category_id).execution_options(synchronize_session=False)
            )
            await close_gap(db, Category, (Category.workspace_id == category.workspace_id,), position)

        logger.info("Category %s deleted from workspace %s", category_id, category.workspace_id)
        await self.activity.log_activity(
            category.workspace_id, actor_id, "deleted", "category", category_id, {"name": category.name}
        )
