"""
Test configuration and fixtures.

Provides:
- a fresh SQLite database file per test (aiosqlite, foreign keys on)
- a seeded workspace with admin, members, a viewer and an outsider
- a recording notifier standing in for the email queue
- the task manager wired the way the app wires it
- an httpx client over the ASGI app with the session factory overridden
"""
import logging
import os
from dataclasses import dataclass, field

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./.pytest-taskboard.db")
os.environ.setdefault("REMINDER_JOB_ENABLED", "false")

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from taskboard.config import settings
from taskboard.database import get_sessionmaker, init_models
from taskboard.dependencies import get_category_service, get_notifier, get_task_manager
from taskboard.main import app
from taskboard.models.tasks import Category, Task
from taskboard.models.user import User
from taskboard.models.workspace import Workspace, WorkspaceMember
from taskboard.schemas.task import TaskCreate

logging.basicConfig(level=logging.WARNING)


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class RecordingNotifier:
    """Captures queued notifications instead of writing email rows."""

    def __init__(self):
        self.assignments: list[dict] = []
        self.reminders: list[dict] = []

    async def queue_task_assignment_notification(self, **kwargs):
        self.assignments.append(kwargs)
        return len(self.assignments)

    async def queue_due_date_reminder(self, **kwargs):
        self.reminders.append(kwargs)
        return len(self.reminders)

    @property
    def assigned_emails(self) -> list[str]:
        return [n["to"] for n in self.assignments]


@dataclass
class Seed:
    workspace_id: object
    other_workspace_id: object
    users: dict[str, int] = field(default_factory=dict)
    categories: dict[str, int] = field(default_factory=dict)
    other_category_id: int | None = None


@pytest.fixture
async def sessions(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'taskboard.db'}")
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)
    await init_models(engine)
    yield async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest.fixture
async def seed(sessions) -> Seed:
    async with sessions() as db:
        workspace = Workspace(name="Acme")
        other = Workspace(name="Elsewhere")
        db.add_all([workspace, other])

        people = {
            "alice": ("alice@example.com", "Alice", True),
            "bob": ("bob@example.com", "Bob", True),
            "carol": ("carol@example.com", "Carol", True),
            "vic": ("vic@example.com", "Vic", True),
            "dave": ("dave@example.com", "Dave", False),
            "olga": ("olga@example.com", "Olga", True),
        }
        users = {}
        for key, (email, name, notify) in people.items():
            users[key] = User(email=email, name=name, email_notifications_enabled=notify)
        db.add_all(users.values())
        await db.flush()

        roles = {"alice": "admin", "bob": "member", "carol": "member", "vic": "viewer", "dave": "member"}
        for key, role in roles.items():
            db.add(WorkspaceMember(workspace_id=workspace.id, user_id=users[key].id, role=role))
        # olga only belongs to the other workspace
        db.add(WorkspaceMember(workspace_id=other.id, user_id=users["olga"].id, role="admin"))

        backlog = Category(workspace_id=workspace.id, name="Backlog", position=0, created_by=users["alice"].id)
        doing = Category(workspace_id=workspace.id, name="Doing", color="#10B981", position=1)
        elsewhere = Category(workspace_id=other.id, name="Backlog", position=0)
        db.add_all([backlog, doing, elsewhere])
        await db.commit()

        return Seed(
            workspace_id=workspace.id,
            other_workspace_id=other.id,
            users={key: user.id for key, user in users.items()},
            categories={"backlog": backlog.id, "doing": doing.id},
            other_category_id=elsewhere.id,
        )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def manager(sessions, notifier):
    return get_task_manager(sessions=sessions, notifier=notifier)


@pytest.fixture
def category_service(sessions):
    return get_category_service(sessions=sessions)


@pytest.fixture
async def client(sessions, notifier):
    app.dependency_overrides[get_sessionmaker] = lambda: sessions
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def auth_headers(user_id: int) -> dict[str, str]:
    token = jwt.encode({"sub": str(user_id)}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


async def category_order(sessions, category_id: int) -> list[tuple[int, int]]:
    """(task id, position) pairs of a category, in position order."""
    async with sessions() as db:
        result = await db.execute(
            select(Task.id, Task.position).where(Task.category_id == category_id).order_by(Task.position)
        )
        return [tuple(row) for row in result.all()]


def assert_dense(order: list[tuple[int, int]]) -> None:
    assert [position for _, position in order] == list(range(len(order)))


async def new_task(manager, seed: Seed, title: str, category: str | None = "backlog", actor: str = "alice", **fields):
    data = TaskCreate(
        workspace_id=seed.workspace_id,
        title=title,
        category_id=seed.categories[category] if category else None,
        **fields,
    )
    return await manager.create_task(data, seed.users[actor])
