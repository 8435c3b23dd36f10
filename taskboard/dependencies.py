from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskboard.config import settings
from taskboard.database import get_sessionmaker
from taskboard.models.user import User as UserModel
from taskboard.services.activity import ActivityRecorder
from taskboard.services.assignments import AssignmentDiffEngine
from taskboard.services.categories import CategoryService
from taskboard.services.email_worker import NotificationQueue
from taskboard.services.positions import PositionReorderer
from taskboard.services.queries import TaskQueryEngine
from taskboard.services.store import TaskStore
from taskboard.services.tasks import TaskLifecycleManager
from taskboard.services.workspace_access import WorkspaceAccess

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> UserModel:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception
    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        subject = payload.get("sub")
        if subject is None:
            raise credentials_exception
        user_id = int(subject)
    except (JWTError, ValueError):
        raise credentials_exception

    async with sessions() as db:
        user = await db.get(UserModel, user_id)
    if user is None:
        raise credentials_exception
    return user


def get_notifier(sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker)):
    return NotificationQueue(sessions)


def get_task_manager(
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    notifier=Depends(get_notifier),
) -> TaskLifecycleManager:
    store = TaskStore(sessions)
    return TaskLifecycleManager(
        store=store,
        reorderer=PositionReorderer(store),
        assignments=AssignmentDiffEngine(store, notifier),
        queries=TaskQueryEngine(store),
        access=WorkspaceAccess(sessions),
        activity=ActivityRecorder(sessions),
    )


def get_category_service(
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> CategoryService:
    return CategoryService(sessions, WorkspaceAccess(sessions), ActivityRecorder(sessions))
