import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskboard.errors import AuthorizationError
from taskboard.models.workspace import EDITOR_ROLES, WorkspaceMember


@dataclass(frozen=True)
class Membership:
    workspace_id: uuid.UUID
    user_id: int
    role: str

    @property
    def can_edit(self) -> bool:
        return self.role in EDITOR_ROLES


class WorkspaceAccess:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]):
        self.sessions = sessions

    async def verify_workspace_access(self, user_id: int, workspace_id: uuid.UUID) -> Membership | None:
        """The caller's membership in the workspace, or None when they have none."""
        async with self.sessions() as db:
            result = await db.execute(
                select(WorkspaceMember.role).where(
                    WorkspaceMember.workspace_id == workspace_id,
                    WorkspaceMember.user_id == user_id,
                )
            )
            role = result.scalars().first()
        if role is None:
            return None
        return Membership(workspace_id=workspace_id, user_id=user_id, role=role)

    async def require_member(self, user_id: int, workspace_id: uuid.UUID) -> Membership:
        membership = await self.verify_workspace_access(user_id, workspace_id)
        if membership is None:
            raise AuthorizationError("You do not have access to this workspace")
        return membership

    async def require_editor(self, user_id: int, workspace_id: uuid.UUID, message: str) -> Membership:
        membership = await self.require_member(user_id, workspace_id)
        if not membership.can_edit:
            raise AuthorizationError(message)
        return membership
