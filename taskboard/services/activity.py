import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskboard.models.activity import ActivityLog

logger = logging.getLogger(__name__)


class ActivityRecorder:
    """Append-only audit trail. Writing an entry never fails the caller."""

    def __init__(self, sessions: async_sessionmaker[AsyncSession]):
        self.sessions = sessions

    async def log_activity(
        self,
        workspace_id: uuid.UUID,
        user_id: int,
        action: str,
        entity_type: str,
        entity_id: int,
        metadata: dict | None = None,
    ) -> None:
        try:
            async with self.sessions() as db:
                db.add(ActivityLog(
                    workspace_id=workspace_id,
                    user_id=user_id,
                    action=action,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    details=metadata,
                ))
                await db.commit()
        except Exception:
            logger.exception("Failed to log %s activity for %s %s", action, entity_type, entity_id)
