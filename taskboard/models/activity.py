from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Uuid, JSON
from sqlalchemy.sql import func
from taskboard.database import Base


class ActivityLog(Base):
    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True, index=True)
    workspace_id = Column(Uuid, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(50), nullable=False)        # created, updated, moved, deleted
    entity_type = Column(String(50), nullable=False)   # task, category
    entity_id = Column(Integer, nullable=False)
    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
