"""
Best-effort email delivery.

Every message is first written to ``email_queue`` as pending, then handed to
an in-process ``asyncio.Queue``. The background worker started by the app
lifespan sends it and marks the row sent or failed.
"""
import asyncio
import logging
import uuid
from datetime import date, datetime, timezone
from typing import TypedDict

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskboard.config import settings
from taskboard.models.email import EmailQueueEntry
from taskboard.utils.email import send_email_async

logger = logging.getLogger(__name__)


class EmailJob(TypedDict):
    entry_id: int
    subject: str
    body: str
    to_email: str


# Per-process queue of jobs waiting for the worker
email_queue: asyncio.Queue[EmailJob] = asyncio.Queue()


async def _mark(sessions: async_sessionmaker[AsyncSession], entry_id: int, **values) -> None:
    async with sessions() as db:
        await db.execute(
            update(EmailQueueEntry)
            .where(EmailQueueEntry.id == entry_id)
            .values(attempts=EmailQueueEntry.attempts + 1, **values)
        )
        await db.commit()


async def process_job(sessions: async_sessionmaker[AsyncSession], job: EmailJob) -> None:
    entry_id = job["entry_id"]
    try:
        sent = await send_email_async(job["subject"], job["body"], job["to_email"])
    except Exception as e:
        logger.warning("Email %s to %s failed: %s", entry_id, job["to_email"], e)
        await _mark(sessions, entry_id, status="failed", error_message=str(e))
        return

    if sent:
        await _mark(sessions, entry_id, status="sent", sent_at=datetime.now(timezone.utc))
    else:
        # left pending for a deployment that has SMTP configured
        logger.debug("Email %s left pending", entry_id)


async def email_worker(sessions: async_sessionmaker[AsyncSession]):
    """
    Pull jobs from ``email_queue`` and send them until cancelled.
    """
    logger.info("Background email worker started")
    while True:
        job = await email_queue.get()
        try:
            await process_job(sessions, job)
        except Exception:
            logger.exception("Failed to process email job %s", job.get("entry_id"))
        finally:
            email_queue.task_done()


async def enqueue_email(
    sessions: async_sessionmaker[AsyncSession],
    email_type: str,
    subject: str,
    body: str,
    to_email: str,
) -> int:
    """Record a pending email and hand it to the worker. Returns the row id."""
    async with sessions() as db:
        entry = EmailQueueEntry(
            to_email=to_email, email_type=email_type, subject=subject, body=body, status="pending"
        )
        db.add(entry)
        await db.commit()
        entry_id = entry.id

    await email_queue.put({"entry_id": entry_id, "subject": subject, "body": body, "to_email": to_email})
    logger.debug("Enqueued %s email %s to %s", email_type, entry_id, to_email)
    return entry_id


class NotificationQueue:
    """Plain-text task notifications on top of ``enqueue_email``."""

    def __init__(self, sessions: async_sessionmaker[AsyncSession]):
        self.sessions = sessions

    def task_link(self, workspace_id: uuid.UUID, task_id: int) -> str:
        return f"{settings.APP_URL}/workspaces/{workspace_id}/tasks/{task_id}"

    async def queue_task_assignment_notification(
        self,
        to: str,
        task_id: int,
        task_title: str,
        assigned_by_name: str,
        due_date: date | None,
        priority: str,
        workspace_id: uuid.UUID,
    ) -> int:
        subject = f"{assigned_by_name} assigned you a task: {task_title}"
        body = (
            f"Hello,\n\n"
            f"{assigned_by_name} assigned you to a task:\n"
            f"Task: {task_title}\n"
            f"Priority: {priority}\n"
            f"Due Date: {due_date or 'No due date'}\n\n"
            f"Open it here: {self.task_link(workspace_id, task_id)}\n"
        )
        return await enqueue_email(self.sessions, "task_assignment", subject, body, to)

    async def queue_due_date_reminder(
        self,
        to: str,
        task_id: int,
        task_title: str,
        due_date: date,
        priority: str,
        workspace_id: uuid.UUID,
    ) -> int:
        subject = f"Reminder: Task Due Soon - {task_title}"
        body = (
            f"Hello,\n\n"
            f"This is a reminder that your task is due soon:\n"
            f"Task: {task_title}\n"
            f"Priority: {priority}\n"
            f"Due Date: {due_date}\n\n"
            f"Open it here: {self.task_link(workspace_id, task_id)}\n"
        )
        return await enqueue_email(self.sessions, "due_reminder", subject, body, to)
