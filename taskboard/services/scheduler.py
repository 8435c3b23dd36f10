import logging
from datetime import date, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskboard.config import settings
from taskboard.models.email import ReminderLog
from taskboard.models.tasks import Task, TaskAssignment, TaskStatus
from taskboard.models.user import User

logger = logging.getLogger(__name__)


async def send_due_date_reminders(
    sessions: async_sessionmaker[AsyncSession],
    notifier,
    today: date | None = None,
    lookahead_days: int | None = None,
) -> int:
    """
    Enqueue one reminder per (task, assignee) for open tasks due between
    today and today + lookahead. A task/user/due-date triple is reminded
    once; a changed due date earns a new reminder.

    Returns the number of reminders queued.
    """
    today = today or date.today()
    lookahead = settings.REMINDER_LOOKAHEAD_DAYS if lookahead_days is None else lookahead_days
    until = today + timedelta(days=lookahead)

    already_sent = (
        select(ReminderLog.id)
        .where(
            ReminderLog.task_id == Task.id,
            ReminderLog.user_id == User.id,
            ReminderLog.due_date == Task.due_date,
        )
        .exists()
    )
    stmt = (
        select(Task, User)
        .join(TaskAssignment, TaskAssignment.task_id == Task.id)
        .join(User, User.id == TaskAssignment.user_id)
        .where(
            Task.status != TaskStatus.completed.value,
            Task.due_date.is_not(None),
            Task.due_date.between(today, until),
            User.email_notifications_enabled.is_(True),
            ~already_sent,
        )
        .order_by(Task.id, User.id)
    )

    async with sessions() as db:
        rows = (await db.execute(stmt)).all()

    queued = 0
    for task, user in rows:
        try:
            await notifier.queue_due_date_reminder(
                to=user.email,
                task_id=task.id,
                task_title=task.title,
                due_date=task.due_date,
                priority=task.priority,
                workspace_id=task.workspace_id,
            )
            async with sessions() as db:
                db.add(ReminderLog(task_id=task.id, user_id=user.id, due_date=task.due_date))
                await db.commit()
            queued += 1
        except Exception:
            logger.exception("Failed to queue due-date reminder for task %s, user %s", task.id, user.id)

    logger.info("Due-date reminder job queued %s reminder(s)", queued)
    return queued


def setup_scheduler(sessions: async_sessionmaker[AsyncSession], notifier) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        send_due_date_reminders,
        trigger=CronTrigger(hour=settings.REMINDER_HOUR, minute=settings.REMINDER_MINUTE),
        args=[sessions, notifier],
        id="due_date_reminders",
        replace_existing=True,
    )
    scheduler.start()
    return scheduler
