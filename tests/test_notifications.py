from datetime import date, timedelta

import pytest
from sqlalchemy import select

from taskboard.models.email import EmailQueueEntry, ReminderLog
from taskboard.schemas.task import TaskUpdate
from taskboard.services import email_worker
from taskboard.services.email_worker import NotificationQueue, enqueue_email, process_job
from taskboard.services.scheduler import send_due_date_reminders

from conftest import new_task

TODAY = date(2030, 6, 1)


@pytest.fixture(autouse=True)
def drain_email_queue():
    yield
    while not email_worker.email_queue.empty():
        email_worker.email_queue.get_nowait()
        email_worker.email_queue.task_done()


async def entries(sessions):
    async with sessions() as db:
        result = await db.execute(select(EmailQueueEntry).order_by(EmailQueueEntry.id))
        return result.scalars().all()


async def test_reminders_for_tasks_due_soon(manager, seed, notifier, sessions):
    users = seed.users
    due = await new_task(
        manager, seed, "Due tomorrow", due_date=TODAY + timedelta(days=1),
        assignee_ids=[users["bob"], users["dave"]],
    )
    await new_task(manager, seed, "Due later", due_date=TODAY + timedelta(days=5), assignee_ids=[users["bob"]])
    await new_task(
        manager, seed, "Done already", status="completed", due_date=TODAY, assignee_ids=[users["bob"]]
    )

    queued = await send_due_date_reminders(sessions, notifier, today=TODAY, lookahead_days=1)

    assert queued == 1
    assert [(r["to"], r["task_id"]) for r in notifier.reminders] == [("bob@example.com", due.id)]
    assert notifier.reminders[0]["due_date"] == TODAY + timedelta(days=1)


async def test_reminder_sent_once_per_due_date(manager, seed, notifier, sessions):
    users = seed.users
    task = await new_task(manager, seed, "Due today", due_date=TODAY, assignee_ids=[users["bob"]])

    assert await send_due_date_reminders(sessions, notifier, today=TODAY, lookahead_days=1) == 1
    assert await send_due_date_reminders(sessions, notifier, today=TODAY, lookahead_days=1) == 0

    # moving the due date earns a fresh reminder
    await manager.update_task(task.id, TaskUpdate(due_date=TODAY + timedelta(days=1)), users["alice"])
    assert await send_due_date_reminders(sessions, notifier, today=TODAY, lookahead_days=1) == 1

    async with sessions() as db:
        logged = (await db.execute(select(ReminderLog.due_date).order_by(ReminderLog.id))).scalars().all()
    assert logged == [TODAY, TODAY + timedelta(days=1)]


async def test_notification_queue_writes_pending_row(seed, sessions):
    queue = NotificationQueue(sessions)

    entry_id = await queue.queue_task_assignment_notification(
        to="bob@example.com",
        task_id=7,
        task_title="Ship it",
        assigned_by_name="Alice",
        due_date=None,
        priority="high",
        workspace_id=seed.workspace_id,
    )

    [entry] = await entries(sessions)
    assert entry.id == entry_id
    assert entry.status == "pending"
    assert entry.email_type == "task_assignment"
    assert entry.subject == "Alice assigned you a task: Ship it"
    assert "Priority: high" in entry.body
    assert "/tasks/7" in entry.body
    assert email_worker.email_queue.qsize() == 1


async def test_worker_marks_sent(sessions, monkeypatch):
    async def fake_send(subject, body, to_email):
        return True

    monkeypatch.setattr(email_worker, "send_email_async", fake_send)
    entry_id = await enqueue_email(sessions, "due_reminder", "Reminder", "Body", "bob@example.com")

    await process_job(sessions, email_worker.email_queue.get_nowait())
    email_worker.email_queue.task_done()

    [entry] = await entries(sessions)
    assert entry.id == entry_id
    assert entry.status == "sent"
    assert entry.attempts == 1
    assert entry.sent_at is not None


async def test_worker_marks_failed(sessions, monkeypatch):
    async def failing_send(subject, body, to_email):
        raise ConnectionRefusedError("smtp unreachable")

    monkeypatch.setattr(email_worker, "send_email_async", failing_send)
    await enqueue_email(sessions, "due_reminder", "Reminder", "Body", "bob@example.com")

    await process_job(sessions, email_worker.email_queue.get_nowait())
    email_worker.email_queue.task_done()

    [entry] = await entries(sessions)
    assert entry.status == "failed"
    assert entry.error_message == "smtp unreachable"


async def test_unconfigured_smtp_leaves_entry_pending(sessions, monkeypatch):
    monkeypatch.setattr(email_worker.settings, "EMAIL_HOST", None)
    await enqueue_email(sessions, "due_reminder", "Reminder", "Body", "bob@example.com")

    await process_job(sessions, email_worker.email_queue.get_nowait())
    email_worker.email_queue.task_done()

    [entry] = await entries(sessions)
    assert entry.status == "pending"
    assert entry.attempts == 0
