from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from chatplanner.db.models import Meeting, TaskItem


# sqlite drops offsets, so everything is stored as UTC and tagged back on read
def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def from_db(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def create_meeting(
    session: Session,
    *,
    user_id: str,
    title: str,
    starts_at: datetime,
    ends_at: datetime,
    external_link: str | None = None,
) -> Meeting:
    meeting = Meeting(
        user_id=user_id,
        title=title,
        starts_at=to_utc(starts_at),
        ends_at=to_utc(ends_at),
        external_link=external_link,
    )
    session.add(meeting)
    session.flush()
    return meeting


def create_task(
    session: Session,
    *,
    user_id: str,
    title: str,
    due_at: datetime | None,
    priority: str = "MEDIUM",
    external_link: str | None = None,
) -> TaskItem:
    task = TaskItem(
        user_id=user_id,
        title=title,
        due_at=to_utc(due_at) if due_at is not None else None,
        priority=priority,
        external_link=external_link,
    )
    session.add(task)
    session.flush()
    return task


def list_meetings_between(session: Session, user_id: str, start: datetime, end: datetime) -> list[Meeting]:
    stmt = (
        select(Meeting)
        .where(
            Meeting.user_id == user_id,
            Meeting.starts_at >= to_utc(start),
            Meeting.starts_at < to_utc(end),
        )
        .order_by(Meeting.starts_at)
    )
    return list(session.scalars(stmt))


def list_tasks_due_between(session: Session, user_id: str, start: datetime, end: datetime) -> list[TaskItem]:
    stmt = (
        select(TaskItem)
        .where(
            TaskItem.user_id == user_id,
            TaskItem.status == "OPEN",
            TaskItem.due_at.is_not(None),
            TaskItem.due_at >= to_utc(start),
            TaskItem.due_at < to_utc(end),
        )
        .order_by(TaskItem.due_at)
    )
    return list(session.scalars(stmt))
