"""
Class session model and time-window arithmetic.

A session's start instant is its local date + time in the operating timezone;
its end instant is start + duration.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from .enums import ClassStatus
from .timezone import localize


@dataclass
class ClassSession:
    """A booked lesson."""

    id: str
    student_id: str
    teacher_id: str
    date: date | str
    time: time | str
    duration_minutes: int
    status: ClassStatus = ClassStatus.scheduled
    meeting_link: str | None = None
    is_trial: bool = False

    @classmethod
    def from_row(cls, row: dict) -> "ClassSession":
        """Build a session from a ``class_sessions`` row mapping."""
        return cls(
            id=str(row["id"]),
            student_id=str(row["student_id"]),
            teacher_id=str(row["teacher_id"]),
            date=row["date"],
            time=row["time"],
            duration_minutes=row.get("duration") or 0,
            status=ClassStatus(row.get("status") or ClassStatus.scheduled),
            meeting_link=row.get("meeting_link"),
            is_trial=bool(row.get("is_trial")),
        )

    @property
    def local_date(self) -> date:
        return parse_date(self.date)

    @property
    def local_time(self) -> time:
        return parse_time(self.time)

    @property
    def starts_at(self) -> datetime:
        """Aware start instant. Raises ValueError on malformed date/time."""
        return localize(self.local_date, self.local_time)

    @property
    def ends_at(self) -> datetime:
        """Aware end instant (start + duration)."""
        if self.duration_minutes is None or self.duration_minutes < 0:
            raise ValueError(f"Invalid duration: {self.duration_minutes!r}")
        return self.starts_at + timedelta(minutes=self.duration_minutes)

    @property
    def participant_ids(self) -> tuple[str, str]:
        return (self.student_id, self.teacher_id)


def parse_date(value: date | str) -> date:
    """Parse a YYYY-MM-DD date (or pass a date through)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Unparseable date: {value!r}")
    return date.fromisoformat(value.strip())


def parse_time(value: time | str) -> time:
    """Parse an HH:MM or HH:MM:SS time (or pass a time through)."""
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Unparseable time: {value!r}")
    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Unparseable time: {value!r}")
    hour, minute = int(parts[0]), int(parts[1])
    second = int(float(parts[2])) if len(parts) == 3 else 0
    return time(hour, minute, second)


def expected_status(session: ClassSession, now: datetime) -> ClassStatus:
    """
    Status the session should have at ``now`` based on its time window.

    Returns ``scheduled`` before start, ``in_progress`` inside
    ``[start, end)`` and ``completed`` from ``end`` on.
    """
    start = session.starts_at
    end = session.ends_at
    if now < start:
        return ClassStatus.scheduled
    if now < end:
        return ClassStatus.in_progress
    return ClassStatus.completed
