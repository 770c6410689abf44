"""
Database models and request/response schemas for tasks.

Create and update validate `status` / `priority` differently: on create an
absent or invalid value silently becomes the default, on update an invalid
value is rejected and an absent one keeps the stored value.
"""

import re
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from pydantic import field_validator
from sqlalchemy import CheckConstraint, Text, text
from sqlmodel import Field, SQLModel


class TaskStatus(str, Enum):
    """Allowed task statuses. Any status may move to any other."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"


STATUSES = tuple(status.value for status in TaskStatus)
DEFAULT_STATUS = TaskStatus.PENDING.value

PRIORITY_MIN = 1
PRIORITY_MAX = 5
DEFAULT_PRIORITY = 1

TITLE_MAX_LENGTH = 255

_INTEGER_RE = re.compile(r"\s*[+-]?[0-9]+\s*")


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (stored in TIMESTAMP columns)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_status(value: Any) -> str | None:
    """Return the status string if `value` is an allowed status, else None."""
    if isinstance(value, str) and value in STATUSES:
        return TaskStatus(value).value
    return None


def parse_priority(value: Any) -> int | None:
    """
    Parse a priority from a JSON value or query string.

    Args:
        value: An int, or a string holding an int. Booleans and floats are not priorities.

    Returns:
        The priority if it is an integer in [1, 5], else None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        candidate = value
    elif isinstance(value, str) and _INTEGER_RE.fullmatch(value):
        candidate = int(value)
    else:
        return None
    if PRIORITY_MIN <= candidate <= PRIORITY_MAX:
        return candidate
    return None


class Task(SQLModel, table=True):
    """
    A task row.

    Attributes:
        id: Surrogate key assigned by the database.
        title: Non-empty, trimmed title.
        description: Optional free text.
        status: One of pending, in-progress, done.
        priority: Integer from 1 (highest) to 5.
        due_date: Optional calendar date.
        created_at: Set once when the row is inserted.
        updated_at: Refreshed on every mutation.
    """

    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'in-progress', 'done')", name="tasks_status_check"
        ),
        CheckConstraint(
            f"priority BETWEEN {PRIORITY_MIN} AND {PRIORITY_MAX}", name="tasks_priority_check"
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    title: str = Field(max_length=TITLE_MAX_LENGTH)
    description: str | None = Field(default=None, sa_type=Text)
    status: str = Field(
        default=DEFAULT_STATUS,
        max_length=20,
        sa_column_kwargs={"server_default": text(f"'{DEFAULT_STATUS}'")},
    )
    priority: int = Field(
        default=DEFAULT_PRIORITY,
        sa_column_kwargs={"server_default": text(str(DEFAULT_PRIORITY))},
    )
    due_date: date | None = Field(default=None)
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP")},
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP")},
    )


class TaskFields(SQLModel):
    """Fields shared by create and update bodies."""

    title: str
    description: str | None = None
    due_date: date | None = None

    @field_validator("title", mode="before")
    @classmethod
    def clean_title(cls, value: Any) -> str:
        if value is None:
            raise ValueError("Title is required")
        if not isinstance(value, str):
            raise ValueError("Title must be a string")
        value = value.strip()
        if not value:
            raise ValueError("Title is required")
        if len(value) > TITLE_MAX_LENGTH:
            raise ValueError(f"Title must be at most {TITLE_MAX_LENGTH} characters")
        return value

    @field_validator("description", "due_date", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        # Form inputs send "" for empty fields.
        if isinstance(value, str) and not value.strip():
            return None
        return value


class TaskCreate(TaskFields):
    """Body of POST /api/tasks."""

    status: str = DEFAULT_STATUS
    priority: int = DEFAULT_PRIORITY

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, value: Any) -> str:
        return parse_status(value) or DEFAULT_STATUS

    @field_validator("priority", mode="before")
    @classmethod
    def default_priority(cls, value: Any) -> int:
        return parse_priority(value) or DEFAULT_PRIORITY


class TaskUpdate(TaskFields):
    """
    Body of PUT /api/tasks/{id}.

    `title`, `description` and `due_date` replace the stored values (absent
    means null). `status` and `priority` are merged: None keeps the stored value.
    """

    status: str | None = None
    priority: int | None = None

    @field_validator("status", mode="before")
    @classmethod
    def check_status(cls, value: Any) -> str | None:
        if value is None:
            return None
        status = parse_status(value)
        if status is None:
            raise ValueError(f"Status must be one of: {', '.join(STATUSES)}")
        return status

    @field_validator("priority", mode="before")
    @classmethod
    def check_priority(cls, value: Any) -> int | None:
        if value is None:
            return None
        priority = parse_priority(value)
        if priority is None:
            raise ValueError(
                f"Priority must be an integer between {PRIORITY_MIN} and {PRIORITY_MAX}"
            )
        return priority


class TaskRead(SQLModel):
    """Task object returned by the API."""

    id: int
    title: str
    description: str | None
    status: str
    priority: int
    due_date: date | None
    created_at: datetime
    updated_at: datetime
