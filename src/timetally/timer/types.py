"""Type definitions for the timer.

This module defines the Pydantic models for the persisted timer state and
the outcome values produced by the timer engine.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Annotated, ClassVar

from pydantic import AfterValidator, BaseModel, Field, field_validator, model_validator


def _to_utc(value: datetime) -> datetime:
    """Normalize a timestamp to UTC, rejecting naive values."""
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError("timestamp must include a timezone offset")
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_to_utc)]


class Action(str, Enum):
    """Action requested from the timer engine.

    Attributes:
        START: Begin a new session.
        STOP: End the running session and add it to the total.
        SHOW: Report the running session and total without changing anything.
        RESET: Clear the total and the session history.
        ABORT: End the running session without counting it.
    """

    START = "start"
    STOP = "stop"
    SHOW = "show"
    RESET = "reset"
    ABORT = "abort"


class SessionRecord(BaseModel):
    """A completed session.

    Attributes:
        start: When the session started.
        end: When the session was stopped.
        comment: Optional note given on stop.
    """

    start: UtcDatetime = Field(..., description="Session start time (UTC)")
    end: UtcDatetime = Field(..., description="Session end time (UTC)")
    comment: str | None = Field(default=None, description="Optional note")

    @model_validator(mode="after")
    def _check_order(self) -> "SessionRecord":
        if self.end < self.start:
            raise ValueError("session ends before it starts")
        return self

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


class TimerState(BaseModel):
    """Persisted timer state.

    The zero value (no running timer, zero total, no sessions) stands for
    a timer that has never been used.

    Attributes:
        running_since: Start of the running session, None when idle.
        total_accumulated: Sum of completed sessions since the last reset.
        sessions: Completed sessions since the last reset, oldest first.
    """

    running_since: UtcDatetime | None = Field(
        default=None,
        description="Start of the running session (UTC), None when idle"
    )
    total_accumulated: timedelta = Field(
        default=timedelta(0),
        description="Sum of completed sessions since the last reset"
    )
    sessions: list[SessionRecord] = Field(
        default_factory=list,
        description="Completed sessions since the last reset"
    )

    @field_validator("total_accumulated")
    @classmethod
    def _check_total(cls, value: timedelta) -> timedelta:
        if value < timedelta(0):
            raise ValueError("total_accumulated must not be negative")
        return value

    @property
    def is_running(self) -> bool:
        """Check if a session is in progress."""
        return self.running_since is not None


@dataclass(frozen=True)
class Outcome:
    """Base class for everything the engine reports back."""

    is_error: ClassVar[bool] = False


@dataclass(frozen=True)
class Started(Outcome):
    started_at: datetime


@dataclass(frozen=True)
class AlreadyRunning(Outcome):
    running_since: datetime
    elapsed: timedelta


@dataclass(frozen=True)
class Stopped(Outcome):
    """A session was stopped and added to the total.

    Attributes:
        session: Length of the session just finished.
        total: New total including this session.
        record: The recorded session.
    """

    session: timedelta
    total: timedelta
    record: SessionRecord


@dataclass(frozen=True)
class NotRunning(Outcome):
    pass


@dataclass(frozen=True)
class Status(Outcome):
    """Snapshot of the timer.

    Attributes:
        running_since: Start of the running session, None when idle.
        current: Elapsed time of the running session, None when idle.
        total: Total of completed sessions.
        session_count: Number of completed sessions since the last reset.
    """

    running_since: datetime | None
    current: timedelta | None
    total: timedelta
    session_count: int = 0


@dataclass(frozen=True)
class Reset(Outcome):
    previous_total: timedelta
    cleared_sessions: int = 0


@dataclass(frozen=True)
class Aborted(Outcome):
    """The running session was discarded.

    ``discarded`` is None when the session start lay in the future and no
    meaningful elapsed time exists.
    """

    running_since: datetime
    discarded: timedelta | None


@dataclass(frozen=True)
class InvalidTimer(Outcome):
    """The stored start time lies after the current time."""

    is_error: ClassVar[bool] = True

    running_since: datetime
    now: datetime
    reason: str = "timer start lies in the future"

    def __str__(self) -> str:
        return (
            f"{self.reason} (started {self.running_since.isoformat()}, "
            f"now {self.now.isoformat()})"
        )
