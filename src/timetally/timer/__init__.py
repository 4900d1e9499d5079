"""Timer state machine and persistence.

This package provides the single-timer core of timetally:
- Pydantic models for the persisted state
- A pure transition engine taking the current time as input
- Atomic JSON file storage and an in-memory store
- A service running one load/apply/save cycle per action

Example:
    from timetally.timer import TimerService, TimerStore

    service = TimerService(TimerStore("/tmp/state.json"))
    service.start()
    outcome = service.stop()
"""

from timetally.timer.engine import TimerEngine, Transition
from timetally.timer.service import TimerService, utc_now
from timetally.timer.storage import (
    BaseTimerStore,
    MemoryTimerStore,
    StorageCorrupt,
    StorageError,
    StorageUnavailable,
    TimerStore,
)
from timetally.timer.types import (
    Aborted,
    Action,
    AlreadyRunning,
    InvalidTimer,
    NotRunning,
    Outcome,
    Reset,
    SessionRecord,
    Started,
    Status,
    Stopped,
    TimerState,
)

__all__ = [
    # Engine
    "TimerEngine",
    "Transition",
    # Service
    "TimerService",
    "utc_now",
    # Storage
    "BaseTimerStore",
    "TimerStore",
    "MemoryTimerStore",
    "StorageError",
    "StorageCorrupt",
    "StorageUnavailable",
    # Types
    "Action",
    "TimerState",
    "SessionRecord",
    "Outcome",
    "Started",
    "AlreadyRunning",
    "Stopped",
    "NotRunning",
    "Status",
    "Reset",
    "Aborted",
    "InvalidTimer",
]
