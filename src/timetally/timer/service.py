"""Timer service tying storage, engine and clock together.

Each call is one short-lived transaction: load the state, apply one
action, persist the result if it changed.
"""

import logging
from datetime import datetime, timezone
from typing import Callable

from timetally.timer.engine import TimerEngine
from timetally.timer.storage import BaseTimerStore
from timetally.timer.types import Action, InvalidTimer, Outcome, SessionRecord

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class TimerService:
    """Service for running timer actions against a store.

    Example:
        service = TimerService(TimerStore("~/.timetally/state.json"))
        outcome = service.start()
        ...
        outcome = service.stop(comment="code review")
    """

    def __init__(
        self,
        store: BaseTimerStore,
        engine: TimerEngine | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the timer service.

        Args:
            store: Where the timer state lives.
            engine: Transition logic.
            clock: Source of the current time.
        """
        self._store = store
        self._engine = engine or TimerEngine()
        self._clock = clock

    @property
    def store(self) -> BaseTimerStore:
        return self._store

    def execute(
        self,
        action: Action,
        *,
        now: datetime | None = None,
        comment: str | None = None,
    ) -> Outcome:
        """Run a single action.

        Args:
            action: Action to apply.
            now: Time of the action (defaults to the clock).
            comment: Note recorded when stopping.

        Returns:
            The outcome reported by the engine.

        Raises:
            StorageCorrupt: If the stored state is invalid.
            StorageUnavailable: If the state cannot be read or written.
        """
        state = self._store.load()
        if now is None:
            now = self._clock()

        transition = self._engine.apply(state, action, now, comment=comment)
        outcome = transition.outcome

        if isinstance(outcome, InvalidTimer):
            logger.warning(f"Invalid timer on {Action(action).value}: {outcome}")
        else:
            logger.debug(f"{Action(action).value}: {type(outcome).__name__}")

        if transition.changed:
            self._store.save(transition.state)
        return outcome

    def start(self) -> Outcome:
        return self.execute(Action.START)

    def stop(self, at: datetime | None = None, comment: str | None = None) -> Outcome:
        """Stop the running timer.

        Args:
            at: Stop time to use instead of now, for a timer left running.
            comment: Note recorded on the session.

        Returns:
            The outcome reported by the engine.

        Raises:
            ValueError: If ``at`` is naive, later than the current time, or
                earlier than the start of the running timer.
            StorageError: If the state cannot be loaded or saved.
        """
        if at is not None:
            if at.tzinfo is None or at.utcoffset() is None:
                raise ValueError("stop time must be timezone-aware")
            if at > self._clock():
                raise ValueError("stop time lies in the future")
            running_since = self._store.load().running_since
            if running_since is not None and at < running_since:
                raise ValueError("stop time lies before the timer start")
        return self.execute(Action.STOP, now=at, comment=comment)

    def show(self) -> Outcome:
        return self.execute(Action.SHOW)

    def reset(self) -> Outcome:
        return self.execute(Action.RESET)

    def abort(self) -> Outcome:
        return self.execute(Action.ABORT)

    def history(self) -> list[SessionRecord]:
        """Get the sessions completed since the last reset, oldest first."""
        return list(self._store.load().sessions)
