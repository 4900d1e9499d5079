"""Timer state machine.

States
------
Idle        ``running_since`` is None.
Running     ``running_since`` holds the session start.

Transitions
-----------
Idle    + start  -> Running(now)                Started
Running + start  -> unchanged                   AlreadyRunning
Running + stop   -> Idle, total += now - start  Stopped
Idle    + stop   -> unchanged                   NotRunning
any     + show   -> unchanged                   Status
any     + reset  -> total = 0, running kept     Reset
Running + abort  -> Idle, total kept            Aborted
Idle    + abort  -> unchanged                   NotRunning

The engine never reads the clock and never touches storage. A start time
later than ``now`` is reported as an InvalidTimer outcome rather than
raised.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

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


@dataclass(frozen=True)
class Transition:
    """Result of applying an action to a timer state.

    Attributes:
        state: State after the action. Identical to the input when unchanged.
        outcome: What happened.
        changed: Whether the state must be persisted.
    """

    state: TimerState
    outcome: Outcome
    changed: bool = False


class TimerEngine:
    """Pure transition function over TimerState snapshots.

    Example:
        engine = TimerEngine()
        transition = engine.apply(TimerState(), Action.START, now)
        if transition.changed:
            store.save(transition.state)
    """

    def apply(
        self,
        state: TimerState,
        action: Action,
        now: datetime,
        *,
        comment: str | None = None,
    ) -> Transition:
        """Apply an action at the given time.

        Args:
            state: Current timer state. Never modified.
            action: Requested action.
            now: Timezone-aware time of the command.
            comment: Note recorded on the session when stopping.

        Returns:
            Transition with the new state and the outcome.

        Raises:
            ValueError: If ``now`` is naive or the action is unknown.
        """
        if now.tzinfo is None or now.utcoffset() is None:
            raise ValueError("now must be timezone-aware")
        now = now.astimezone(timezone.utc)

        action = Action(action)
        if action is Action.START:
            return self._start(state, now)
        if action is Action.STOP:
            return self._stop(state, now, comment)
        if action is Action.SHOW:
            return self._show(state, now)
        if action is Action.RESET:
            return self._reset(state)
        return self._abort(state, now)

    def _start(self, state: TimerState, now: datetime) -> Transition:
        if state.running_since is not None:
            if state.running_since > now:
                return self._invalid(state, now)
            return Transition(
                state,
                AlreadyRunning(
                    running_since=state.running_since,
                    elapsed=now - state.running_since,
                ),
            )

        new_state = state.model_copy(update={
            "running_since": now,
            "sessions": list(state.sessions),
        })
        return Transition(new_state, Started(started_at=now), changed=True)

    def _stop(self, state: TimerState, now: datetime, comment: str | None) -> Transition:
        if state.running_since is None:
            return Transition(state, NotRunning())
        if state.running_since > now:
            return self._invalid(state, now)

        record = SessionRecord(start=state.running_since, end=now, comment=comment)
        session = record.duration
        total = state.total_accumulated + session
        new_state = state.model_copy(update={
            "running_since": None,
            "total_accumulated": total,
            "sessions": [*state.sessions, record],
        })
        return Transition(
            new_state,
            Stopped(session=session, total=total, record=record),
            changed=True,
        )

    def _show(self, state: TimerState, now: datetime) -> Transition:
        current: timedelta | None = None
        if state.running_since is not None:
            if state.running_since > now:
                return self._invalid(state, now)
            current = now - state.running_since

        return Transition(
            state,
            Status(
                running_since=state.running_since,
                current=current,
                total=state.total_accumulated,
                session_count=len(state.sessions),
            ),
        )

    def _reset(self, state: TimerState) -> Transition:
        # Only the total and history are cleared; a running session survives.
        new_state = state.model_copy(update={
            "total_accumulated": timedelta(0),
            "sessions": [],
        })
        outcome = Reset(
            previous_total=state.total_accumulated,
            cleared_sessions=len(state.sessions),
        )
        changed = state.total_accumulated != timedelta(0) or bool(state.sessions)
        return Transition(new_state if changed else state, outcome, changed=changed)

    def _abort(self, state: TimerState, now: datetime) -> Transition:
        if state.running_since is None:
            return Transition(state, NotRunning())

        discarded = None
        if state.running_since <= now:
            discarded = now - state.running_since
        new_state = state.model_copy(update={
            "running_since": None,
            "sessions": list(state.sessions),
        })
        return Transition(
            new_state,
            Aborted(running_since=state.running_since, discarded=discarded),
            changed=True,
        )

    @staticmethod
    def _invalid(state: TimerState, now: datetime) -> Transition:
        return Transition(
            state,
            InvalidTimer(running_since=state.running_since, now=now),
        )
