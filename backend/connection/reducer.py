"""
Pure connection supervisor reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks, no randomness.
- Deterministic: output depends only on inputs.
- Total: every (phase, event) pair is handled or explicitly ignored (logged).
"""

# Invariants enforced here:
# - At most one session id is active at a time; a new one is minted only
#   from IDLE or BACKOFF, after the previous one has been retired.
# - Once shutdown is set, every event is ignored.
# - Session events are gated by session_id, timer events by retry_id.

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable

from connection.backoff import next_retry, reset_retry
from connection.commands import (
    CancelRetry,
    CloseSession,
    Command,
    LogEvent,
    OpenSession,
    PublishStatus,
    ReleaseListeners,
    ScheduleRetry,
)
from connection.enums.phase import SupervisorPhase
from connection.enums.status import ConnectionStatus
from connection.events import (
    Event,
    EventType,
    ReachabilityLost,
    ReachabilityRestored,
    RetryTimerFired,
    SessionClosed,
    SessionError,
    SessionEvent,
    SessionOpened,
    Shutdown,
    Start,
)
from connection.state_dataclass import SupervisorState


ReduceResult = tuple[SupervisorState, tuple[Command, ...]]

_LIVE_PHASES = (SupervisorPhase.CONNECTING, SupervisorPhase.CONNECTED)


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: SupervisorState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "phase": state.phase.value,
            "status": state.status.value,
            "event_type": event.event_type.value,
            "decision": decision,
            "session_id": state.active_session_id,
            "retry": {
                "current_delay_ms": state.retry.current_delay_ms,
                "attempt_count": state.retry.attempt_count,
            },
            "details": details or {},
        }
    )


def _ignore(state: SupervisorState, event: Event, decision: str) -> ReduceResult:
    return state, (_log(state, event, decision),)


def _transition_log(
    old: SupervisorState,
    new: SupervisorState,
    event: Event,
    source: str,
) -> LogEvent:
    return _log(
        new,
        event,
        "phase_changed",
        {
            "from_phase": old.phase.value,
            "to_phase": new.phase.value,
            "source": source,
        },
    )


def _begin_attempt(
    state: SupervisorState,
    event: Event,
    source: str,
) -> ReduceResult:
    """
    Mint a new session id and move to CONNECTING.

    Caller guarantees no session is currently active.
    """
    session_id = state.last_session_id + 1
    new_state = replace(
        state,
        phase=SupervisorPhase.CONNECTING,
        status=ConnectionStatus.CONNECTING,
        last_session_id=session_id,
        active_session_id=session_id,
        pending_retry_id=None,
    )

    commands: tuple[Command, ...] = (OpenSession(session_id=session_id),)
    if state.status is not ConnectionStatus.CONNECTING:
        commands += (
            PublishStatus(status=ConnectionStatus.CONNECTING, session_id=None),
        )

    return new_state, commands + (_transition_log(state, new_state, event, source),)


def _is_stale_session(state: SupervisorState, event: SessionEvent) -> bool:
    return event.session_id != state.active_session_id


# =============================================================================
# Lifecycle
# =============================================================================

def _on_start(state: SupervisorState, event: Start) -> ReduceResult:
    if state.phase is not SupervisorPhase.IDLE or state.last_session_id != 0:
        return _ignore(state, event, "ignore_already_started")

    if not event.reachable:
        # Deliberate pause, not a failure: no attempt, no timer.
        return _ignore(state, event, "offline_deferred")

    return _begin_attempt(state, event, "start")


def _on_shutdown(state: SupervisorState, event: Shutdown) -> ReduceResult:
    new_state = replace(
        state,
        phase=SupervisorPhase.SHUTTING_DOWN,
        status=ConnectionStatus.DISCONNECTED,
        active_session_id=None,
        pending_retry_id=None,
        shutdown=True,
    )

    commands: tuple[Command, ...] = ()
    if state.pending_retry_id is not None:
        commands += (CancelRetry(retry_id=state.pending_retry_id),)
    if state.active_session_id is not None:
        commands += (
            CloseSession(session_id=state.active_session_id, reason="shutdown"),
        )
    commands += (
        ReleaseListeners(),
        _transition_log(state, new_state, event, "shutdown"),
    )
    return new_state, commands


# =============================================================================
# Transport session
# =============================================================================

def _on_session_opened(state: SupervisorState, event: SessionOpened) -> ReduceResult:
    if _is_stale_session(state, event):
        return _ignore(state, event, "ignore_stale_session")

    if state.phase is not SupervisorPhase.CONNECTING:
        return _ignore(state, event, "ignore_duplicate_open")

    new_state = replace(
        state,
        phase=SupervisorPhase.CONNECTED,
        status=ConnectionStatus.CONNECTED,
        retry=reset_retry(state.backoff),
    )
    return new_state, (
        PublishStatus(
            status=ConnectionStatus.CONNECTED,
            session_id=event.session_id,
        ),
        _transition_log(state, new_state, event, "session_opened"),
    )


def _on_session_error(state: SupervisorState, event: SessionError) -> ReduceResult:
    if _is_stale_session(state, event):
        return _ignore(state, event, "ignore_stale_session")

    # The session forces its own close; SessionClosed drives the transition.
    return state, (
        _log(state, event, "await_forced_close", {"reason": event.reason}),
    )


def _on_session_closed(state: SupervisorState, event: SessionClosed) -> ReduceResult:
    if _is_stale_session(state, event):
        return _ignore(state, event, "ignore_stale_session")

    if state.phase not in _LIVE_PHASES:
        return _ignore(state, event, "ignore_unexpected_close")

    retry_id = state.next_retry_id + 1
    new_state = replace(
        state,
        phase=SupervisorPhase.BACKOFF,
        status=ConnectionStatus.DISCONNECTED,
        active_session_id=None,
        next_retry_id=retry_id,
        pending_retry_id=retry_id,
    )
    return new_state, (
        PublishStatus(status=ConnectionStatus.DISCONNECTED, session_id=None),
        ScheduleRetry(retry_id=retry_id, retry=state.retry),
        _transition_log(state, new_state, event, "session_closed"),
        _log(
            new_state,
            event,
            "schedule_retry",
            {
                "retry_id": retry_id,
                "base_delay_ms": state.retry.current_delay_ms,
                "was_open": event.was_open,
                "reason": event.reason,
            },
        ),
    )


# =============================================================================
# Timers
# =============================================================================

def _on_retry_timer_fired(
    state: SupervisorState,
    event: RetryTimerFired,
) -> ReduceResult:
    if (
        state.phase is not SupervisorPhase.BACKOFF
        or event.retry_id != state.pending_retry_id
    ):
        return _ignore(state, event, "ignore_stale_timer")

    if not event.reachable:
        # Went offline during the wait: park without consuming a growth step.
        new_state = replace(
            state,
            phase=SupervisorPhase.IDLE,
            pending_retry_id=None,
        )
        return new_state, (
            _transition_log(state, new_state, event, "offline_at_retry"),
        )

    grown = replace(state, retry=next_retry(state.retry, state.backoff))
    return _begin_attempt(grown, event, "retry_timer")


# =============================================================================
# Reachability
# =============================================================================

def _on_reachability_restored(
    state: SupervisorState,
    event: ReachabilityRestored,
) -> ReduceResult:
    reset = replace(state, retry=reset_retry(state.backoff))

    if state.phase is SupervisorPhase.IDLE:
        return _begin_attempt(reset, event, "reachability_restored")

    if state.phase is SupervisorPhase.BACKOFF:
        new_state, commands = _begin_attempt(reset, event, "reachability_restored")
        cancel: tuple[Command, ...] = ()
        if state.pending_retry_id is not None:
            cancel = (CancelRetry(retry_id=state.pending_retry_id),)
        return new_state, cancel + commands

    return reset, (_log(reset, event, "retry_reset"),)


def _on_reachability_lost(
    state: SupervisorState,
    event: ReachabilityLost,
) -> ReduceResult:
    if state.phase not in _LIVE_PHASES or state.active_session_id is None:
        # IDLE: already parked. BACKOFF: the timer re-checks reachability.
        return _ignore(state, event, "ignore_not_live")

    new_state = replace(
        state,
        phase=SupervisorPhase.IDLE,
        status=ConnectionStatus.DISCONNECTED,
        active_session_id=None,
    )
    return new_state, (
        CloseSession(
            session_id=state.active_session_id,
            reason="reachability_lost",
        ),
        PublishStatus(status=ConnectionStatus.DISCONNECTED, session_id=None),
        _transition_log(state, new_state, event, "reachability_lost"),
    )


# =============================================================================
# Dispatch
# =============================================================================

_HANDLERS: dict[EventType, Callable[[SupervisorState, Any], ReduceResult]] = {
    EventType.START: _on_start,
    EventType.SHUTDOWN: _on_shutdown,
    EventType.SESSION_OPENED: _on_session_opened,
    EventType.SESSION_ERROR: _on_session_error,
    EventType.SESSION_CLOSED: _on_session_closed,
    EventType.RETRY_TIMER_FIRED: _on_retry_timer_fired,
    EventType.REACHABILITY_RESTORED: _on_reachability_restored,
    EventType.REACHABILITY_LOST: _on_reachability_lost,
}


def reduce(state: SupervisorState, event: Event) -> ReduceResult:
    """
    Apply a single event to the supervisor state.

    Returns the new state and the commands the runtime must execute,
    in order. Events arriving after shutdown are discarded without any
    command besides a diagnostic log entry.
    """
    if state.shutdown:
        return _ignore(state, event, "ignore_after_shutdown")

    handler = _HANDLERS.get(event.event_type)
    if handler is None:
        return _ignore(state, event, "ignore_unknown_event")

    return handler(state, event)
