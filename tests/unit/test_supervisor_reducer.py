"""
Supervisor reducer tests.

Reducer-only guarantees:
- Start connects immediately or defers while offline
- Close schedules exactly one retry; stale sessions and timers are ignored
- Reachability restored cancels the wait; lost parks in IDLE
- Nothing after shutdown has any effect
"""
from dataclasses import replace

from connection.backoff import RetryState
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
    EventType,
    ReachabilityLost,
    ReachabilityRestored,
    RetryTimerFired,
    SessionClosed,
    SessionError,
    SessionOpened,
    Shutdown,
    Start,
)
from connection.reducer import reduce
from connection.state_dataclass import SupervisorState


# ---------------------------------------------------------------------
# Event helpers (mirror runtime construction)
# ---------------------------------------------------------------------

def start(reachable: bool = True) -> Start:
    return Start(event_type=EventType.START, ts_ms=0, reachable=reachable)


def opened(session_id: int) -> SessionOpened:
    return SessionOpened(
        event_type=EventType.SESSION_OPENED, ts_ms=0, session_id=session_id
    )


def errored(session_id: int, reason: str = "boom") -> SessionError:
    return SessionError(
        event_type=EventType.SESSION_ERROR,
        ts_ms=0,
        session_id=session_id,
        reason=reason,
    )


def closed(session_id: int, was_open: bool = False) -> SessionClosed:
    return SessionClosed(
        event_type=EventType.SESSION_CLOSED,
        ts_ms=0,
        session_id=session_id,
        reason="gone",
        was_open=was_open,
    )


def timer(retry_id: int, reachable: bool = True) -> RetryTimerFired:
    return RetryTimerFired(
        event_type=EventType.RETRY_TIMER_FIRED,
        ts_ms=0,
        retry_id=retry_id,
        reachable=reachable,
    )


def restored() -> ReachabilityRestored:
    return ReachabilityRestored(event_type=EventType.REACHABILITY_RESTORED, ts_ms=0)


def lost() -> ReachabilityLost:
    return ReachabilityLost(event_type=EventType.REACHABILITY_LOST, ts_ms=0)


def shutdown() -> Shutdown:
    return Shutdown(event_type=EventType.SHUTDOWN, ts_ms=0)


def non_log(cmds: tuple[Command, ...]) -> list[Command]:
    return [c for c in cmds if not isinstance(c, LogEvent)]


def connecting_state() -> SupervisorState:
    state, _ = reduce(SupervisorState(), start())
    return state


def backoff_state() -> SupervisorState:
    state = connecting_state()
    state, _ = reduce(state, closed(1))
    return state


# ---------------------------------------------------------------------
# Start
# ---------------------------------------------------------------------

def test_start_while_reachable_opens_immediately():
    state, cmds = reduce(SupervisorState(), start(reachable=True))

    assert state.phase is SupervisorPhase.CONNECTING
    assert state.status is ConnectionStatus.CONNECTING
    assert state.active_session_id == 1
    assert non_log(cmds) == [
        OpenSession(session_id=1),
        PublishStatus(status=ConnectionStatus.CONNECTING, session_id=None),
    ]
    assert not any(isinstance(c, ScheduleRetry) for c in cmds)


def test_start_while_offline_defers_without_timer():
    state, cmds = reduce(SupervisorState(), start(reachable=False))

    assert state.phase is SupervisorPhase.IDLE
    assert state.status is ConnectionStatus.DISCONNECTED
    assert non_log(cmds) == []
    assert cmds[0].event["decision"] == "offline_deferred"


def test_second_start_is_ignored():
    state = connecting_state()

    new_state, cmds = reduce(state, start())

    assert new_state == state
    assert non_log(cmds) == []


# ---------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------

def test_open_resets_retry_and_publishes_session():
    state = replace(
        connecting_state(),
        retry=RetryState(current_delay_ms=16000, attempt_count=4),
    )

    state, cmds = reduce(state, opened(1))

    assert state.phase is SupervisorPhase.CONNECTED
    assert state.retry == RetryState(current_delay_ms=1000, attempt_count=0)
    assert non_log(cmds) == [
        PublishStatus(status=ConnectionStatus.CONNECTED, session_id=1),
    ]


def test_close_schedules_retry_with_current_base():
    state = connecting_state()

    state, cmds = reduce(state, closed(1))

    assert state.phase is SupervisorPhase.BACKOFF
    assert state.status is ConnectionStatus.DISCONNECTED
    assert state.active_session_id is None
    assert state.pending_retry_id == 1
    assert non_log(cmds) == [
        PublishStatus(status=ConnectionStatus.DISCONNECTED, session_id=None),
        ScheduleRetry(retry_id=1, retry=RetryState(1000, 0)),
    ]


def test_error_alone_does_not_transition():
    state = connecting_state()

    new_state, cmds = reduce(state, errored(1))

    assert new_state == state
    assert non_log(cmds) == []
    assert cmds[0].event["decision"] == "await_forced_close"


def test_duplicate_close_schedules_only_one_retry():
    state = connecting_state()

    state, first = reduce(state, closed(1))
    state, second = reduce(state, closed(1))

    assert sum(isinstance(c, ScheduleRetry) for c in first + second) == 1
    assert second[0].event["decision"] == "ignore_stale_session"


def test_stale_session_open_is_ignored():
    state = backoff_state()

    new_state, cmds = reduce(state, opened(1))

    assert new_state == state
    assert cmds[0].event["decision"] == "ignore_stale_session"


# ---------------------------------------------------------------------
# Retry timer
# ---------------------------------------------------------------------

def test_timer_grows_retry_and_opens_new_session():
    state = backoff_state()

    state, cmds = reduce(state, timer(1))

    assert state.phase is SupervisorPhase.CONNECTING
    assert state.active_session_id == 2
    assert state.retry == RetryState(current_delay_ms=2000, attempt_count=1)
    assert OpenSession(session_id=2) in cmds


def test_timer_while_offline_parks_without_growth():
    state = backoff_state()

    state, cmds = reduce(state, timer(1, reachable=False))

    assert state.phase is SupervisorPhase.IDLE
    assert state.pending_retry_id is None
    assert state.retry == RetryState(current_delay_ms=1000, attempt_count=0)
    assert non_log(cmds) == []


def test_stale_timer_is_ignored():
    state = backoff_state()

    new_state, cmds = reduce(state, timer(99))

    assert new_state == state
    assert cmds[0].event["decision"] == "ignore_stale_timer"


def test_consecutive_failures_produce_capped_bases():
    state = connecting_state()
    bases: list[int] = []

    for _ in range(6):
        state, cmds = reduce(state, closed(state.active_session_id))
        schedule = [c for c in cmds if isinstance(c, ScheduleRetry)][0]
        bases.append(schedule.retry.current_delay_ms)
        state, _ = reduce(state, timer(schedule.retry_id))

    assert bases == [1000, 2000, 4000, 8000, 16000, 30000]


# ---------------------------------------------------------------------
# Reachability
# ---------------------------------------------------------------------

def test_restored_in_backoff_cancels_timer_and_connects():
    state = replace(backoff_state(), retry=RetryState(8000, 3))

    state, cmds = reduce(state, restored())

    assert state.phase is SupervisorPhase.CONNECTING
    assert state.retry == RetryState(1000, 0)
    assert non_log(cmds)[:2] == [CancelRetry(retry_id=1), OpenSession(session_id=2)]


def test_restored_in_idle_connects():
    state, _ = reduce(SupervisorState(), start(reachable=False))

    state, cmds = reduce(state, restored())

    assert state.phase is SupervisorPhase.CONNECTING
    assert OpenSession(session_id=1) in cmds


def test_restored_while_connected_only_resets_retry():
    state, _ = reduce(connecting_state(), opened(1))
    state = replace(state, retry=RetryState(4000, 2))

    state, cmds = reduce(state, restored())

    assert state.phase is SupervisorPhase.CONNECTED
    assert state.retry == RetryState(1000, 0)
    assert non_log(cmds) == []


def test_lost_while_connected_closes_and_parks():
    state, _ = reduce(connecting_state(), opened(1))

    state, cmds = reduce(state, lost())

    assert state.phase is SupervisorPhase.IDLE
    assert state.active_session_id is None
    assert non_log(cmds) == [
        CloseSession(session_id=1, reason="reachability_lost"),
        PublishStatus(status=ConnectionStatus.DISCONNECTED, session_id=None),
    ]

    # The forced close reported afterwards is stale and schedules nothing
    state, cmds = reduce(state, closed(1, was_open=True))
    assert non_log(cmds) == []


def test_lost_in_backoff_leaves_timer_to_recheck():
    state = backoff_state()

    new_state, cmds = reduce(state, lost())

    assert new_state == state
    assert non_log(cmds) == []


# ---------------------------------------------------------------------
# Shutdown
# ---------------------------------------------------------------------

def test_shutdown_closes_session_and_releases_listeners():
    state, _ = reduce(connecting_state(), opened(1))

    state, cmds = reduce(state, shutdown())

    assert state.shutdown
    assert state.phase is SupervisorPhase.SHUTTING_DOWN
    assert non_log(cmds) == [
        CloseSession(session_id=1, reason="shutdown"),
        ReleaseListeners(),
    ]


def test_shutdown_in_backoff_cancels_timer():
    state = backoff_state()

    state, cmds = reduce(state, shutdown())

    assert non_log(cmds) == [CancelRetry(retry_id=1), ReleaseListeners()]


def test_everything_after_shutdown_is_discarded():
    state, _ = reduce(backoff_state(), shutdown())

    for event in (shutdown(), restored(), timer(1), opened(2), closed(2), start()):
        new_state, cmds = reduce(state, event)
        assert new_state == state
        assert non_log(cmds) == []
        assert cmds[0].event["decision"] == "ignore_after_shutdown"
