"""
Connection supervisor: runtime shell around the pure reducer.

Responsibilities:
- Own the authoritative SupervisorState
- Act as the single event sink (transport callbacks, reachability
  notifications, retry timer firings, start/shutdown requests)
- Invoke the pure reducer exactly once per event, in arrival order
- Execute emitted commands with side effects (open/close sessions,
  retry timer, consumer notifications, logging)
- Expose current status and session to consumers

Re-entrancy:
Commands may synchronously trigger new events (closing a session reports
session_closed from inside CloseSession). Such events are queued and
processed after the current event's commands have all executed, so a
single failure can never schedule two retries. shutdown() is the one
exception: called from a callback, it is applied at once and the rest of
the interrupted event's commands are dropped.

Non-responsibilities:
- Reconnect policy (reducer + backoff)
- Wire protocol (transport)
- Deciding reachability (monitor)
"""

from __future__ import annotations

import asyncio
import random
from collections import deque
from typing import Any, Awaitable, Callable

from connection.backoff import (
    BackoffConfig,
    RandomFn,
    RetryState,
    reset_retry,
    scheduled_delay_ms,
)
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
    SessionOpened,
    Shutdown,
    Start,
)
from connection.reachability import ReachabilityMonitor, Unsubscribe
from connection.reducer import reduce
from connection.state_dataclass import SupervisorState
from connection.transport import (
    ConnectionTarget,
    SessionHandle,
    SessionListener,
    TransportSession,
)
from observability.logger import diagnostic_sink, log_event, now_ms


StatusCallback = Callable[[ConnectionStatus, "SessionHandle | None"], None]
MessageCallback = Callable[[SessionHandle, "str | bytes"], None]
SleepFn = Callable[[float], Awaitable[None]]


class SessionFactory:
    """Builds TransportSession instances; swapped out in tests."""

    def __init__(self, *, verbose: bool = False, **session_options: Any) -> None:
        self._verbose = verbose
        self._options = session_options

    def __call__(
        self,
        *,
        target: ConnectionTarget,
        listener: SessionListener,
        session_id: int,
    ) -> TransportSession:
        return TransportSession(
            target=target,
            listener=listener,
            session_id=session_id,
            verbose=self._verbose,
            **self._options,
        )


class ConnectionSupervisor:
    """
    Owns one logical persistent-connection slot for one target.

    Lifecycle:
    1. Consumer activates: start() (or `async with`)
    2. Supervisor connects immediately if reachable, else parks in IDLE
    3. Failures move to BACKOFF; the retry timer re-enters as an event
    4. Reachability restored short-circuits any wait
    5. Consumer deactivates: shutdown(). Terminal and idempotent.

    Must be started and shut down from the event loop thread.
    """

    def __init__(
        self,
        *,
        target: ConnectionTarget,
        reachability: ReachabilityMonitor,
        session_factory: Callable[..., Any] | None = None,
        backoff: BackoffConfig = BackoffConfig(),
        verbose: bool = False,
        rand: RandomFn = random.random,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._target = target
        self._reachability = reachability
        self._session_factory = session_factory or SessionFactory(verbose=verbose)
        self._rand = rand
        self._sleep = sleep
        self._log = diagnostic_sink(verbose)

        self._state = SupervisorState(
            backoff=backoff,
            retry=reset_retry(backoff),
        )

        self._queue: deque[Event] = deque()
        self._dispatching = False
        self._started = False

        self._sessions: dict[int, Any] = {}
        self._closing: list[Any] = []
        self._handle: SessionHandle | None = None

        self._retry_task: asyncio.Task[None] | None = None
        self._retry_id: int | None = None
        self._retry_delay_ms: float | None = None

        self._unsubscribe_reachability: Unsubscribe | None = None
        self._status_subscribers: list[StatusCallback] = []
        self._message_subscribers: list[MessageCallback] = []

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    async def __aenter__(self) -> ConnectionSupervisor:
        self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Consumer API
    # ------------------------------------------------------------------

    @property
    def target(self) -> ConnectionTarget:
        return self._target

    @property
    def state(self) -> SupervisorState:
        """
        Current immutable supervisor state (read-only).

        Consumers should prefer current_status(); this is exposed for
        diagnostics and tests.
        """
        return self._state

    @property
    def pending_retry_delay_ms(self) -> float | None:
        """Jittered wait of the pending retry timer, or None."""
        return self._retry_delay_ms if self._retry_task is not None else None

    def current_status(self) -> ConnectionStatus:
        return self._state.status

    def current_session(self) -> SessionHandle | None:
        return self._handle

    def subscribe(self, callback: StatusCallback) -> Unsubscribe:
        """
        Push-subscribe to status changes.

        callback(status, session) fires on every status change; session is
        the new SessionHandle when CONNECTED, otherwise None.
        """
        self._status_subscribers.append(callback)
        return _remover(self._status_subscribers, callback)

    def subscribe_messages(self, callback: MessageCallback) -> Unsubscribe:
        """Receive inbound payloads from the active session."""
        self._message_subscribers.append(callback)
        return _remover(self._message_subscribers, callback)

    def start(self) -> None:
        """
        Activate the supervisor.

        Registers the reachability listener and makes the first attempt
        immediately (no delay) if the host is reachable. Idempotent.
        """
        if self._started or self._state.shutdown:
            return
        self._started = True

        self._unsubscribe_reachability = self._reachability.on_change(
            self._on_reachability_change
        )
        self._dispatch(
            Start(
                event_type=EventType.START,
                ts_ms=now_ms(),
                reachable=self._reachability.is_reachable(),
            )
        )

    def shutdown(self) -> None:
        """
        Tear down synchronously. Idempotent.

        On return: any live session is closed, the retry timer is
        cancelled, and the reachability listener is deregistered.
        Nothing that arrives afterwards has any effect.
        """
        if self._state.shutdown:
            return
        event = Shutdown(event_type=EventType.SHUTDOWN, ts_ms=now_ms())
        if self._dispatching:
            # Called from a callback mid-dispatch: teardown cannot wait
            # behind queued events. Those are discarded once shutdown is set.
            self._apply(event)
        else:
            self._dispatch(event)

    async def aclose(self) -> None:
        """Shut down, then wait for closed sockets to finish their close handshake."""
        self.shutdown()
        closing = self._closing
        self._closing = []
        for session in closing:
            await session.wait_closed()

    # ------------------------------------------------------------------
    # SessionListener (called by TransportSession)
    # ------------------------------------------------------------------

    def session_opened(self, session_id: int) -> None:
        self._dispatch(
            SessionOpened(
                event_type=EventType.SESSION_OPENED,
                ts_ms=now_ms(),
                session_id=session_id,
            )
        )

    def session_error(self, session_id: int, reason: str) -> None:
        self._dispatch(
            SessionError(
                event_type=EventType.SESSION_ERROR,
                ts_ms=now_ms(),
                session_id=session_id,
                reason=reason,
            )
        )

    def session_closed(self, session_id: int, reason: str, was_open: bool) -> None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            self._track_closing(session)
        self._dispatch(
            SessionClosed(
                event_type=EventType.SESSION_CLOSED,
                ts_ms=now_ms(),
                session_id=session_id,
                reason=reason,
                was_open=was_open,
            )
        )

    def session_message(self, session_id: int, payload: str | bytes) -> None:
        # Messages do not affect supervisor state; they bypass the reducer.
        if (
            self._state.shutdown
            or self._state.phase is not SupervisorPhase.CONNECTED
            or session_id != self._state.active_session_id
            or self._handle is None
        ):
            return
        handle = self._handle
        for callback in list(self._message_subscribers):
            if callback in self._message_subscribers:
                self._notify(callback, handle, payload)

    # ------------------------------------------------------------------
    # Reachability
    # ------------------------------------------------------------------

    def _on_reachability_change(self, reachable: bool) -> None:
        if reachable:
            self._dispatch(
                ReachabilityRestored(
                    event_type=EventType.REACHABILITY_RESTORED,
                    ts_ms=now_ms(),
                )
            )
        else:
            self._dispatch(
                ReachabilityLost(
                    event_type=EventType.REACHABILITY_LOST,
                    ts_ms=now_ms(),
                )
            )

    # ------------------------------------------------------------------
    # Event pipeline
    # ------------------------------------------------------------------

    def _dispatch(self, event: Event) -> None:
        """
        Single entry point for every event.

        Re-entrant calls only enqueue; the outermost call drains the queue.
        State is swapped in before any of the event's commands execute.
        """
        self._queue.append(event)
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._queue:
                self._apply(self._queue.popleft())
        finally:
            self._dispatching = False

    def _apply(self, event: Event) -> None:
        """Reduce one event and execute its commands."""
        new_state, commands = reduce(self._state, event)
        self._state = new_state
        for cmd in commands:
            if self._state.shutdown and not new_state.shutdown:
                # A callback shut us down mid-event; the rest is moot.
                break
            self._execute_command(cmd)

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    def _execute_command(self, cmd: Command) -> None:
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            self._log({**cmd.event, "room_id": self._target.room_id})

        elif isinstance(cmd, OpenSession):
            session = self._session_factory(
                target=self._target,
                listener=self,
                session_id=cmd.session_id,
            )
            self._sessions[cmd.session_id] = session
            session.open()
            self._log({
                "ts_ms": now_ms(),
                "event_type": "SESSION_OPEN_EXECUTED",
                "room_id": self._target.room_id,
                "session_id": cmd.session_id,
                "uri": self._target.uri,
            })

        elif isinstance(cmd, CloseSession):
            session = self._sessions.pop(cmd.session_id, None)
            if session is not None:
                self._track_closing(session)
                session.close(cmd.reason)

        elif isinstance(cmd, ScheduleRetry):
            self._schedule_retry(retry_id=cmd.retry_id, retry=cmd.retry)

        elif isinstance(cmd, CancelRetry):
            self._cancel_retry(cmd.retry_id)

        elif isinstance(cmd, PublishStatus):
            self._publish_status(cmd.status, cmd.session_id)

        elif isinstance(cmd, ReleaseListeners):
            self._release_listeners()

        else:
            raise TypeError(f"Unknown command: {type(cmd).__name__}")

    def _publish_status(
        self,
        status: ConnectionStatus,
        session_id: int | None,
    ) -> None:
        handle: SessionHandle | None = None
        if session_id is not None:
            session = self._sessions.get(session_id)
            if session is not None:
                handle = SessionHandle(session)
        self._handle = handle

        for callback in list(self._status_subscribers):
            # Skip callbacks released by an earlier one in this round.
            if callback in self._status_subscribers:
                self._notify(callback, status, handle)

    def _release_listeners(self) -> None:
        self._handle = None
        unsubscribe = self._unsubscribe_reachability
        self._unsubscribe_reachability = None
        if unsubscribe is not None:
            unsubscribe()
        self._status_subscribers.clear()
        self._message_subscribers.clear()

    # ------------------------------------------------------------------
    # Retry timer
    # ------------------------------------------------------------------

    def _schedule_retry(self, *, retry_id: int, retry: RetryState) -> None:
        """
        Start the backoff wait. RetryTimerFired re-enters _dispatch.

        Jitter is drawn here, fresh for every wait, and never stored back
        into RetryState.
        """
        self._cancel_retry(self._retry_id)

        delay_ms = scheduled_delay_ms(retry, self._state.backoff, self._rand)

        async def _retry_task() -> None:
            try:
                await self._sleep(delay_ms / 1000.0)
            except asyncio.CancelledError:
                # Timer was cancelled - this is normal
                return

            if self._retry_id == retry_id:
                self._retry_task = None
                self._retry_id = None
                self._retry_delay_ms = None

            self._dispatch(
                RetryTimerFired(
                    event_type=EventType.RETRY_TIMER_FIRED,
                    ts_ms=now_ms(),
                    retry_id=retry_id,
                    reachable=self._reachability.is_reachable(),
                )
            )

        self._retry_id = retry_id
        self._retry_delay_ms = delay_ms
        self._retry_task = asyncio.create_task(_retry_task())

        self._log({
            "ts_ms": now_ms(),
            "event_type": "RETRY_SCHEDULED",
            "room_id": self._target.room_id,
            "retry_id": retry_id,
            "base_delay_ms": retry.current_delay_ms,
            "delay_ms": delay_ms,
            "attempt_count": retry.attempt_count,
        })

    def _cancel_retry(self, retry_id: int | None) -> None:
        """
        Cancel the in-flight retry timer if it matches.

        Idempotent: safe to call even if no timer exists.
        """
        if retry_id is None or retry_id != self._retry_id:
            return

        task = self._retry_task
        self._retry_task = None
        self._retry_id = None
        self._retry_delay_ms = None

        if task is not None and not task.done():
            task.cancel()

        self._log({
            "ts_ms": now_ms(),
            "event_type": "RETRY_CANCELLED",
            "room_id": self._target.room_id,
            "retry_id": retry_id,
        })

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _track_closing(self, session: Any) -> None:
        """Remember a closed session until its close handshake settles."""
        self._closing = [s for s in self._closing if s.close_pending]
        self._closing.append(session)

    def _notify(self, callback: Callable[..., None], *args: Any) -> None:
        """Consumer callbacks must never break the supervisor."""
        try:
            callback(*args)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": now_ms(),
                "event_type": "SUBSCRIBER_ERROR",
                "room_id": self._target.room_id,
                "exception": type(exc).__name__,
                "message": str(exc),
            })


def _remover(items: list[Any], item: Any) -> Unsubscribe:
    """Unsubscribe handle that removes item once; later calls are no-ops."""
    def _remove() -> None:
        if item in items:
            items.remove(item)
    return _remove
