"""
Attempt-scoped WebSocket transport session.

Core model (IMPORTANT):
- One TransportSession == one connection attempt. It is never reused;
  reconnection always constructs a new instance.
- open() starts an asyncio task that connects, announces presence, and
  then runs the receive loop.
- Every lifecycle fact is reported to a SessionListener, tagged with the
  session id so the supervisor can gate stale sessions.

Event guarantees (per instance):
- session_opened fires at most once.
- session_error is always followed by session_closed (the session forces
  its own close right after reporting).
- session_closed fires exactly once, whether or not open was reached.
- After close, the session is inert: send() raises, nothing is delivered.

Design constraints:
- Session must not make retry decisions.
- Session must not know about reachability.
- send() is synchronous and FIFO; the presence announcement is queued
  before session_opened is reported, so it is always the first payload.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Protocol, Union

from websockets.asyncio.client import connect as ws_connect

from connection.errors import (
    TransportError,
    TransportOpenFailure,
    TransportRuntimeError,
)
from constants import (
    PRESENCE_ANNOUNCEMENT,
    ROOM_WS_BASE_URL_DEFAULT,
    ROOM_WS_PATH_TEMPLATE,
    WS_MAX_MESSAGE_BYTES,
    WS_PING_INTERVAL_S,
    WS_PING_TIMEOUT_S,
)
from observability.logger import diagnostic_sink, now_ms


Payload = Union[str, bytes, Mapping[str, Any]]

# (uri, **options) -> awaitable websocket connection
ConnectFn = Callable[..., Awaitable[Any]]


# ---------------------------------------------------------------------
# Target
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class ConnectionTarget:
    """
    What a supervisor connects to.

    Immutable for the lifetime of one supervisor; a different room means
    a different supervisor.
    """
    room_id: str
    base_url: str = ROOM_WS_BASE_URL_DEFAULT

    @property
    def uri(self) -> str:
        """Full WebSocket URI with the room id embedded in the path."""
        path = ROOM_WS_PATH_TEMPLATE.format(room_id=self.room_id)
        return f"{self.base_url.rstrip('/')}{path}"


# ---------------------------------------------------------------------
# Listener contract
# ---------------------------------------------------------------------

class SessionListener(Protocol):
    """Receiver of transport lifecycle facts (implemented by the supervisor)."""

    def session_opened(self, session_id: int) -> None: ...

    def session_message(self, session_id: int, payload: str | bytes) -> None: ...

    def session_error(self, session_id: int, reason: str) -> None: ...

    def session_closed(self, session_id: int, reason: str, was_open: bool) -> None: ...


def encode_payload(payload: Payload) -> str | bytes:
    """Mappings become compact JSON text; str/bytes pass through untouched."""
    if isinstance(payload, (str, bytes)):
        return payload
    return json.dumps(dict(payload), separators=(",", ":"))


# ---------------------------------------------------------------------
# TransportSession
# ---------------------------------------------------------------------

class TransportSession:
    """
    One attempt at a room WebSocket connection.

    Public interface:
    - open(): begin the asynchronous connection attempt
    - send(payload): queue a payload (TransportError if not open)
    - close(reason): synchronous, idempotent teardown
    """

    def __init__(
        self,
        *,
        target: ConnectionTarget,
        listener: SessionListener,
        session_id: int,
        connect: ConnectFn = ws_connect,
        verbose: bool = False,
    ) -> None:
        self._target = target
        self._listener = listener
        self._session_id = session_id
        self._connect = connect
        self._log = diagnostic_sink(verbose)

        self._ws: Any = None
        self._run_task: asyncio.Task[None] | None = None
        self._write_task: asyncio.Task[None] | None = None
        self._close_task: asyncio.Task[None] | None = None
        self._outbox: asyncio.Queue[str | bytes] = asyncio.Queue()

        self._opened = False
        self._closed = False

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def session_id(self) -> int:
        return self._session_id

    @property
    def target(self) -> ConnectionTarget:
        return self._target

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def close_pending(self) -> bool:
        """True while the socket close handshake is still running."""
        return self._close_task is not None and not self._close_task.done()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def open(self) -> None:
        """
        Begin the connection attempt.

        Must be called from within a running event loop. Calling it twice,
        or after close, is a programming error.
        """
        if self._run_task is not None or self._closed:
            raise TransportError(
                f"session {self._session_id} cannot be reopened"
            )
        self._run_task = asyncio.create_task(self._run())

    def send(self, payload: Payload) -> None:
        """Queue a payload for delivery in FIFO order."""
        if not self.is_open:
            raise TransportError(f"session {self._session_id} is not open")
        self._outbox.put_nowait(encode_payload(payload))

    def close(self, reason: str = "client_close") -> None:
        """
        Tear the session down synchronously.

        Cancels the connect/receive and writer tasks, starts the socket
        close handshake in the background, and reports session_closed
        before returning. Subsequent calls are no-ops.
        """
        if self._closed:
            return
        self._closed = True

        current = asyncio.current_task() if _loop_running() else None
        for task in (self._run_task, self._write_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._write_task = None

        ws = self._ws
        self._ws = None
        if ws is not None and _loop_running():
            # Handshake runs in the background; wait_closed() awaits it.
            self._close_task = asyncio.create_task(_close_quietly(ws))

        self._log({
            "ts_ms": now_ms(),
            "event_type": "TRANSPORT_CLOSED",
            "session_id": self._session_id,
            "room_id": self._target.room_id,
            "reason": reason,
            "was_open": self._opened,
        })
        self._listener.session_closed(self._session_id, reason, self._opened)

    async def wait_closed(self) -> None:
        """Wait for the close handshake started by close() to finish."""
        if self._close_task is not None:
            await self._close_task

    # -------------------------------------------------------------------------
    # Background loops
    # -------------------------------------------------------------------------

    async def _run(self) -> None:
        try:
            ws = await self._connect(
                self._target.uri,
                max_size=WS_MAX_MESSAGE_BYTES,
                ping_interval=WS_PING_INTERVAL_S,
                ping_timeout=WS_PING_TIMEOUT_S,
            )
        except asyncio.CancelledError:
            return
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._fail(TransportOpenFailure(f"open_failed: {e!r}"))
            return

        if self._closed:
            await _close_quietly(ws)
            return

        self._ws = ws
        self._opened = True

        # Presence first, then tell the supervisor.
        self._outbox.put_nowait(encode_payload(PRESENCE_ANNOUNCEMENT))
        self._write_task = asyncio.create_task(self._write_loop(ws))

        self._log({
            "ts_ms": now_ms(),
            "event_type": "TRANSPORT_OPENED",
            "session_id": self._session_id,
            "room_id": self._target.room_id,
        })
        self._listener.session_opened(self._session_id)

        if self._closed:
            return

        try:
            async for raw in ws:
                self._listener.session_message(self._session_id, raw)
                if self._closed:
                    return
        except asyncio.CancelledError:
            return
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._fail(TransportRuntimeError(f"runtime_error: {e!r}"))
            return

        self.close(reason=f"remote_closed: code={getattr(ws, 'close_code', None)}")

    async def _write_loop(self, ws: Any) -> None:
        try:
            while True:
                payload = await self._outbox.get()
                await ws.send(payload)
        except asyncio.CancelledError:
            return
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._fail(TransportRuntimeError(f"send_failed: {e!r}"))

    def _fail(self, error: TransportError) -> None:
        """Report an error, then force the close that must follow it."""
        if self._closed:
            return
        reason = str(error)
        self._log({
            "ts_ms": now_ms(),
            "event_type": "TRANSPORT_ERROR",
            "session_id": self._session_id,
            "room_id": self._target.room_id,
            "error_type": type(error).__name__,
            "reason": reason,
        })
        self._listener.session_error(self._session_id, reason)
        self.close(reason=reason)


# ---------------------------------------------------------------------
# Consumer-facing handle
# ---------------------------------------------------------------------

class SessionHandle:
    """
    Read-only view of the currently usable session.

    Consumers may send through it; they never open, close, or
    reconnect it.
    """

    def __init__(self, session: TransportSession) -> None:
        self._session = session

    @property
    def session_id(self) -> int:
        return self._session.session_id

    @property
    def target(self) -> ConnectionTarget:
        return self._session.target

    @property
    def is_open(self) -> bool:
        return self._session.is_open

    def send(self, payload: Payload) -> None:
        """Send a payload; raises TransportError if the session is gone."""
        self._session.send(payload)

    def __repr__(self) -> str:
        return (
            f"SessionHandle(session_id={self.session_id}, "
            f"room_id={self.target.room_id!r}, open={self.is_open})"
        )


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


async def _close_quietly(ws: Any) -> None:
    try:
        await ws.close()
    except Exception:  # pylint: disable=broad-exception-caught
        pass
