"""
Host reachability: signal bus, monitor, and probe.

Layers:
- HostNetworkSignals: process-wide "online"/"offline" events plus a
  synchronous is_online() query. This is the only place reachability
  state lives; host_signals is the shared instance.
- HostReachabilityMonitor: the ReachabilityMonitor a supervisor consumes.
  Each on_change() registration installs its own pair of listeners on the
  bus and hands back an unsubscribe that removes exactly that pair.
- ReachabilityProbe: production driver that periodically attempts a TCP
  connect and feeds the result into the bus.

Non-responsibilities:
- No reconnect decisions
- No knowledge of supervisors or transports
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Protocol

from constants import (
    REACHABILITY_PROBE_HOST_DEFAULT,
    REACHABILITY_PROBE_INTERVAL_S,
    REACHABILITY_PROBE_PORT_DEFAULT,
    REACHABILITY_PROBE_TIMEOUT_S,
    SIGNAL_OFFLINE,
    SIGNAL_ONLINE,
)
from observability.logger import diagnostic_sink, now_ms


SignalHandler = Callable[[], None]
ReachabilityCallback = Callable[[bool], None]
Unsubscribe = Callable[[], None]


# ---------------------------------------------------------------------
# Monitor contract
# ---------------------------------------------------------------------

class ReachabilityMonitor(Protocol):
    """What the supervisor needs to know about the network."""

    def is_reachable(self) -> bool: ...

    def on_change(self, callback: ReachabilityCallback) -> Unsubscribe: ...


# ---------------------------------------------------------------------
# Host signal bus
# ---------------------------------------------------------------------

class HostNetworkSignals:
    """
    Process-wide online/offline event source.

    set_online() only fires when the value actually changes, so
    listeners never see two identical signals in a row.
    """

    def __init__(self, *, online: bool = True) -> None:
        self._online = online
        self._listeners: dict[str, list[SignalHandler]] = {
            SIGNAL_ONLINE: [],
            SIGNAL_OFFLINE: [],
        }

    def is_online(self) -> bool:
        return self._online

    def add_listener(self, signal: str, handler: SignalHandler) -> None:
        self._listeners[signal].append(handler)

    def remove_listener(self, signal: str, handler: SignalHandler) -> None:
        """Remove one registration of handler. Unknown handlers are ignored."""
        handlers = self._listeners[signal]
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, signal: str | None = None) -> int:
        """Registered handlers for one signal, or for all signals."""
        if signal is not None:
            return len(self._listeners[signal])
        return sum(len(h) for h in self._listeners.values())

    def set_online(self, online: bool) -> None:
        """Record host reachability and fire the matching signal on change."""
        if online == self._online:
            return
        self._online = online

        signal = SIGNAL_ONLINE if online else SIGNAL_OFFLINE
        # Snapshot: handlers may unsubscribe while we iterate.
        for handler in list(self._listeners[signal]):
            handler()


host_signals = HostNetworkSignals()


# ---------------------------------------------------------------------
# Monitor
# ---------------------------------------------------------------------

class _Subscription:
    """One on_change() registration: a listener pair plus dedupe state."""

    def __init__(
        self,
        signals: HostNetworkSignals,
        callback: ReachabilityCallback,
    ) -> None:
        self._signals = signals
        self._callback = callback
        self._last = signals.is_online()
        self._active = True

        signals.add_listener(SIGNAL_ONLINE, self._handle_online)
        signals.add_listener(SIGNAL_OFFLINE, self._handle_offline)

    def _handle_online(self) -> None:
        self._deliver(True)

    def _handle_offline(self) -> None:
        self._deliver(False)

    def _deliver(self, reachable: bool) -> None:
        if not self._active or reachable == self._last:
            return
        self._last = reachable
        self._callback(reachable)

    def cancel(self) -> None:
        """Deregister both listeners. Idempotent."""
        if not self._active:
            return
        self._active = False
        self._signals.remove_listener(SIGNAL_ONLINE, self._handle_online)
        self._signals.remove_listener(SIGNAL_OFFLINE, self._handle_offline)


class HostReachabilityMonitor:
    """ReachabilityMonitor backed by a HostNetworkSignals bus."""

    def __init__(self, signals: HostNetworkSignals = host_signals) -> None:
        self._signals = signals

    def is_reachable(self) -> bool:
        return self._signals.is_online()

    def on_change(self, callback: ReachabilityCallback) -> Unsubscribe:
        """
        Subscribe to reachability transitions.

        callback(reachable) fires exactly once per transition. The returned
        handle removes this subscription's listeners; calling it again is a
        no-op.
        """
        return _Subscription(self._signals, callback).cancel


# ---------------------------------------------------------------------
# Probe
# ---------------------------------------------------------------------

OpenConnectionFn = Callable[..., Awaitable[tuple[Any, Any]]]


class ReachabilityProbe:
    """
    Periodic TCP reachability check feeding a signal bus.

    A failed connect is a reachability fact (offline), never an error.
    """

    def __init__(
        self,
        *,
        signals: HostNetworkSignals = host_signals,
        host: str = REACHABILITY_PROBE_HOST_DEFAULT,
        port: int = REACHABILITY_PROBE_PORT_DEFAULT,
        interval_s: float = REACHABILITY_PROBE_INTERVAL_S,
        timeout_s: float = REACHABILITY_PROBE_TIMEOUT_S,
        open_connection: OpenConnectionFn = asyncio.open_connection,
        verbose: bool = False,
    ) -> None:
        self._signals = signals
        self._host = host
        self._port = port
        self._interval_s = interval_s
        self._timeout_s = timeout_s
        self._open_connection = open_connection
        self._log = diagnostic_sink(verbose)

        self._task: asyncio.Task[None] | None = None

    def start(self) -> None:
        """Start the probe loop (idempotent)."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._probe_loop())

    async def stop(self) -> None:
        """Stop the probe loop and wait for it to exit."""
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def check_once(self) -> bool:
        """Probe once, publish the result to the bus, and return it."""
        online = await self._probe()
        was_online = self._signals.is_online()
        self._signals.set_online(online)

        if online != was_online:
            self._log({
                "ts_ms": now_ms(),
                "event_type": "REACHABILITY_CHANGED",
                "online": online,
                "probe": f"{self._host}:{self._port}",
            })
        return online

    async def _probe(self) -> bool:
        try:
            _, writer = await asyncio.wait_for(
                self._open_connection(self._host, self._port),
                timeout=self._timeout_s,
            )
        except (OSError, asyncio.TimeoutError):
            return False

        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True

    async def _probe_loop(self) -> None:
        try:
            while True:
                await self.check_once()
                await asyncio.sleep(self._interval_s)
        except asyncio.CancelledError:
            return
