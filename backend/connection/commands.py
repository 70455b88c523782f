"""
Side-effect command definitions for the connection supervisor.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - Commands are immutable value objects emitted by the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from connection.backoff import RetryState
from connection.enums.status import ConnectionStatus


# =============================================================================
# Base Command
# =============================================================================

@dataclass(frozen=True)
class Command:
    """Base command type."""


# =============================================================================
# Transport Commands
# =============================================================================

@dataclass(frozen=True)
class OpenSession(Command):
    """Construct a brand new transport session and begin opening it."""
    session_id: int


@dataclass(frozen=True)
class CloseSession(Command):
    """Synchronously close the given session (idempotent)."""
    session_id: int
    reason: str


# =============================================================================
# Retry Commands
# =============================================================================

@dataclass(frozen=True)
class ScheduleRetry(Command):
    """
    Request that runtime schedule a reconnect after the backoff wait.

    Runtime responsibilities:
    - draw jitter and compute the wait from retry
    - wait
    - emit RetryTimerFired(retry_id=..., reachable=...)

    Reducer remains pure: it decides *that* a retry should happen,
    runtime performs the waiting.
    """
    retry_id: int
    retry: RetryState


@dataclass(frozen=True)
class CancelRetry(Command):
    """Cancel the pending retry timer, if any (idempotent)."""
    retry_id: int


# =============================================================================
# Consumer Commands
# =============================================================================

@dataclass(frozen=True)
class PublishStatus(Command):
    """
    Push a status change to consumers.

    session_id is the session to expose as the SessionHandle,
    or None when no session is usable.
    """
    status: ConnectionStatus
    session_id: int | None


# =============================================================================
# Lifecycle Commands
# =============================================================================

@dataclass(frozen=True)
class ReleaseListeners(Command):
    """Deregister the reachability listener and drop consumer subscriptions."""


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
