"""
Event definitions for the connection supervisor reducer.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Facts the reducer cannot observe itself (current reachability at
attempt time) are sampled by the runtime and carried on the event.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (phase, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # Supervisor lifecycle
    # ------------------------------------------------------------------
    START = "START"
    SHUTDOWN = "SHUTDOWN"

    # ------------------------------------------------------------------
    # Transport session
    # ------------------------------------------------------------------
    SESSION_OPENED = "SESSION_OPENED"
    SESSION_ERROR = "SESSION_ERROR"
    SESSION_CLOSED = "SESSION_CLOSED"

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    RETRY_TIMER_FIRED = "RETRY_TIMER_FIRED"

    # ------------------------------------------------------------------
    # Reachability
    # ------------------------------------------------------------------
    REACHABILITY_RESTORED = "REACHABILITY_RESTORED"
    REACHABILITY_LOST = "REACHABILITY_LOST"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


# =============================================================================
# Session-Scoped Events
# =============================================================================

@dataclass(frozen=True)
class SessionEvent(Event):
    """
    Base for events emitted by a transport session.

    session_id is used for stale gating: events from any session other
    than the active one are ignored.
    """
    session_id: int


@dataclass(frozen=True)
class SessionOpened(SessionEvent):
    """Transport reported open; presence announcement already queued."""


@dataclass(frozen=True)
class SessionError(SessionEvent):
    """Transport reported an error. A SessionClosed always follows."""
    reason: str


@dataclass(frozen=True)
class SessionClosed(SessionEvent):
    """Transport ended, cleanly or not. Fires once per session."""
    reason: str
    was_open: bool


# =============================================================================
# Lifecycle / Timer / Reachability Events
# =============================================================================

@dataclass(frozen=True)
class Start(Event):
    """Supervisor activated. reachable is sampled at dispatch time."""
    reachable: bool


@dataclass(frozen=True)
class Shutdown(Event):
    """Explicit teardown request."""


@dataclass(frozen=True)
class RetryTimerFired(Event):
    """
    Backoff wait elapsed.

    retry_id gates against stale timers; reachable is sampled when
    the timer fires.
    """
    retry_id: int
    reachable: bool


@dataclass(frozen=True)
class ReachabilityRestored(Event):
    """Host transitioned unreachable -> reachable."""


@dataclass(frozen=True)
class ReachabilityLost(Event):
    """Host transitioned reachable -> unreachable."""
