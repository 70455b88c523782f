"""
Authoritative supervisor state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from connection.backoff import BackoffConfig, RetryState
from connection.enums.phase import SupervisorPhase
from connection.enums.status import ConnectionStatus


@dataclass(frozen=True)
class SupervisorState:
    """
    Immutable snapshot of all supervisor-owned state.

    Id semantics:
    - last_session_id is 0 until the first session is opened. It is
      monotonic, so session ids are never reused.
    - active_session_id is None whenever no session is live. It is
      cleared when the session is retired (closed, dropped while
      offline, or torn down).
    - pending_retry_id is None when no retry timer is pending.
    - next_retry_id is monotonic; timer firings carrying any other id
      are stale.

    shutdown is set once and never unset.
    """

    phase: SupervisorPhase = SupervisorPhase.IDLE
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED

    backoff: BackoffConfig = field(default_factory=BackoffConfig)
    retry: RetryState = field(default_factory=RetryState)

    last_session_id: int = 0
    active_session_id: int | None = None

    next_retry_id: int = 0
    pending_retry_id: int | None = None

    shutdown: bool = False
