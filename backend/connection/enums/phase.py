"""
Supervisor phase enumeration.

Rules:
- This enum defines ONLY the supervisor control states.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class SupervisorPhase(str, Enum):
    """
    Control states for a single connection supervisor.

    These represent supervisor intent, NOT the consumer-facing
    ConnectionStatus and NOT the transport's own lifecycle.
    """

    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    BACKOFF = "BACKOFF"
    SHUTTING_DOWN = "SHUTTING_DOWN"
