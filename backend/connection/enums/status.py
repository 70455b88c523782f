"""
Connection status as seen by consumers.

connection_status: DISCONNECTED | CONNECTING | CONNECTED

This is pure data owned by ConnectionSupervisor. Consumers observe it
through current_status() / subscribe() and never mutate it.
"""
from enum import Enum

class ConnectionStatus(str, Enum):
    """
    Consumer-visible connection lifecycle status.

    Separate from and coarser than SupervisorPhase:
    IDLE and BACKOFF both surface as DISCONNECTED.
    """
    DISCONNECTED = "DISCONNECTED"  # No usable session (offline, waiting, or torn down)
    CONNECTING = "CONNECTING"      # Attempt in flight
    CONNECTED = "CONNECTED"        # Session open and usable
