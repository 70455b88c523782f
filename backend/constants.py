"""
BEHAVIOR-AS-CONSTANTS
---------------------
Single source of truth for all behavioral numbers in the room link.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Any, Final, Mapping

# =============================================================================
# Reconnect Backoff
# =============================================================================

RECONNECT_INITIAL_DELAY_MS: Final[int] = 1_000
RECONNECT_MAX_DELAY_MS: Final[int] = 30_000
RECONNECT_BACKOFF_MULTIPLIER: Final[int] = 2

# Jitter is drawn uniformly from [0, RECONNECT_JITTER_MS)
RECONNECT_JITTER_MS: Final[int] = 500

# =============================================================================
# Transport
# =============================================================================

ROOM_WS_BASE_URL_DEFAULT: Final[str] = "ws://localhost:8000"
ROOM_WS_PATH_TEMPLATE: Final[str] = "/ws/chat/{room_id}/"

# Sent exactly once, first, on every successful open
PRESENCE_ANNOUNCEMENT: Final[Mapping[str, Any]] = {"type": "entered"}

WS_MAX_MESSAGE_BYTES: Final[int] = 2**22

# Keepalive pings detect half-open sockets and surface them as closes
WS_PING_INTERVAL_S: Final[float] = 20.0
WS_PING_TIMEOUT_S: Final[float] = 20.0

# =============================================================================
# Reachability Probe
# =============================================================================

REACHABILITY_PROBE_HOST_DEFAULT: Final[str] = "1.1.1.1"
REACHABILITY_PROBE_PORT_DEFAULT: Final[int] = 53
REACHABILITY_PROBE_INTERVAL_S: Final[float] = 5.0
REACHABILITY_PROBE_TIMEOUT_S: Final[float] = 2.0

# =============================================================================
# Host signal names
# =============================================================================

SIGNAL_ONLINE: Final[str] = "online"
SIGNAL_OFFLINE: Final[str] = "offline"
