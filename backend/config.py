"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No connection logic
- No behavioral constants (see constants.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    REACHABILITY_PROBE_HOST_DEFAULT,
    REACHABILITY_PROBE_INTERVAL_S,
    REACHABILITY_PROBE_PORT_DEFAULT,
    REACHABILITY_PROBE_TIMEOUT_S,
    ROOM_WS_BASE_URL_DEFAULT,
)


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the app factory and supervisor bootstrap.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str

    # ------------------------------------------------------------------
    # Room connection
    # ------------------------------------------------------------------

    room_ws_base_url: str
    room_id: str

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    verbose: bool

    # ------------------------------------------------------------------
    # Reachability probe
    # ------------------------------------------------------------------

    probe_enabled: bool
    probe_host: str
    probe_port: int
    probe_interval_s: float
    probe_timeout_s: float

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable is malformed.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),

            room_ws_base_url=os.environ.get("ROOM_WS_BASE_URL", ROOM_WS_BASE_URL_DEFAULT),
            room_id=os.environ.get("ROOM_ID", "1"),

            verbose=os.environ.get("ROOM_LINK_VERBOSE", "0") == "1",

            probe_enabled=os.environ.get("REACHABILITY_PROBE_ENABLED", "1") == "1",
            probe_host=os.environ.get("REACHABILITY_PROBE_HOST", REACHABILITY_PROBE_HOST_DEFAULT),
            probe_port=int(os.environ.get(
                "REACHABILITY_PROBE_PORT", str(REACHABILITY_PROBE_PORT_DEFAULT)
            )),
            probe_interval_s=float(os.environ.get(
                "REACHABILITY_PROBE_INTERVAL_S", str(REACHABILITY_PROBE_INTERVAL_S)
            )),
            probe_timeout_s=float(os.environ.get(
                "REACHABILITY_PROBE_TIMEOUT_S", str(REACHABILITY_PROBE_TIMEOUT_S)
            )),
        )
