"""
ASGI entry point for the room link status service.

Loads .env before reading configuration so that ROOM_* and
REACHABILITY_PROBE_* variables can live in a local file.
"""

from dotenv import load_dotenv

load_dotenv()

# pylint: disable=wrong-import-position
from config import AppConfig
from observability.logger import log_event, now_ms
from server.app import create_app

config = AppConfig.load_from_env()

log_event({
    "ts_ms": now_ms(),
    "event_type": "SERVICE_CONFIGURED",
    "env": config.env,
    "room_id": config.room_id,
    "room_ws_base_url": config.room_ws_base_url,
    "probe_enabled": config.probe_enabled,
})

app = create_app(config)
