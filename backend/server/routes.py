"""
Route registration for the room link status service.

Responsibilities:
- Define HTTP endpoints
- Pull the supervisor from app.state
- Never construct, close, or reconnect sessions
"""

from __future__ import annotations

from typing import Any

from fastapi import Body, FastAPI, HTTPException

from connection.errors import TransportError
from observability.logger import log_event, now_ms


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.get("/status")
    async def status() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        supervisor = app.state.supervisor
        session = supervisor.current_session()
        return {
            "status": supervisor.current_status().value,
            "room_id": supervisor.target.room_id,
            "session_id": session.session_id if session is not None else None,
        }

    @app.post("/send", status_code=202)
    async def send( # pyright: ignore[reportUnusedFunction]
        payload: dict[str, Any] = Body(...),
    ) -> dict[str, Any]:
        supervisor = app.state.supervisor
        session = supervisor.current_session()
        if session is None:
            raise HTTPException(status_code=503, detail="not connected")

        try:
            session.send(payload)
        except TransportError as exc:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "SEND_REJECTED",
                "room_id": supervisor.target.room_id,
                "session_id": session.session_id,
                "error": str(exc),
            })
            raise HTTPException(status_code=503, detail="not connected") from exc

        return {"queued": True, "session_id": session.session_id}
