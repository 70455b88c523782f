"""
FastAPI app factory for the room link status service.

Responsibilities:
- Create and configure FastAPI app
- Own the lifespan of the reachability probe and the supervisor
- Register routes

The service is a thin consumer: it only reads status and forwards sends
through the supervisor's current SessionHandle.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable

from fastapi import FastAPI

from config import AppConfig
from connection.reachability import (
    HostReachabilityMonitor,
    ReachabilityProbe,
    host_signals,
)
from connection.supervisor import ConnectionSupervisor
from connection.transport import ConnectionTarget

from server.routes import register_routes


SupervisorBuilder = Callable[[AppConfig], Any]
ProbeBuilder = Callable[[AppConfig], "ReachabilityProbe | None"]


def build_supervisor(config: AppConfig) -> ConnectionSupervisor:
    """Build the supervisor for the configured room."""
    return ConnectionSupervisor(
        target=ConnectionTarget(
            room_id=config.room_id,
            base_url=config.room_ws_base_url,
        ),
        reachability=HostReachabilityMonitor(host_signals),
        verbose=config.verbose,
    )


def build_probe(config: AppConfig) -> ReachabilityProbe | None:
    """Build the reachability probe, or None when disabled."""
    if not config.probe_enabled:
        return None
    return ReachabilityProbe(
        signals=host_signals,
        host=config.probe_host,
        port=config.probe_port,
        interval_s=config.probe_interval_s,
        timeout_s=config.probe_timeout_s,
        verbose=config.verbose,
    )


def create_app(
    config: AppConfig | None = None,
    *,
    supervisor_builder: SupervisorBuilder = build_supervisor,
    probe_builder: ProbeBuilder = build_probe,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with injected supervisors
    - Environment-specific setup
    - ASGI server compatibility
    """
    config = config or AppConfig.load_from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        probe = probe_builder(config)
        if probe is not None:
            # One synchronous probe so the supervisor starts with a real answer.
            await probe.check_once()
            probe.start()

        supervisor = supervisor_builder(config)
        app.state.supervisor = supervisor
        supervisor.start()
        try:
            yield
        finally:
            await supervisor.aclose()
            if probe is not None:
                await probe.stop()

    app = FastAPI(title="Room Link", lifespan=lifespan)
    app.state.config = config

    register_routes(app)

    return app
