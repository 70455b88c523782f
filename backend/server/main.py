"""
Development entry point for the room link status service.

Runs the ASGI app under uvicorn. Configuration comes from the
environment (and .env, loaded by server.asgi).
"""

from __future__ import annotations

import os

import uvicorn


def main() -> None:
    """Run the service."""
    uvicorn.run(
        "server.asgi:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8080")),
        log_level="info",
    )


if __name__ == "__main__":
    main()
