"""
JSONL event logger.

Contract:
- Write one JSON object per line
- Output to stdout
- No buffering, no batching
- No side effects beyond logging

Diagnostics are opt-in: components built with verbose=False get a
sink that drops everything (see diagnostic_sink).
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Mapping, Callable


LogSink = Callable[[Mapping[str, Any]], None]


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print


def now_ms() -> int:
    """Wall-clock milliseconds for log records and event timestamps."""
    return time.time_ns() // 1_000_000


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single JSONL event to stdout.

    The caller is responsible for supplying a fully-formed event dict.

    This function:
    - Serializes to JSON
    - Writes exactly one line
    - Flushes immediately (no buffering)
    - Never raises
    """
    try:
        line = json.dumps(event, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        # Last-resort fallback; logging must never crash the supervisor
        fallback: dict[str, Any] = {
            "ts_ms": event.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)


def _drop(event: Mapping[str, Any]) -> None:  # pylint: disable=unused-argument
    return None


def diagnostic_sink(verbose: bool) -> LogSink:
    """
    Return the sink a component should log through.

    The returned callable resolves log_event at call time so that
    tests patching this module's _print still capture output.
    """
    if not verbose:
        return _drop

    def _emit(event: Mapping[str, Any]) -> None:
        log_event(event)

    return _emit
