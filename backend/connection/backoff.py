"""
Reconnect backoff policy helpers.

Purpose:
- Centralize reconnect delay rules
- Keep reducer pure
- Allow the supervisor runtime to make deterministic retry decisions

This module contains NO timers, NO async, NO side effects.
Randomness is injected by the caller.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable

from constants import (
    RECONNECT_BACKOFF_MULTIPLIER,
    RECONNECT_INITIAL_DELAY_MS,
    RECONNECT_JITTER_MS,
    RECONNECT_MAX_DELAY_MS,
)


RandomFn = Callable[[], float]


# =============================================================================
# Configuration
# =============================================================================

@dataclass(frozen=True)
class BackoffConfig:
    """Fixed backoff parameters (milliseconds)."""
    initial_delay_ms: int = RECONNECT_INITIAL_DELAY_MS
    max_delay_ms: int = RECONNECT_MAX_DELAY_MS
    jitter_ms: int = RECONNECT_JITTER_MS
    multiplier: int = RECONNECT_BACKOFF_MULTIPLIER


# =============================================================================
# Retry State
# =============================================================================

@dataclass(frozen=True)
class RetryState:
    """
    Immutable reconnect bookkeeping.

    Semantics:
    - current_delay_ms is the *base* wait used for the next failure.
      It never includes jitter.
    - attempt_count == 0 means no retry has been made since the last
      reset (construction, successful open, or reachability restored).
    """
    current_delay_ms: int = RECONNECT_INITIAL_DELAY_MS
    attempt_count: int = 0


def reset_retry(config: BackoffConfig = BackoffConfig()) -> RetryState:
    """Returns a fresh retry state."""
    return RetryState(current_delay_ms=config.initial_delay_ms, attempt_count=0)


def next_retry(
    current: RetryState,
    config: BackoffConfig = BackoffConfig(),
) -> RetryState:
    """
    Advance to the next retry attempt.

    Growth is applied to the base delay only and is capped at
    max_delay_ms. The attempt count is never capped: retries continue
    for as long as the supervisor lives.
    """
    return RetryState(
        current_delay_ms=min(
            current.current_delay_ms * config.multiplier,
            config.max_delay_ms,
        ),
        attempt_count=current.attempt_count + 1,
    )


# =============================================================================
# Delay Calculation
# =============================================================================

def scheduled_delay_ms(
    current: RetryState,
    config: BackoffConfig = BackoffConfig(),
    rand: RandomFn = random.random,
) -> float:
    """
    Returns the wait before the next attempt: base + fresh jitter.

    rand must return a float in [0, 1); the result therefore lies in
    [current_delay_ms, current_delay_ms + jitter_ms).
    """
    return current.current_delay_ms + rand() * config.jitter_ms
