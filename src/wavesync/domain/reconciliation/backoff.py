"""Exponential retry backoff for failed applies."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wavesync.domain.model import RetrySpec


def backoff_delay(retry: RetrySpec, attempt: int) -> float:
    """Seconds to wait before retry number ``attempt`` (0-based).

    ``backoff_base * backoff_factor ** attempt``, capped at
    ``backoff_max_duration``.
    """

    if attempt < 0:
        raise ValueError("attempt must be non-negative")
    return min(retry.backoff_base * retry.backoff_factor**attempt, retry.backoff_max_duration)


def backoff_schedule(retry: RetrySpec) -> tuple[float, ...]:
    """Every delay a fully failing application waits through, in order."""

    return tuple(backoff_delay(retry, attempt) for attempt in range(retry.limit))
