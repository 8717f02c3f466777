from __future__ import annotations

import pytest

from wavesync.domain.model import RetrySpec
from wavesync.domain.reconciliation import backoff_delay, backoff_schedule


def test_backoff_grows_exponentially_and_is_capped() -> None:
    retry = RetrySpec(limit=6, backoff_base=5.0, backoff_factor=2.0, backoff_max_duration=30.0)

    assert backoff_schedule(retry) == (5.0, 10.0, 20.0, 30.0, 30.0, 30.0)
    assert backoff_delay(retry, 1) == 10.0


def test_no_retries_means_no_delays() -> None:
    assert backoff_schedule(RetrySpec(limit=0)) == ()


def test_negative_attempt_is_rejected() -> None:
    with pytest.raises(ValueError, match="non-negative"):
        backoff_delay(RetrySpec(), -1)
