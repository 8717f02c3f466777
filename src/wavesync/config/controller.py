"""Controller timing and rollout policy defaults."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_bool, env_float
from .errors import ConfigurationError

DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_HEALTH_TIMEOUT_SECONDS = 300.0


@dataclass(frozen=True, slots=True)
class ControllerConfig:
    """How often live state is polled and how long a wave may wait for health.

    ``strict`` halts a rollout on the first non-accepted failure; when disabled
    failed applications are reported and later waves still start.
    """

    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    health_timeout: float = DEFAULT_HEALTH_TIMEOUT_SECONDS
    strict: bool = True

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ConfigurationError("poll_interval must be positive")
        if self.health_timeout < 0:
            raise ConfigurationError("health_timeout must be non-negative")

    @property
    def max_health_polls(self) -> int:
        """Number of health observations that fit in ``health_timeout``."""

        return max(1, int(self.health_timeout // self.poll_interval) + 1)


def get_controller_config() -> ControllerConfig:
    return ControllerConfig(
        poll_interval=env_float(
            "WAVESYNC_POLL_INTERVAL", DEFAULT_POLL_INTERVAL_SECONDS, minimum=0.001
        ),
        health_timeout=env_float("WAVESYNC_HEALTH_TIMEOUT", DEFAULT_HEALTH_TIMEOUT_SECONDS),
        strict=env_bool("WAVESYNC_STRICT", True),
    )
