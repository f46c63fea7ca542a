"""Environment-backed configuration for cgtop."""

import os
from dataclasses import dataclass

from cgtop.cgroup import MOUNTINFO_PATH, PROC_ROOT

DEFAULT_CRICTL_PATH = "crictl"
DEFAULT_POLL_RATE = 2.0
DEFAULT_LOG_LEVEL = "WARNING"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigurationError(RuntimeError):
    """Raised when configuration values are missing or malformed."""


def env_str(name: str, or_value: str | None = None) -> str | None:
    """Fetch an environment variable as a stripped string; blank counts as unset."""
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return or_value
    return value.strip()


def env_float(name: str, or_value: float) -> float:
    """Fetch an environment variable and coerce it to ``float``."""
    raw = env_str(name)
    if raw is None:
        return or_value
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Environment variable {name!r} must be a number (got {raw!r})") from exc


@dataclass(slots=True, frozen=True)
class Settings:
    """Runtime settings, normally read from ``CGTOP_*`` environment variables."""

    crictl_path: str = DEFAULT_CRICTL_PATH
    poll_rate: float = DEFAULT_POLL_RATE
    proc_root: str = PROC_ROOT
    mountinfo_path: str = MOUNTINFO_PATH
    log_level: str = DEFAULT_LOG_LEVEL
    log_file: str | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the environment, falling back to defaults."""
        poll_rate = env_float("CGTOP_POLL_RATE", DEFAULT_POLL_RATE)
        if poll_rate <= 0:
            raise ConfigurationError(f"CGTOP_POLL_RATE must be positive (got {poll_rate})")

        log_level = env_str("CGTOP_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
        if log_level not in LOG_LEVELS:
            raise ConfigurationError(
                f"CGTOP_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)} (got {log_level!r})"
            )

        return cls(
            crictl_path=env_str("CGTOP_CRICTL_PATH", DEFAULT_CRICTL_PATH),
            poll_rate=poll_rate,
            proc_root=env_str("CGTOP_PROC_ROOT", PROC_ROOT),
            mountinfo_path=env_str("CGTOP_MOUNTINFO", MOUNTINFO_PATH),
            log_level=log_level,
            log_file=env_str("CGTOP_LOG_FILE"),
        )
