"""Data models for cgtop."""

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class ResourceStats:
    """Immutable cgroup v2 usage figures for one process at one point in time."""

    cpu_usage_usec: int = 0  # cpu.stat usage_usec
    memory_usage_bytes: int = 0  # memory.current


@dataclass(slots=True)
class StatsSnapshot:
    """Result of polling one container."""

    container_id: str
    pid: int | None = None
    command: str = ""
    stats: ResourceStats | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the pipeline produced stats for this container."""
        return self.error is None and self.stats is not None
