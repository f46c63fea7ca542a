"""
Discovery of cgroup v2 accounting data for a container's process.

The pipeline runs in four steps, each usable on its own:

1. ``pid_from_inspect`` finds the host PID in a container inspect document.
2. ``cgroup_path_for_pid`` maps the PID to its unified-hierarchy path.
3. ``find_cgroup2_mountpoint`` locates the cgroup2 mount on this host.
4. ``stats_from_path`` reads ``cpu.stat`` and ``memory.current``.

``stats_from_inspect`` chains them. Nothing is cached between calls: mounts
and process membership can change while the host is running.
"""

import json
import logging
import math
from pathlib import Path
from typing import Any

from cgtop.errors import NotFoundError, ParseError
from cgtop.models import ResourceStats

logger = logging.getLogger(__name__)

MOUNTINFO_PATH = "/proc/self/mountinfo"
PROC_ROOT = "/proc"

CGROUP2_FSTYPE = "cgroup2"
CPU_STAT_FILE = "cpu.stat"
MEMORY_CURRENT_FILE = "memory.current"
CPU_USAGE_KEY = "usage_usec"

# mountinfo: id parent major:minor root mount-point options ... - fstype source super-options
_MIN_MOUNTINFO_FIELDS = 10
_MOUNT_POINT_FIELD = 4


def find_cgroup2_mountpoint(mountinfo_path: str | Path = MOUNTINFO_PATH) -> str:
    """
    Return the mount point of the cgroup v2 filesystem.

    Args:
        mountinfo_path: Mount table in ``/proc/<pid>/mountinfo`` format.

    Raises:
        NotFoundError: No cgroup2 record is listed.
        OSError: The mount table could not be read.
    """
    with open(mountinfo_path, encoding="utf-8") as f:
        for line in f:
            fields = line.rstrip("\n").split(" ")
            if len(fields) < _MIN_MOUNTINFO_FIELDS:
                continue
            try:
                sep = fields.index("-")
            except ValueError:
                continue
            if sep + 3 >= len(fields):
                continue
            if fields[sep + 1] == CGROUP2_FSTYPE:
                return fields[_MOUNT_POINT_FIELD]

    raise NotFoundError(f"cgroup2 mountpoint not found in {mountinfo_path}")


def _is_pid_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, float):
        return math.isfinite(value)
    return isinstance(value, int)


def _reject_constant(name: str) -> Any:
    raise ParseError(f"invalid inspect document: non-finite number {name}")


def find_int_key(obj: Any, key: str) -> int | None:
    """
    Depth-first search for ``key`` with a numeric value in decoded JSON.

    Floats are truncated toward zero; infinite values do not match. Returns
    None when no such key exists.
    """
    if isinstance(obj, dict):
        for k, value in obj.items():
            if k == key and _is_pid_number(value):
                return int(value)
            found = find_int_key(value, key)
            if found is not None:
                return found
    elif isinstance(obj, list):
        for value in obj:
            found = find_int_key(value, key)
            if found is not None:
                return found
    return None


def pid_from_inspect(data: str | bytes) -> int:
    """
    Extract the container PID from ``crictl inspect`` JSON output.

    Raises:
        ParseError: ``data`` is not valid JSON, or uses NaN/Infinity literals.
        NotFoundError: No numeric ``pid`` key exists anywhere in the document.
    """
    try:
        obj = json.loads(data, parse_constant=_reject_constant)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ParseError(f"invalid inspect document: {exc}") from exc

    pid = find_int_key(obj, "pid")
    if pid is None:
        raise NotFoundError("pid not found in inspect data")
    return pid


def cgroup_path_for_pid(pid: int, proc_root: str | Path = PROC_ROOT) -> str:
    """
    Return the unified-hierarchy cgroup path for ``pid``.

    The path is returned as the kernel reports it, e.g. ``/kubepods.slice/...``.

    Raises:
        NotFoundError: The process has no cgroup v2 membership record.
        OSError: ``/proc/<pid>/cgroup`` is unreadable, usually because the
            process has exited.
    """
    cgroup_file = Path(proc_root) / str(pid) / "cgroup"
    with open(cgroup_file, encoding="utf-8") as f:
        for line in f:
            parts = line.rstrip("\n").split(":", 2)
            # v1 records name their controllers; the v2 record leaves them empty
            if len(parts) == 3 and parts[1] == "":
                return parts[2]

    raise NotFoundError(f"cgroup path not found for pid {pid}")


def _parse_uint(text: str) -> int | None:
    # Whole-field digits only; "123abc" is rejected rather than read as 123
    text = text.strip()
    if not text.isascii() or not text.isdigit():
        return None
    return int(text)


def _read_cpu_usage(cpu_file: Path) -> int:
    try:
        with open(cpu_file, encoding="utf-8") as f:
            for line in f:
                fields = line.split()
                if len(fields) == 2 and fields[0] == CPU_USAGE_KEY:
                    return _parse_uint(fields[1]) or 0
    except OSError as exc:
        logger.debug("Cannot read %s: %s", cpu_file, exc)
    return 0


def _read_memory_usage(memory_file: Path) -> int:
    try:
        data = memory_file.read_text(encoding="utf-8")
    except OSError as exc:
        logger.debug("Cannot read %s: %s", memory_file, exc)
        return 0
    return _parse_uint(data) or 0


def stats_from_path(root: str | Path, cgroup_path: str) -> ResourceStats:
    """
    Read CPU and memory usage from the cgroup directory ``root/cgroup_path``.

    Accounting files that are missing or unparsable leave their field at 0,
    since not every controller is enabled on every host.
    """
    cgroup_dir = Path(root) / cgroup_path.lstrip("/")
    return ResourceStats(
        cpu_usage_usec=_read_cpu_usage(cgroup_dir / CPU_STAT_FILE),
        memory_usage_bytes=_read_memory_usage(cgroup_dir / MEMORY_CURRENT_FILE),
    )


def stats_for_pid(
    pid: int,
    *,
    mountinfo_path: str | Path = MOUNTINFO_PATH,
    proc_root: str | Path = PROC_ROOT,
) -> ResourceStats:
    """Resolve ``pid`` to its cgroup and read its stats."""
    cgroup_path = cgroup_path_for_pid(pid, proc_root)
    mountpoint = find_cgroup2_mountpoint(mountinfo_path)
    logger.debug("pid %d -> %s under %s", pid, cgroup_path, mountpoint)
    return stats_from_path(mountpoint, cgroup_path)


def stats_from_inspect(
    data: str | bytes,
    *,
    mountinfo_path: str | Path = MOUNTINFO_PATH,
    proc_root: str | Path = PROC_ROOT,
) -> ResourceStats:
    """
    Return cgroup stats for the container described by an inspect document.

    The first failing step's error is raised unchanged.
    """
    pid = pid_from_inspect(data)
    return stats_for_pid(pid, mountinfo_path=mountinfo_path, proc_root=proc_root)
