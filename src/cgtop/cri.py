"""Helpers for talking to the container runtime through ``crictl``."""

import json
import logging
import os
import subprocess
from pathlib import Path

from cgtop.cgroup import MOUNTINFO_PATH, PROC_ROOT, stats_from_inspect
from cgtop.errors import CgroupError, NotFoundError, ParseError
from cgtop.models import ResourceStats

logger = logging.getLogger(__name__)

STORAGE_DIRS = (
    "/run/containers/storage",
    "/var/lib/containers/storage",
)


class CrictlError(CgroupError):
    """Raised when crictl cannot be run or exits with a failure status."""

    def __init__(self, args: tuple[str, ...], returncode: int | None, output: str = "") -> None:
        self.command = args
        self.returncode = returncode
        self.output = output
        detail = output.strip() or "no output"
        if returncode is None:
            super().__init__(f"{' '.join(args)}: {detail}")
        else:
            super().__init__(f"{' '.join(args)} exited with status {returncode}: {detail}")


class Crictl:
    """Thin wrapper around the crictl CLI for a CRI implementation."""

    def __init__(self, path: str | None = None, timeout: float | None = 30.0) -> None:
        """
        Initialize the wrapper.

        Args:
            path: crictl executable. Default "crictl", resolved through PATH.
            timeout: Seconds to wait for a single crictl call.
        """
        self._path = path or "crictl"
        self._timeout = timeout

    @property
    def path(self) -> str:
        """Get the crictl executable path."""
        return self._path

    def _run(self, *args: str) -> str:
        """Run crictl with ``args`` and return its combined output."""
        cmd = (self._path, *args)
        logger.debug("Running %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise CrictlError(cmd, None, f"timed out after {exc.timeout}s") from exc
        except OSError as exc:
            raise CrictlError(cmd, None, str(exc)) from exc

        if result.returncode != 0:
            raise CrictlError(cmd, result.returncode, result.stdout)
        return result.stdout

    def runtime_status(self) -> str:
        """Return the JSON output of ``crictl info``."""
        return self._run("info")

    def list_containers(self) -> str:
        """Return the JSON output of ``crictl ps -o json``."""
        return self._run("ps", "-o", "json")

    def inspect_container(self, container_id: str) -> str:
        """Return the JSON output of ``crictl inspect -o json <id>``."""
        return self._run("inspect", "-o", "json", container_id)


def parse_container_ids(ps_output: str) -> list[str]:
    """Extract container IDs from ``crictl ps -o json`` output."""
    try:
        data = json.loads(ps_output)
    except json.JSONDecodeError as exc:
        raise ParseError(f"invalid crictl ps output: {exc}") from exc

    containers = data.get("containers") if isinstance(data, dict) else None
    return [c["id"] for c in containers or [] if isinstance(c, dict) and c.get("id")]


def read_container_config(container_id: str, runtime_dir: str | None = None) -> str:
    """
    Read a CRI-O container's ``config.json`` from overlay storage.

    Searches ``$XDG_RUNTIME_DIR/containers/storage`` (rootless) before the
    system-wide storage directories.

    Raises:
        ValueError: ``container_id`` is not a single path component.
        NotFoundError: No storage directory holds the container.
        OSError: A config file exists but could not be read.
    """
    if container_id in ("", ".", "..") or Path(container_id).name != container_id:
        raise ValueError(f"invalid container id: {container_id!r}")

    dirs = list(STORAGE_DIRS)
    runtime_dir = runtime_dir if runtime_dir is not None else os.getenv("XDG_RUNTIME_DIR")
    if runtime_dir:
        dirs.insert(0, os.path.join(runtime_dir, "containers/storage"))

    for base in dirs:
        path = Path(base) / "overlay-containers" / container_id / "userdata" / "config.json"
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            continue

    raise NotFoundError(f"container config not found for {container_id}")


def container_stats(
    container_id: str,
    crictl: Crictl | None = None,
    *,
    mountinfo_path: str | Path = MOUNTINFO_PATH,
    proc_root: str | Path = PROC_ROOT,
) -> ResourceStats:
    """Inspect ``container_id`` with crictl and read its cgroup stats."""
    crictl = crictl or Crictl()
    inspect = crictl.inspect_container(container_id)
    return stats_from_inspect(inspect, mountinfo_path=mountinfo_path, proc_root=proc_root)
