"""Container polling engine for cgtop."""

import logging
import threading
from pathlib import Path
from queue import Queue

import psutil

from cgtop.cgroup import MOUNTINFO_PATH, PROC_ROOT, pid_from_inspect, stats_for_pid
from cgtop.cri import Crictl, parse_container_ids
from cgtop.errors import CgroupError
from cgtop.models import StatsSnapshot

logger = logging.getLogger(__name__)


def process_name(pid: int) -> str:
    """Return the process name for ``pid``, or "" if it cannot be read."""
    try:
        return psutil.Process(pid).name()
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
        return ""


class ContainerMonitor:
    """
    Polls cgroup stats for a set of containers.

    Runs in a separate daemon thread and pushes a list of StatsSnapshot per
    poll to a thread-safe Queue. A container that fails to resolve is
    reported through its snapshot's ``error`` field; the others are still
    polled. No history is kept between polls.
    """

    def __init__(
        self,
        update_queue: Queue[list[StatsSnapshot]],
        container_ids: list[str] | None = None,
        crictl: Crictl | None = None,
        poll_rate: float = 2.0,
        proc_root: str | Path = PROC_ROOT,
        mountinfo_path: str | Path = MOUNTINFO_PATH,
    ) -> None:
        """
        Initialize the ContainerMonitor.

        Args:
            update_queue: Thread-safe queue to push updates to.
            container_ids: Containers to watch. None means every container
                ``crictl ps`` reports at each poll.
            crictl: crictl wrapper used to list and inspect containers.
            poll_rate: How often to poll (in seconds). Default 2.0s.
            proc_root: procfs mount used to resolve cgroup membership.
            mountinfo_path: Mount table used to locate the cgroup2 mount.
        """
        self._queue = update_queue
        self._container_ids = list(dict.fromkeys(container_ids)) if container_ids else None
        self._crictl = crictl or Crictl()
        self._poll_rate = max(0.1, poll_rate)
        self._proc_root = proc_root
        self._mountinfo_path = mountinfo_path
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="ContainerMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                self._queue.put(self.collect())
            except CgroupError as exc:
                # Listing containers failed; try again on the next tick
                logger.warning("Container poll failed: %s", exc)

            self._stop_event.wait(timeout=self._poll_rate)

    def _target_ids(self) -> list[str]:
        if self._container_ids is not None:
            return self._container_ids
        return parse_container_ids(self._crictl.list_containers())

    def collect(self) -> list[StatsSnapshot]:
        """
        Poll every target container once.

        Raises:
            CgroupError: The container list could not be obtained from crictl.
        """
        return [self._collect_container(cid) for cid in self._target_ids()]

    def _collect_container(self, container_id: str) -> StatsSnapshot:
        """Run the stats pipeline for one container, recording any failure."""
        snapshot = StatsSnapshot(container_id=container_id)
        try:
            inspect = self._crictl.inspect_container(container_id)
            snapshot.pid = pid_from_inspect(inspect)
            snapshot.stats = stats_for_pid(
                snapshot.pid,
                mountinfo_path=self._mountinfo_path,
                proc_root=self._proc_root,
            )
        except (CgroupError, OSError) as exc:
            logger.info("Cannot read stats for container %s: %s", container_id, exc)
            snapshot.error = str(exc) or type(exc).__name__
            return snapshot

        snapshot.command = process_name(snapshot.pid)
        return snapshot
