"""Shared fixtures: a fake host with procfs, a mount table and a cgroup2 tree."""

import json
import logging
import stat
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def reset_cgtop_logger():
    """Undo any handlers a test or CLI invocation installed on the cgtop logger."""
    yield
    logger = logging.getLogger("cgtop")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


class FakeHost:
    """Builds /proc and /sys/fs/cgroup look-alikes under a temporary directory."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.proc_root = root / "proc"
        self.cgroup_root = root / "sys" / "fs" / "cgroup"
        self.mountinfo = root / "mountinfo"
        self.proc_root.mkdir(parents=True)
        self.cgroup_root.mkdir(parents=True)
        self.write_mountinfo(
            "22 1 0:21 / /proc rw,nosuid,nodev,noexec,relatime shared:12 - proc proc rw",
            f"30 24 0:26 / {self.cgroup_root} rw,nosuid,nodev,noexec,relatime shared:4 - cgroup2 cgroup2 rw,nsdelegate",
        )

    def write_mountinfo(self, *lines: str) -> None:
        self.mountinfo.write_text("".join(line + "\n" for line in lines))

    def add_process(
        self,
        pid: int,
        cgroup_path: str,
        cpu_usec: int | None = None,
        memory_bytes: int | None = None,
    ) -> Path:
        """Register ``pid`` in ``cgroup_path`` and write its accounting files."""
        proc_dir = self.proc_root / str(pid)
        proc_dir.mkdir()
        (proc_dir / "cgroup").write_text(f"0::{cgroup_path}\n")

        cgroup_dir = self.cgroup_root / cgroup_path.lstrip("/")
        cgroup_dir.mkdir(parents=True, exist_ok=True)
        if cpu_usec is not None:
            (cgroup_dir / "cpu.stat").write_text(
                f"usage_usec {cpu_usec}\nuser_usec {cpu_usec // 2}\nsystem_usec {cpu_usec // 2}\n"
            )
        if memory_bytes is not None:
            (cgroup_dir / "memory.current").write_text(f"{memory_bytes}\n")
        return cgroup_dir

    def remove_process(self, pid: int) -> None:
        proc_dir = self.proc_root / str(pid)
        (proc_dir / "cgroup").unlink()
        proc_dir.rmdir()


@pytest.fixture
def host(tmp_path: Path) -> FakeHost:
    """A fake host with an empty process table and cgroup2 mounted."""
    return FakeHost(tmp_path / "host")


def inspect_document(pid: int | float) -> str:
    """A trimmed-down ``crictl inspect -o json`` payload."""
    return json.dumps(
        {
            "status": {"id": "c0ffee", "state": "CONTAINER_RUNNING"},
            "info": {"sandboxID": "abc", "pid": pid, "runtimeSpec": {"process": {"args": ["sleep"]}}},
        }
    )


class FakeCrictl:
    """In-memory stand-in for cgtop.cri.Crictl."""

    def __init__(self, inspects: dict[str, str] | None = None) -> None:
        self.inspects = dict(inspects or {})
        self.calls: list[tuple[str, ...]] = []

    def list_containers(self) -> str:
        self.calls.append(("ps",))
        return json.dumps({"containers": [{"id": cid} for cid in self.inspects]})

    def inspect_container(self, container_id: str) -> str:
        from cgtop.cri import CrictlError

        self.calls.append(("inspect", container_id))
        if container_id not in self.inspects:
            raise CrictlError(("crictl", "inspect", container_id), 1, "container not found")
        return self.inspects[container_id]


@pytest.fixture
def fake_crictl_script(tmp_path: Path) -> Path:
    """
    An executable that mimics crictl.

    ``inspect`` serves files named ``inspect-<id>.json`` from the script's
    directory; unknown IDs exit 1.
    """
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "crictl"
    script.write_text(
        "#!/bin/sh\n"
        'dir="$(dirname "$0")"\n'
        'case "$1" in\n'
        '  info) echo \'{"status": {"conditions": []}}\' ;;\n'
        '  ps) cat "$dir/ps.json" ;;\n'
        "  inspect)\n"
        '    f="$dir/inspect-$4.json"\n'
        '    if [ -f "$f" ]; then cat "$f"; else echo "container \\"$4\\" not found" >&2; exit 1; fi\n'
        "    ;;\n"
        '  *) echo "unknown command $1" >&2; exit 2 ;;\n'
        "esac\n"
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    (bin_dir / "ps.json").write_text(json.dumps({"containers": [{"id": "c1"}, {"id": "c2"}]}))
    return script
