"""Shared fixtures: fake cgroup filesystems and Docker containers directories."""

from __future__ import annotations

import json
import shutil
from collections.abc import Callable
from pathlib import Path

import pytest

from dockerprom.core.schemas import CgroupDriver, CgroupVersion


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


class CgroupTree:
    """Builds a cgroup filesystem in a temporary directory.

    Counters are given in normalized units (bytes, nanoseconds) and written
    in each layout's native format, split across two block devices.
    """

    V1_CONTROLLERS = ("memory", "cpuacct", "blkio")

    def __init__(self, root: Path, version: CgroupVersion, driver: CgroupDriver) -> None:
        self.root = root
        self.version = version
        self.driver = driver
        root.mkdir(parents=True, exist_ok=True)
        parent = "system.slice" if driver is CgroupDriver.SYSTEMD else "docker"
        if version is CgroupVersion.V2:
            _write(root / "cgroup.controllers", "cpuset cpu io memory hugetlb pids\n")
            (root / parent).mkdir()
        else:
            for controller in self.V1_CONTROLLERS:
                (root / controller / parent).mkdir(parents=True)
        if driver is CgroupDriver.SYSTEMD:
            # Unrelated units live next to container scopes
            base = root if version is CgroupVersion.V2 else root / "memory"
            (base / "system.slice" / "sshd.service").mkdir(parents=True)

    def dir_name(self, container_id: str) -> str:
        if self.driver is CgroupDriver.SYSTEMD:
            return f"docker-{container_id}.scope"
        return container_id

    def container_dir(self, container_id: str, controller: str = "memory") -> Path:
        parent = "system.slice" if self.driver is CgroupDriver.SYSTEMD else "docker"
        if self.version is CgroupVersion.V2:
            return self.root / parent / self.dir_name(container_id)
        return self.root / controller / parent / self.dir_name(container_id)

    def add_container(
        self,
        container_id: str,
        memory: int = 4096,
        user_nanos: int = 2_000_000,
        system_nanos: int = 1_000_000,
        read_bytes: int = 8192,
        write_bytes: int = 1024,
        skip: tuple[str, ...] = (),
    ) -> None:
        """Write a container's pseudo-files. ``skip`` names files to leave out:
        "memory", "cpu" or "io"."""
        read_split = (read_bytes // 4, read_bytes - read_bytes // 4)
        write_split = (write_bytes // 2, write_bytes - write_bytes // 2)

        if self.version is CgroupVersion.V2:
            cgroup_dir = self.container_dir(container_id)
            cgroup_dir.mkdir(parents=True, exist_ok=True)
            if "memory" not in skip:
                _write(cgroup_dir / "memory.current", f"{memory}\n")
            if "cpu" not in skip:
                _write(
                    cgroup_dir / "cpu.stat",
                    f"usage_usec {(user_nanos + system_nanos) // 1000}\n"
                    f"user_usec {user_nanos // 1000}\n"
                    f"system_usec {system_nanos // 1000}\n"
                    "nr_periods 0\nnr_throttled 0\nthrottled_usec 0\n",
                )
            if "io" not in skip:
                _write(
                    cgroup_dir / "io.stat",
                    f"8:0 rbytes={read_split[0]} wbytes={write_split[0]} rios=3 wios=1 "
                    "dbytes=0 dios=0\n"
                    f"8:16 rbytes={read_split[1]} wbytes={write_split[1]} rios=5 wios=2 "
                    "dbytes=0 dios=0\n",
                )
            return

        for controller in self.V1_CONTROLLERS:
            self.container_dir(container_id, controller).mkdir(parents=True, exist_ok=True)
        if "memory" not in skip:
            _write(
                self.container_dir(container_id, "memory") / "memory.usage_in_bytes",
                f"{memory}\n",
            )
        if "cpu" not in skip:
            cpu_dir = self.container_dir(container_id, "cpuacct")
            _write(cpu_dir / "cpuacct.usage_user", f"{user_nanos}\n")
            _write(cpu_dir / "cpuacct.usage_sys", f"{system_nanos}\n")
        if "io" not in skip:
            _write(
                self.container_dir(container_id, "blkio") / "blkio.throttle.io_service_bytes",
                f"8:0 Read {read_split[0]}\n8:0 Write {write_split[0]}\n"
                f"8:0 Sync {read_split[0] + write_split[0]}\n8:0 Async 0\n8:0 Discard 0\n"
                f"8:0 Total {read_split[0] + write_split[0]}\n"
                f"8:16 Read {read_split[1]}\n8:16 Write {write_split[1]}\n"
                f"8:16 Total {read_split[1] + write_split[1]}\n"
                f"Total {read_bytes + write_bytes}\n",
            )

    def remove_container(self, container_id: str) -> None:
        controllers = ("memory",) if self.version is CgroupVersion.V2 else self.V1_CONTROLLERS
        for controller in controllers:
            shutil.rmtree(self.container_dir(container_id, controller), ignore_errors=True)


class ContainersDir:
    """Builds a Docker containers directory of config.v2.json descriptors."""

    def __init__(self, path: Path) -> None:
        self.path = path
        path.mkdir(parents=True, exist_ok=True)

    def add(
        self,
        container_id: str,
        name: str,
        labels: dict[str, str] | None = None,
        image: str = "nginx:latest",
    ) -> None:
        descriptor = {
            "ID": container_id,
            "Name": f"/{name}",
            "State": {"Running": True, "Pid": 1234},
            "Config": {"Hostname": container_id[:12], "Image": image, "Labels": labels},
        }
        self.add_raw(container_id, json.dumps(descriptor))

    def add_raw(self, container_id: str, content: str) -> None:
        _write(self.path / container_id / "config.v2.json", content)

    def remove(self, container_id: str) -> None:
        shutil.rmtree(self.path / container_id)


@pytest.fixture
def make_cgroup_tree(tmp_path: Path) -> Callable[..., CgroupTree]:
    """Factory for cgroup trees; each call gets its own root."""
    counter = iter(range(100))

    def _make(
        version: CgroupVersion = CgroupVersion.V2,
        driver: CgroupDriver = CgroupDriver.SYSTEMD,
    ) -> CgroupTree:
        return CgroupTree(tmp_path / f"cgroup{next(counter)}", version, driver)

    return _make


@pytest.fixture
def containers_dir(tmp_path: Path) -> ContainersDir:
    return ContainersDir(tmp_path / "containers")
