"""Base types for reading container metrics from the cgroup filesystem.

Every sampler implements :class:`BaseSampler` so the orchestrator can read a
container without knowing which cgroup layout is in effect.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, fields
from pathlib import Path
from typing import TypeVar

from dockerprom.core.constants import CGROUPFS_PARENT, SYSTEMD_PARENT
from dockerprom.core.schemas import CgroupDriver, CgroupVersion
from dockerprom.monitoring.parsing import read_text

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Container cgroup directory names per driver; group 1 is the container ID
CONTAINER_DIR_PATTERNS: dict[CgroupDriver, re.Pattern[str]] = {
    CgroupDriver.CGROUPFS: re.compile(r"^([0-9a-f]{64})$"),
    CgroupDriver.SYSTEMD: re.compile(r"^docker-([0-9a-f]{64})\.scope$"),
}


@dataclass(frozen=True)
class CgroupTopology:
    """cgroup version and Docker driver, fixed for the process lifetime."""

    version: CgroupVersion
    driver: CgroupDriver


@dataclass(frozen=True)
class TopologyDetection:
    """Result of topology detection.

    ``low_confidence`` is set when at least one dimension fell back to its
    default because probing was inconclusive.
    """

    topology: CgroupTopology
    low_confidence: bool = False


@dataclass(frozen=True)
class RawMetricSample:
    """One reading of a container's counters.

    Units are normalized regardless of cgroup version: bytes for memory and
    I/O, nanoseconds for CPU time. ``None`` means the controller file was
    missing or unreadable at sample time.
    """

    memory_bytes: int | None = None
    user_cpu_nanos: int | None = None
    system_cpu_nanos: int | None = None
    io_read_bytes: int | None = None
    io_write_bytes: int | None = None

    @property
    def is_empty(self) -> bool:
        """True when every field is absent (container gone mid-read)."""
        return all(getattr(self, f.name) is None for f in fields(self))


EMPTY_SAMPLE = RawMetricSample()


class BaseSampler(ABC):
    """Reads one container's sample for a given topology.

    Implementations:
    - CgroupV1Sampler: one hierarchy per controller
    - CgroupV2Sampler: unified hierarchy
    """

    def __init__(self, cgroup_root: Path, topology: CgroupTopology) -> None:
        self._root = Path(cgroup_root)
        self._topology = topology

    @property
    def topology(self) -> CgroupTopology:
        return self._topology

    @abstractmethod
    def read(self, container_id: str) -> RawMetricSample:
        """Read the current counters for a container.

        Args:
            container_id: Full 64-character Docker container ID

        Returns:
            RawMetricSample, fully absent if the container's cgroup is gone
        """

    @abstractmethod
    def parent_dirs(self) -> list[Path]:
        """Directories whose children are per-container cgroups."""

    def container_dir_name(self, container_id: str) -> str:
        """Name of a container's cgroup directory under its parent."""
        if self._topology.driver is CgroupDriver.SYSTEMD:
            return f"docker-{container_id}.scope"
        return container_id

    def list_container_ids(self) -> list[str]:
        """List IDs of containers that currently have a cgroup.

        A missing parent directory means no containers are running under it.

        Returns:
            Sorted, de-duplicated container IDs
        """
        pattern = CONTAINER_DIR_PATTERNS[self._topology.driver]
        ids: set[str] = set()
        for parent in self.parent_dirs():
            try:
                entries = list(parent.iterdir())
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Could not list {parent}: {e}")
                continue
            for entry in entries:
                match = pattern.match(entry.name)
                if match is None:
                    continue
                try:
                    is_dir = entry.is_dir()
                except OSError as e:
                    logger.warning(f"Could not stat {entry}: {e}")
                    continue
                if is_dir:
                    ids.add(match.group(1))
        return sorted(ids)

    def _read_value(self, path: Path, parser: Callable[[str], T]) -> T | None:
        """Read and parse one pseudo-file; None if missing, unreadable or malformed."""
        content = read_text(path)
        if content is None:
            return None
        try:
            return parser(content)
        except ValueError as e:
            logger.warning(f"Could not parse {path}: {e}")
            return None


def parent_dir_name(driver: CgroupDriver) -> str:
    """Directory Docker nests container cgroups under for a driver."""
    return SYSTEMD_PARENT if driver is CgroupDriver.SYSTEMD else CGROUPFS_PARENT
