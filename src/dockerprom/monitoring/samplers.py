"""cgroup samplers for direct kernel metrics.

Two strategies read the same five counters from incompatible layouts and
normalize them to :class:`RawMetricSample` units (bytes, nanoseconds):

- v1: separate memory, cpuacct and blkio hierarchies
- v2: one unified directory per container

The Docker driver only changes where the container directory lives; the file
formats are the same for both drivers.
"""

from __future__ import annotations

import logging
from pathlib import Path

from dockerprom.core.constants import (
    NANOS_PER_MICRO,
    V1_BLKIO_CONTROLLER,
    V1_BLKIO_SERVICE_BYTES_FILE,
    V1_CPU_CONTROLLER,
    V1_CPU_SYSTEM_FILE,
    V1_CPU_USER_FILE,
    V1_MEMORY_CONTROLLER,
    V1_MEMORY_USAGE_FILE,
    V2_CPU_STAT_FILE,
    V2_IO_STAT_FILE,
    V2_MEMORY_CURRENT_FILE,
)
from dockerprom.core.schemas import CgroupVersion
from dockerprom.monitoring.base import (
    EMPTY_SAMPLE,
    BaseSampler,
    CgroupTopology,
    RawMetricSample,
    parent_dir_name,
)
from dockerprom.monitoring.parsing import (
    parse_blkio_service_bytes,
    parse_flat_keyed,
    parse_io_stat,
    parse_single_value,
)

logger = logging.getLogger(__name__)


class CgroupV1Sampler(BaseSampler):
    """Reads counters from the per-controller v1 hierarchies.

    Each controller is read independently: a missing controller only leaves
    its own fields absent.
    """

    def __init__(self, cgroup_root: Path, topology: CgroupTopology) -> None:
        super().__init__(cgroup_root, topology)
        parent = parent_dir_name(topology.driver)
        self._memory_parent = self._root / V1_MEMORY_CONTROLLER / parent
        self._cpu_parent = self._root / V1_CPU_CONTROLLER / parent
        self._blkio_parent = self._root / V1_BLKIO_CONTROLLER / parent

    def parent_dirs(self) -> list[Path]:
        return [self._memory_parent, self._cpu_parent, self._blkio_parent]

    def read(self, container_id: str) -> RawMetricSample:
        name = self.container_dir_name(container_id)
        memory_dir = self._memory_parent / name
        cpu_dir = self._cpu_parent / name
        blkio_dir = self._blkio_parent / name

        if not (memory_dir.is_dir() or cpu_dir.is_dir() or blkio_dir.is_dir()):
            logger.debug(f"cgroup for container {container_id[:12]} is gone")
            return EMPTY_SAMPLE

        io = self._read_value(blkio_dir / V1_BLKIO_SERVICE_BYTES_FILE, parse_blkio_service_bytes)
        return RawMetricSample(
            memory_bytes=self._read_value(memory_dir / V1_MEMORY_USAGE_FILE, parse_single_value),
            # cpuacct already reports nanoseconds
            user_cpu_nanos=self._read_value(cpu_dir / V1_CPU_USER_FILE, parse_single_value),
            system_cpu_nanos=self._read_value(cpu_dir / V1_CPU_SYSTEM_FILE, parse_single_value),
            io_read_bytes=io[0] if io is not None else None,
            io_write_bytes=io[1] if io is not None else None,
        )


class CgroupV2Sampler(BaseSampler):
    """Reads counters from the unified v2 hierarchy."""

    def __init__(self, cgroup_root: Path, topology: CgroupTopology) -> None:
        super().__init__(cgroup_root, topology)
        self._parent = self._root / parent_dir_name(topology.driver)

    def parent_dirs(self) -> list[Path]:
        return [self._parent]

    def read(self, container_id: str) -> RawMetricSample:
        cgroup_dir = self._parent / self.container_dir_name(container_id)
        if not cgroup_dir.is_dir():
            logger.debug(f"cgroup for container {container_id[:12]} is gone")
            return EMPTY_SAMPLE

        cpu_stat = self._read_value(cgroup_dir / V2_CPU_STAT_FILE, parse_flat_keyed) or {}
        io = self._read_value(cgroup_dir / V2_IO_STAT_FILE, parse_io_stat)
        return RawMetricSample(
            memory_bytes=self._read_value(cgroup_dir / V2_MEMORY_CURRENT_FILE, parse_single_value),
            user_cpu_nanos=_usec_to_nanos(cpu_stat.get("user_usec")),
            system_cpu_nanos=_usec_to_nanos(cpu_stat.get("system_usec")),
            io_read_bytes=io[0] if io is not None else None,
            io_write_bytes=io[1] if io is not None else None,
        )


def _usec_to_nanos(value: int | None) -> int | None:
    return value * NANOS_PER_MICRO if value is not None else None


SAMPLERS: dict[CgroupVersion, type[BaseSampler]] = {
    CgroupVersion.V1: CgroupV1Sampler,
    CgroupVersion.V2: CgroupV2Sampler,
}


def create_sampler(cgroup_root: Path | str, topology: CgroupTopology) -> BaseSampler:
    """Select the sampler for a topology, once per process."""
    return SAMPLERS[topology.version](Path(cgroup_root), topology)
