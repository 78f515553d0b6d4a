"""Shared constants for dockerprom.

Pseudo-file names, directory conventions and defaults used across modules.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_CGROUPFS_DIR = Path("/sys/fs/cgroup/")
DEFAULT_CONTAINERS_DIR = Path("/var/lib/docker/containers/")
DEFAULT_LISTEN_ADDR = "127.0.0.1:3000"
DEFAULT_MIN_METADATA_REFRESH_MS = 2000

# Unified hierarchy marker at the cgroup root
UNIFIED_MARKER_FILE = "cgroup.controllers"

# Per-container descriptor written by dockerd
CONTAINER_CONFIG_FILE = "config.v2.json"

# cgroup v1 controllers, one hierarchy each
V1_MEMORY_CONTROLLER = "memory"
V1_CPU_CONTROLLER = "cpuacct"
V1_BLKIO_CONTROLLER = "blkio"

V1_MEMORY_USAGE_FILE = "memory.usage_in_bytes"
V1_CPU_USER_FILE = "cpuacct.usage_user"
V1_CPU_SYSTEM_FILE = "cpuacct.usage_sys"
V1_BLKIO_SERVICE_BYTES_FILE = "blkio.throttle.io_service_bytes"

# cgroup v2 unified files
V2_MEMORY_CURRENT_FILE = "memory.current"
V2_CPU_STAT_FILE = "cpu.stat"
V2_IO_STAT_FILE = "io.stat"

# Parent directories Docker creates per driver
CGROUPFS_PARENT = "docker"
SYSTEMD_PARENT = "system.slice"

NANOS_PER_MICRO = 1000
NANOS_PER_SECOND = 1_000_000_000
