"""Parsers for cgroup pseudo-files.

Each parser takes the text of one file and returns normalized integers. They
raise ``ValueError`` on malformed content; callers decide what an unreadable
or malformed file means for the sample.

Formats:
    memory.current, memory.usage_in_bytes, cpuacct.usage_*:
        123456
    cpu.stat:
        usage_usec 123456
        user_usec 100000
        system_usec 23456
    io.stat (one line per device):
        8:0 rbytes=12345 wbytes=67890 rios=100 wios=50 dbytes=0 dios=0
    blkio.throttle.io_service_bytes (v1, one line per device and op):
        8:0 Read 12345
        8:0 Write 67890
        8:0 Sync 100
        Total 80235
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

_IO_STAT_BYTES = re.compile(r"\b(rbytes|wbytes)=(\d+)")


def read_text(path: Path) -> str | None:
    """Read a pseudo-file, returning None if it is missing, unreadable or not text."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        # PermissionError, ENODEV on a vanished cgroup, etc.
        logger.debug(f"Could not read {path}: {e}")
        return None
    except UnicodeDecodeError as e:
        logger.warning(f"Could not decode {path}: {e}")
        return None


def parse_single_value(content: str) -> int:
    """Parse a file holding one integer."""
    return int(content.strip())


def parse_flat_keyed(content: str) -> dict[str, int]:
    """Parse ``key value`` lines (cpu.stat, memory.stat)."""
    result: dict[str, int] = {}
    for line in content.strip().split("\n"):
        parts = line.split()
        if len(parts) == 2:
            result[parts[0]] = int(parts[1])
    return result


def parse_io_stat(content: str) -> tuple[int, int]:
    """Sum ``rbytes``/``wbytes`` across all device lines of io.stat.

    Returns:
        Tuple of (read_bytes, write_bytes)
    """
    totals = {"rbytes": 0, "wbytes": 0}
    for line in content.strip().split("\n"):
        for match in _IO_STAT_BYTES.finditer(line):
            key, value = match.groups()
            totals[key] += int(value)
    return totals["rbytes"], totals["wbytes"]


def parse_blkio_service_bytes(content: str) -> tuple[int, int]:
    """Sum ``Read``/``Write`` lines across devices of a v1 io_service_bytes file.

    The trailing ``Total`` line and other operations (Sync, Async, Discard)
    are ignored.

    Returns:
        Tuple of (read_bytes, write_bytes)
    """
    read_bytes = 0
    write_bytes = 0
    for line in content.strip().split("\n"):
        parts = line.split()
        if len(parts) != 3:
            continue
        _device, op, value = parts
        if op == "Read":
            read_bytes += int(value)
        elif op == "Write":
            write_bytes += int(value)
    return read_bytes, write_bytes
