"""cgroup topology detection.

Works out which cgroup version and Docker cgroup driver are in effect by
inspecting the cgroup filesystem. Detection is an ordered chain of probes per
dimension: each probe returns a definite answer or ``None`` (inconclusive),
the first definite answer wins, and an all-inconclusive chain falls back to a
documented default with the result flagged as low confidence.

Defaults: cgroup v1 and the cgroupfs driver.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from enum import Enum
from pathlib import Path
from typing import TypeVar

from dockerprom.core.constants import (
    CGROUPFS_PARENT,
    SYSTEMD_PARENT,
    UNIFIED_MARKER_FILE,
    V1_MEMORY_CONTROLLER,
)
from dockerprom.core.schemas import CgroupDriver, CgroupVersion
from dockerprom.monitoring.base import CgroupTopology, TopologyDetection

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Enum)
Probe = Callable[[Path], T | None]

DEFAULT_VERSION = CgroupVersion.V1
DEFAULT_DRIVER = CgroupDriver.CGROUPFS

SYSTEMD_SCOPE_PATTERN = re.compile(r"^docker-[0-9a-f]{64}\.scope$")


# ---------------------------------------------------------------------------
# Version probes (run against the cgroup root)
# ---------------------------------------------------------------------------


def probe_unified_marker(root: Path) -> CgroupVersion | None:
    """The unified hierarchy exposes cgroup.controllers at its root."""
    if (root / UNIFIED_MARKER_FILE).is_file():
        return CgroupVersion.V2
    return None


def probe_v1_controllers(root: Path) -> CgroupVersion | None:
    """v1 mounts one directory per controller, memory among them."""
    if (root / V1_MEMORY_CONTROLLER).is_dir():
        return CgroupVersion.V1
    return None


VERSION_PROBES: tuple[Probe[CgroupVersion], ...] = (
    probe_unified_marker,
    probe_v1_controllers,
)


# ---------------------------------------------------------------------------
# Driver probes (run against the directory that holds container parents)
# ---------------------------------------------------------------------------


def probe_cgroupfs_parent(controller_dir: Path) -> CgroupDriver | None:
    """The cgroupfs driver creates a flat docker/<id> tree."""
    if (controller_dir / CGROUPFS_PARENT).is_dir():
        return CgroupDriver.CGROUPFS
    return None


def probe_systemd_scopes(controller_dir: Path) -> CgroupDriver | None:
    """The systemd driver creates system.slice/docker-<id>.scope units."""
    system_slice = controller_dir / SYSTEMD_PARENT
    if not system_slice.is_dir():
        return None
    for child in system_slice.iterdir():
        if SYSTEMD_SCOPE_PATTERN.match(child.name):
            return CgroupDriver.SYSTEMD
    return None


DRIVER_PROBES: tuple[Probe[CgroupDriver], ...] = (
    probe_cgroupfs_parent,
    probe_systemd_scopes,
)


def run_probes(probes: Sequence[Probe[T]], path: Path) -> T | None:
    """Return the first definite probe result, or None if all are inconclusive.

    Filesystem errors make a probe inconclusive rather than failing detection.
    """
    for probe in probes:
        try:
            result = probe(path)
        except OSError as e:
            logger.debug(f"Probe {probe.__name__} failed on {path}: {e}")
            continue
        if result is not None:
            logger.debug(f"Probe {probe.__name__} on {path}: {result.value}")
            return result
    return None


def driver_probe_dir(cgroup_root: Path, version: CgroupVersion) -> Path:
    """Directory whose entries reveal the driver naming convention."""
    if version is CgroupVersion.V1:
        return cgroup_root / V1_MEMORY_CONTROLLER
    return cgroup_root


class TopologyDetector:
    """Determines the cgroup topology once, honoring overrides.

    Detection is read-only and never raises for missing or unreadable paths.
    """

    def __init__(
        self,
        cgroup_root: Path | str,
        version_override: CgroupVersion | None = None,
        driver_override: CgroupDriver | None = None,
    ) -> None:
        self._root = Path(cgroup_root)
        self._version_override = version_override
        self._driver_override = driver_override

    def detect(self) -> TopologyDetection:
        """Detect the topology.

        Returns:
            TopologyDetection with the topology and a low-confidence flag
        """
        if self._version_override is not None and self._driver_override is not None:
            logger.debug("cgroup version and driver both overridden, skipping detection")
            return TopologyDetection(
                topology=CgroupTopology(self._version_override, self._driver_override)
            )

        low_confidence = False

        version = self._resolve(
            "cgroup version",
            run_probes(VERSION_PROBES, self._root),
            self._version_override,
            DEFAULT_VERSION,
        )
        if version is None:
            version = DEFAULT_VERSION
            low_confidence = True

        driver = self._resolve(
            "Docker cgroup driver",
            run_probes(DRIVER_PROBES, driver_probe_dir(self._root, version)),
            self._driver_override,
            DEFAULT_DRIVER,
        )
        if driver is None:
            driver = DEFAULT_DRIVER
            low_confidence = True

        return TopologyDetection(
            topology=CgroupTopology(version, driver), low_confidence=low_confidence
        )

    @staticmethod
    def _resolve(what: str, guess: T | None, override: T | None, default: T) -> T | None:
        """Combine a probe result with an override; None means fall back."""
        if guess is None:
            if override is None:
                logger.debug(f"Could not detect {what}, defaulting to {default.value}")
            return override
        logger.debug(f"Autodetected {what} {guess.value}.")
        if override is not None:
            if override != guess:
                logger.warning(
                    f"It looks like this system is using {what} {guess.value}, "
                    f"but this has been overridden to {override.value}."
                )
            return override
        return guess


def detect_topology(
    cgroup_root: Path | str,
    version_override: CgroupVersion | None = None,
    driver_override: CgroupDriver | None = None,
) -> TopologyDetection:
    """Detect the cgroup topology of ``cgroup_root``."""
    return TopologyDetector(cgroup_root, version_override, driver_override).detect()
