"""Container metadata cache.

Maps container IDs to the name, image and labels found in Docker's
per-container ``config.v2.json`` descriptors. The cache holds one immutable
snapshot; a rescan builds a complete new snapshot and publishes it with a
single reference assignment, so concurrent readers see either the old or the
new map and never a partially built one.

Rescans are rate limited by ``min_refresh_interval`` and single-flight: a
trigger that waited on an in-flight rebuild accepts its result instead of
starting another.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from pydantic import ValidationError

from dockerprom.core.constants import CONTAINER_CONFIG_FILE
from dockerprom.core.schemas import DockerContainerDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContainerMetadata:
    """Descriptive metadata for one container, snapshotted at scan time."""

    id: str
    name: str
    labels: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    image: str = ""


@dataclass(frozen=True)
class MetadataSnapshot:
    """A complete container ID -> metadata map and when it was built."""

    entries: Mapping[str, ContainerMetadata]
    built_at: float

    def __len__(self) -> int:
        return len(self.entries)


EMPTY_SNAPSHOT = MetadataSnapshot(entries=MappingProxyType({}), built_at=float("-inf"))


def load_container_metadata(config_path: Path) -> ContainerMetadata:
    """Read one container descriptor.

    Raises:
        OSError: If the file cannot be read
        pydantic.ValidationError: If the file is not valid JSON or lacks an ID
    """
    descriptor = DockerContainerDescriptor.model_validate_json(config_path.read_bytes())
    return ContainerMetadata(
        id=descriptor.id,
        name=descriptor.name,
        labels=MappingProxyType(dict(descriptor.config.labels)),
        image=descriptor.config.image,
    )


def scan_containers_dir(containers_dir: Path) -> dict[str, ContainerMetadata]:
    """Build a fresh metadata map from every container descriptor.

    A descriptor that cannot be read or parsed only drops that container.

    Raises:
        OSError: If the containers directory itself cannot be listed
    """
    entries: dict[str, ContainerMetadata] = {}
    for container_dir in sorted(containers_dir.iterdir()):
        if not container_dir.is_dir():
            continue
        config_path = container_dir / CONTAINER_CONFIG_FILE
        try:
            metadata = load_container_metadata(config_path)
        except (OSError, ValidationError) as e:
            logger.error(
                f"Container {CONTAINER_CONFIG_FILE} parse error in {container_dir.name}: {e}"
            )
            continue
        entries[metadata.id] = metadata
    return entries


class MetadataCache:
    """Rate-limited, single-flight cache of container metadata.

    Args:
        containers_dir: Docker containers directory
        min_refresh_interval: Minimum seconds between rescans (0 = no limit)
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        containers_dir: Path | str,
        min_refresh_interval: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._containers_dir = Path(containers_dir)
        self._min_refresh_interval = max(0.0, min_refresh_interval)
        self._clock = clock
        self._snapshot = EMPTY_SNAPSHOT
        self._last_attempt = float("-inf")
        self._rebuild_lock = threading.Lock()
        self.rescan_count = 0

    @property
    def snapshot(self) -> MetadataSnapshot:
        return self._snapshot

    def lookup(self, container_id: str) -> ContainerMetadata | None:
        """Look up a container in the current snapshot. No side effects."""
        return self._snapshot.entries.get(container_id)

    def ensure_fresh(self, unknown_ids_present: bool) -> bool:
        """Rescan if unknown IDs were seen and the rate limit allows it.

        Returns:
            True if this call performed a rescan
        """
        if not unknown_ids_present or not self._refresh_due():
            return False

        observed = self._snapshot
        with self._rebuild_lock:
            if self._snapshot is not observed:
                # Another trigger published a snapshot while we waited
                return False
            if not self._refresh_due():
                return False
            self._rebuild()
            return True

    def refresh(self) -> MetadataSnapshot:
        """Force a rescan regardless of the rate limit."""
        with self._rebuild_lock:
            self._rebuild()
        return self._snapshot

    def _refresh_due(self) -> bool:
        return self._clock() - self._last_attempt >= self._min_refresh_interval

    def _rebuild(self) -> None:
        """Scan the containers directory and publish a new snapshot.

        Must be called with the rebuild lock held.
        """
        started = self._clock()
        self._last_attempt = started
        logger.debug("Refreshing container metadata.")
        try:
            entries = scan_containers_dir(self._containers_dir)
        except OSError as e:
            logger.error(f"Couldn't read containers directory {self._containers_dir}: {e}")
            return

        self._snapshot = MetadataSnapshot(entries=MappingProxyType(entries), built_at=started)
        self.rescan_count += 1
        logger.info(f"Refreshed container metadata, {len(entries)} containers present.")
