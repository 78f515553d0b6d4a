"""Scrape orchestration.

One :meth:`ContainerMetricsCollector.collect` call is one scrape: enumerate
the containers that have a cgroup right now, read each one's counters,
attach metadata and filtered labels, and render the result. The live cgroup
listing decides which containers exist; the metadata cache only describes
them.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path

from dockerprom.core.errors import CgroupRootUnavailableError
from dockerprom.core.schemas import ExporterConfig
from dockerprom.exposition.renderer import ExpositionRenderer
from dockerprom.metadata.cache import ContainerMetadata, MetadataCache
from dockerprom.metadata.labels import LabelFilter
from dockerprom.monitoring.base import BaseSampler, RawMetricSample, TopologyDetection
from dockerprom.monitoring.samplers import create_sampler
from dockerprom.monitoring.topology import detect_topology

logger = logging.getLogger(__name__)


class ContainerMetricsCollector:
    """Drives one collection pass per scrape.

    Safe to call from several threads at once; the metadata cache is the only
    shared mutable state.
    """

    def __init__(
        self,
        cgroup_root: Path | str,
        sampler: BaseSampler,
        cache: MetadataCache,
        label_filter: LabelFilter | None = None,
        renderer: ExpositionRenderer | None = None,
    ) -> None:
        self._cgroup_root = Path(cgroup_root)
        self.sampler = sampler
        self.cache = cache
        self.label_filter = label_filter or LabelFilter()
        self.renderer = renderer or ExpositionRenderer()

    @classmethod
    def from_config(
        cls, config: ExporterConfig, detection: TopologyDetection | None = None
    ) -> ContainerMetricsCollector:
        """Wire up a collector from validated configuration.

        Args:
            config: Exporter configuration
            detection: Previously detected topology; detected now if omitted
        """
        if detection is None:
            detection = detect_topology(
                config.cgroupfs_dir, config.cgroup_version, config.docker_cgroup_driver
            )
        return cls(
            cgroup_root=config.cgroupfs_dir,
            sampler=create_sampler(config.cgroupfs_dir, detection.topology),
            cache=MetadataCache(config.containers_dir, config.min_metadata_refresh_seconds),
            label_filter=LabelFilter(config.label_policy),
        )

    def _check_root(self) -> None:
        try:
            next(self._cgroup_root.iterdir(), None)
        except OSError as e:
            raise CgroupRootUnavailableError(
                f"Unable to read cgroupfs directory {self._cgroup_root}: {e}"
            ) from e

    def read_samples(self) -> list[tuple[str, RawMetricSample]]:
        """Read every container currently present, skipping ones that vanished.

        Raises:
            CgroupRootUnavailableError: If the cgroup root cannot be listed
        """
        self._check_root()
        container_ids = self.sampler.list_container_ids()
        logger.debug(f"Found {len(container_ids)} container cgroups")

        samples: list[tuple[str, RawMetricSample]] = []
        for container_id in container_ids:
            try:
                sample = self.sampler.read(container_id)
            except Exception as e:
                logger.warning(f"Failed reading metrics for container {container_id[:12]}: {e}")
                continue
            if sample.is_empty:
                logger.debug(f"Container {container_id[:12]} disappeared during the scrape")
                continue
            samples.append((container_id, sample))
        return samples

    def describe(self, container_id: str) -> ContainerMetadata:
        """Metadata with filtered labels, or an ID-only placeholder if unknown."""
        metadata = self.cache.lookup(container_id)
        if metadata is None:
            logger.warning(f"Couldn't find details for container ID {container_id}")
            return ContainerMetadata(id=container_id, name="")
        return replace(metadata, labels=self.label_filter.apply(metadata.labels))

    def collect_samples(self) -> list[tuple[ContainerMetadata, RawMetricSample]]:
        """Run one pass up to (but not including) rendering."""
        samples = self.read_samples()
        unknown = any(self.cache.lookup(container_id) is None for container_id, _ in samples)
        self.cache.ensure_fresh(unknown)
        return [(self.describe(container_id), sample) for container_id, sample in samples]

    def collect(self) -> str:
        """Run one scrape and return the exposition text.

        Raises:
            CgroupRootUnavailableError: If the cgroup root cannot be listed
        """
        return self.renderer.render(self.collect_samples())
