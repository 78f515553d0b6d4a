"""dockerprom - Prometheus exporter for Docker container metrics read from cgroups."""

from __future__ import annotations

from dockerprom.collector import ContainerMetricsCollector
from dockerprom.core.schemas import CgroupDriver, CgroupVersion, ExporterConfig, LabelPolicy
from dockerprom.exposition.renderer import ExpositionRenderer
from dockerprom.metadata.cache import ContainerMetadata, MetadataCache
from dockerprom.metadata.labels import LabelFilter
from dockerprom.monitoring.base import CgroupTopology, RawMetricSample
from dockerprom.monitoring.topology import TopologyDetector

__version__ = "0.1.0"

__all__ = [
    "CgroupDriver",
    "CgroupTopology",
    "CgroupVersion",
    "ContainerMetadata",
    "ContainerMetricsCollector",
    "ExporterConfig",
    "ExpositionRenderer",
    "LabelFilter",
    "LabelPolicy",
    "MetadataCache",
    "RawMetricSample",
    "TopologyDetector",
    "__version__",
]
