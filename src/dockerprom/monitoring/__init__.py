"""Monitoring module - cgroup topology detection and metric sampling.

Provides:
- TopologyDetector: works out cgroup version and Docker driver
- CgroupV1Sampler / CgroupV2Sampler: per-layout counter readers
"""

from __future__ import annotations

from dockerprom.monitoring.base import (
    BaseSampler,
    CgroupTopology,
    RawMetricSample,
    TopologyDetection,
)
from dockerprom.monitoring.samplers import CgroupV1Sampler, CgroupV2Sampler, create_sampler
from dockerprom.monitoring.topology import TopologyDetector, detect_topology

__all__ = [
    "BaseSampler",
    "CgroupTopology",
    "CgroupV1Sampler",
    "CgroupV2Sampler",
    "RawMetricSample",
    "TopologyDetection",
    "TopologyDetector",
    "create_sampler",
    "detect_topology",
]
