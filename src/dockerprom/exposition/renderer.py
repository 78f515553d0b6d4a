"""Prometheus text exposition of container samples.

Metric families are emitted in a fixed declaration order, containers in the
order they were passed in, and no timestamps are attached, so rendering the
same input twice yields byte-identical output.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from prometheus_client import generate_latest
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric
from prometheus_client.registry import Collector, CollectorRegistry

from dockerprom.core.constants import NANOS_PER_SECOND
from dockerprom.metadata.cache import ContainerMetadata
from dockerprom.monitoring.base import RawMetricSample


@dataclass(frozen=True)
class MetricDefinition:
    """One exposed metric and the sample field it is read from."""

    name: str
    documentation: str
    kind: str  # "gauge" or "counter"
    field: str
    divisor: int = 1

    def family(self) -> Metric:
        if self.kind == "counter":
            return CounterMetricFamily(self.name, self.documentation)
        return GaugeMetricFamily(self.name, self.documentation)

    @property
    def sample_name(self) -> str:
        return f"{self.name}_total" if self.kind == "counter" else self.name

    def value(self, sample: RawMetricSample) -> float | None:
        raw = getattr(sample, self.field)
        if raw is None:
            return None
        return raw / self.divisor if self.divisor != 1 else raw


METRICS: tuple[MetricDefinition, ...] = (
    MetricDefinition(
        "container_memory_usage_bytes",
        "Memory used by the container, in bytes",
        "gauge",
        "memory_bytes",
    ),
    MetricDefinition(
        "container_cpu_user_seconds",
        "CPU seconds used by the container in userspace",
        "counter",
        "user_cpu_nanos",
        NANOS_PER_SECOND,
    ),
    MetricDefinition(
        "container_cpu_system_seconds",
        "CPU seconds used by the container in kernelspace",
        "counter",
        "system_cpu_nanos",
        NANOS_PER_SECOND,
    ),
    MetricDefinition(
        "container_blkio_read_bytes",
        "Bytes read from disk by the container",
        "counter",
        "io_read_bytes",
    ),
    MetricDefinition(
        "container_blkio_write_bytes",
        "Bytes written to disk by the container",
        "counter",
        "io_write_bytes",
    ),
)


def container_labels(metadata: ContainerMetadata) -> dict[str, str]:
    """Metric labels for a container.

    ``container_name`` is always set, empty for a container without metadata.
    ``container_image`` is only set when known.
    ``metadata.labels`` is expected to be filtered and sanitized already.
    """
    labels = {"container_id": metadata.id, "container_name": metadata.name}
    if metadata.image:
        labels["container_image"] = metadata.image
    for key, value in metadata.labels.items():
        labels.setdefault(key, str(value))
    return labels


class _SamplesCollector(Collector):
    """Yields the metric families for one render call."""

    def __init__(self, families: Sequence[Metric]) -> None:
        self._families = families

    def collect(self) -> Iterable[Metric]:
        return iter(self._families)


class ExpositionRenderer:
    """Serializes (metadata, sample) pairs into Prometheus text format."""

    def __init__(self, metrics: Sequence[MetricDefinition] = METRICS) -> None:
        self._metrics = metrics

    def build_families(
        self, samples: Sequence[tuple[ContainerMetadata, RawMetricSample]]
    ) -> list[Metric]:
        """Build one metric family per definition, in declaration order."""
        rows = [
            (container_labels(metadata), sample)
            for metadata, sample in samples
            if not sample.is_empty
        ]
        families = []
        for definition in self._metrics:
            family = definition.family()
            for labels, sample in rows:
                value = definition.value(sample)
                if value is None:
                    continue
                family.add_sample(definition.sample_name, labels, value)
            families.append(family)
        return families

    def render(self, samples: Sequence[tuple[ContainerMetadata, RawMetricSample]]) -> str:
        """Render samples to exposition text.

        Fully absent samples are skipped; absent fields emit no line.
        """
        registry = CollectorRegistry(auto_describe=False)
        registry.register(_SamplesCollector(self.build_families(samples)))
        return generate_latest(registry).decode("utf-8")

