"""Exposition module - Prometheus text rendering."""

from __future__ import annotations

from dockerprom.exposition.renderer import METRICS, ExpositionRenderer, MetricDefinition

__all__ = ["ExpositionRenderer", "METRICS", "MetricDefinition"]
