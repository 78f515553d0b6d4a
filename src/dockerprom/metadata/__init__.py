"""Metadata module - container metadata cache and label filtering."""

from __future__ import annotations

from dockerprom.metadata.cache import ContainerMetadata, MetadataCache, MetadataSnapshot
from dockerprom.metadata.labels import LabelFilter, apply_label_policy, sanitize_label_key

__all__ = [
    "ContainerMetadata",
    "LabelFilter",
    "MetadataCache",
    "MetadataSnapshot",
    "apply_label_policy",
    "sanitize_label_key",
]
