"""Core module - configuration, schemas and errors."""

from __future__ import annotations

from dockerprom.core.config import build_config, load_config
from dockerprom.core.errors import (
    CgroupRootUnavailableError,
    ConfigurationError,
    DockerpromError,
)
from dockerprom.core.schemas import (
    CgroupDriver,
    CgroupVersion,
    DockerContainerDescriptor,
    ExporterConfig,
    LabelMode,
    LabelPolicy,
)

__all__ = [
    "CgroupDriver",
    "CgroupRootUnavailableError",
    "CgroupVersion",
    "ConfigurationError",
    "DockerContainerDescriptor",
    "DockerpromError",
    "ExporterConfig",
    "LabelMode",
    "LabelPolicy",
    "build_config",
    "load_config",
]
