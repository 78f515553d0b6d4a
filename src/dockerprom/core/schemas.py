"""Pydantic schemas for dockerprom.

This module defines the configuration contract of the exporter, the label
policy derived from it, and the subset of Docker's per-container descriptor
(``config.v2.json``) that metadata is read from.
"""

from __future__ import annotations

import base64
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

from dockerprom.core.constants import (
    DEFAULT_CGROUPFS_DIR,
    DEFAULT_CONTAINERS_DIR,
    DEFAULT_LISTEN_ADDR,
    DEFAULT_MIN_METADATA_REFRESH_MS,
)
from dockerprom.core.errors import ConfigurationError


class CgroupVersion(str, Enum):
    """cgroup API version in use on the host."""

    V1 = "v1"  # One hierarchy per controller
    V2 = "v2"  # Unified hierarchy


class CgroupDriver(str, Enum):
    """Naming convention Docker uses for container cgroups."""

    CGROUPFS = "cgroupfs"  # docker/<id>
    SYSTEMD = "systemd"  # system.slice/docker-<id>.scope


class LabelMode(str, Enum):
    """How container labels are selected for metric labels."""

    NONE = "none"
    BLACKLIST = "blacklist"
    WHITELIST = "whitelist"


class LabelPolicy(BaseModel):
    """Include/exclude policy applied to container labels.

    Keys are given in the container label's native (unsanitized) form.
    """

    mode: LabelMode = Field(default=LabelMode.NONE)
    keys: frozenset[str] = Field(default_factory=frozenset)

    model_config = {"frozen": True}

    @classmethod
    def from_lists(
        cls, include: list[str] | None = None, exclude: list[str] | None = None
    ) -> LabelPolicy:
        """Build a policy from an include list XOR an exclude list.

        Raises:
            ConfigurationError: If both lists are non-empty
        """
        include = include or []
        exclude = exclude or []
        if include and exclude:
            raise ConfigurationError("Cannot pass both --exclude-labels and --include-labels.")
        if include:
            return cls(mode=LabelMode.WHITELIST, keys=frozenset(include))
        if exclude:
            return cls(mode=LabelMode.BLACKLIST, keys=frozenset(exclude))
        return cls()


def parse_listen_addr(value: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``) into its parts."""
    host, sep, port = value.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ValueError(f"Invalid listen address {value!r}, expected HOST:PORT")
    port_number = int(port)
    if not 0 < port_number < 65536:
        raise ValueError(f"Invalid port in listen address {value!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, port_number


def split_label_args(values: list[str] | str | None) -> list[str]:
    """Flatten repeated and comma-separated label arguments.

    Entries are trimmed, empty entries dropped and duplicates removed while
    preserving first-seen order.
    """
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    seen: dict[str, None] = {}
    for arg in values:
        for label in arg.split(","):
            label = label.strip()
            if label:
                seen.setdefault(label, None)
    return list(seen)


class ExporterConfig(BaseModel):
    """Top-level exporter configuration.

    Loaded from CLI options, environment variables or a YAML/JSON file.
    """

    cgroupfs_dir: Path = Field(default=DEFAULT_CGROUPFS_DIR, description="Path to the cgroupfs")
    containers_dir: Path = Field(
        default=DEFAULT_CONTAINERS_DIR, description="Path to the Docker containers directory"
    )
    listen_addr: str = Field(default=DEFAULT_LISTEN_ADDR, description="HOST:PORT to bind to")
    min_metadata_refresh_ms: int = Field(
        default=DEFAULT_MIN_METADATA_REFRESH_MS,
        ge=0,
        description="Minimum milliseconds between container metadata refreshes (0 = always)",
    )
    cgroup_version: CgroupVersion | None = Field(
        default=None, description="Override cgroup version detection"
    )
    docker_cgroup_driver: CgroupDriver | None = Field(
        default=None, description="Override Docker cgroup driver detection"
    )
    include_labels: list[str] = Field(default_factory=list)
    exclude_labels: list[str] = Field(default_factory=list)
    basicauth: str | None = Field(default=None, description="username:password, not encoded")

    @field_validator("include_labels", "exclude_labels", mode="before")
    @classmethod
    def split_labels(cls, v: list[str] | str | None) -> list[str]:
        """Accept repeated and comma-separated label names."""
        return split_label_args(v)

    @field_validator("listen_addr")
    @classmethod
    def validate_listen_addr(cls, v: str) -> str:
        parse_listen_addr(v)
        return v

    @field_validator("basicauth")
    @classmethod
    def validate_basicauth(cls, v: str | None) -> str | None:
        """Credentials must look like ``username:password``."""
        if v is not None and ":" not in v:
            raise ValueError("basicauth must be in the format username:password")
        return v

    @model_validator(mode="after")
    def check_label_lists(self) -> ExporterConfig:
        """Include and exclude lists are mutually exclusive."""
        if self.include_labels and self.exclude_labels:
            raise ValueError("Cannot pass both --exclude-labels and --include-labels.")
        return self

    @property
    def label_policy(self) -> LabelPolicy:
        return LabelPolicy.from_lists(self.include_labels, self.exclude_labels)

    @property
    def min_metadata_refresh_seconds(self) -> float:
        return self.min_metadata_refresh_ms / 1000

    @property
    def listen_host(self) -> str:
        return parse_listen_addr(self.listen_addr)[0]

    @property
    def listen_port(self) -> int:
        return parse_listen_addr(self.listen_addr)[1]

    @property
    def basicauth_header(self) -> str | None:
        """Expected ``Authorization`` header value, if auth is enabled."""
        if self.basicauth is None:
            return None
        return "Basic " + base64.b64encode(self.basicauth.encode("utf-8")).decode("ascii")


class DockerContainerConfig(BaseModel):
    """``Config`` section of a container descriptor."""

    image: str = Field(default="", alias="Image")
    labels: dict[str, str] = Field(default_factory=dict, alias="Labels")

    model_config = {"extra": "ignore", "populate_by_name": True}

    @field_validator("labels", mode="before")
    @classmethod
    def null_labels(cls, v: dict[str, str] | None) -> dict[str, str]:
        """Docker writes ``"Labels": null`` for containers without labels."""
        return v if v is not None else {}


class DockerContainerDescriptor(BaseModel):
    """The fields of ``config.v2.json`` that metadata is built from."""

    id: str = Field(..., min_length=1, alias="ID")
    name: str = Field(default="", alias="Name")
    config: DockerContainerConfig = Field(
        default_factory=DockerContainerConfig, alias="Config"
    )

    model_config = {"extra": "ignore", "populate_by_name": True}

    @field_validator("name")
    @classmethod
    def strip_leading_slash(cls, v: str) -> str:
        """Docker stores names as ``/name``."""
        return v[1:] if v.startswith("/") else v
