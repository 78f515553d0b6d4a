"""Container label filtering and sanitization.

Labels are filtered on their raw Docker keys first, then every retained key
is sanitized into a valid metric label name. Keys are processed in sorted
order, so when two raw keys sanitize to the same name the one that sorts
last wins.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping

from dockerprom.core.schemas import LabelMode, LabelPolicy

logger = logging.getLogger(__name__)

_INVALID_CHARS = re.compile(r"[^A-Za-z0-9_]")

# Label names set by the exporter itself; custom labels never override them
RESERVED_LABELS = frozenset({"container_id", "container_name", "container_image"})


def sanitize_label_key(key: str) -> str:
    """Turn a Docker label key into a valid metric label name.

    >>> sanitize_label_key("com.docker.compose.project")
    'com_docker_compose_project'
    >>> sanitize_label_key("2fa")
    '_2fa'
    """
    sanitized = _INVALID_CHARS.sub("_", key)
    if not sanitized or sanitized[0].isdigit():
        sanitized = "_" + sanitized
    return sanitized


def select_labels(labels: Mapping[str, str], policy: LabelPolicy) -> dict[str, str]:
    """Apply the include/exclude policy to raw label keys."""
    if policy.mode is LabelMode.BLACKLIST:
        return {k: v for k, v in labels.items() if k not in policy.keys}
    if policy.mode is LabelMode.WHITELIST:
        return {k: v for k, v in labels.items() if k in policy.keys}
    return dict(labels)


def apply_label_policy(labels: Mapping[str, str], policy: LabelPolicy) -> dict[str, str]:
    """Filter labels by policy and sanitize the retained keys.

    Args:
        labels: Raw container labels
        policy: Include/exclude policy, keys in raw form

    Returns:
        Sanitized label names mapped to their values
    """
    result: dict[str, str] = {}
    for key, value in sorted(select_labels(labels, policy).items()):
        name = sanitize_label_key(key)
        if name in RESERVED_LABELS:
            logger.debug(f"Dropping label {key!r}, it clashes with a built-in label")
            continue
        if name in result:
            logger.debug(f"Labels sanitize to the same name {name!r}, keeping {key!r}")
        result[name] = value
    return result


class LabelFilter:
    """Applies one validated LabelPolicy to container labels."""

    def __init__(self, policy: LabelPolicy | None = None) -> None:
        self.policy = policy or LabelPolicy()

    def apply(self, labels: Mapping[str, str]) -> dict[str, str]:
        return apply_label_policy(labels, self.policy)
