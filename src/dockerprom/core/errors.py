"""Exception hierarchy for dockerprom."""

from __future__ import annotations


class DockerpromError(Exception):
    """Base class for errors raised by dockerprom."""


class ConfigurationError(DockerpromError, ValueError):
    """Invalid configuration. Fatal at startup."""


class CgroupRootUnavailableError(DockerpromError):
    """The cgroup root could not be listed during a scrape.

    Only the current request fails; the next scrape tries again.
    """
