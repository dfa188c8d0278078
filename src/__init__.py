# src/__init__.py — v1
"""marathon-cloud: submit mobile test runs and retrieve their artifacts."""

from marathon_cloud.version import __version__

__all__ = ["__version__"]
