"""
Installed runner discovery.

This package handles:
1. Scanning the managed install directory and Steam's library for runners
2. Normalizing version tokens and ordering versions
3. Caching scan results on disk with a freshness window
"""

from .registry import (
    RunnerRegistry,
    find_runner,
    latest_runner,
    sort_versions,
    version_sort_key,
)

__all__ = [
    "RunnerRegistry",
    "find_runner",
    "latest_runner",
    "sort_versions",
    "version_sort_key",
]
