"""
Runner data models.

This package provides Pydantic data models for the GitHub release API,
installed runners and their cache, and the launch configuration of a game.
"""

from .releases import GitHubAsset, GitHubRelease
from .runners import Runner, RunnerCache, RunnerFamily
from .launch_spec import (
    LaunchSpec,
    WrapperFlags,
    CompositorConfig,
    RuntimeFlags,
    GameConfig,
    GameInfo,
    LaunchConfig,
    WineConfig,
    DxvkConfig,
    GamescopeConfig,
    MangohudConfig,
)

__all__ = [
    # Releases
    "GitHubAsset",
    "GitHubRelease",
    # Runners
    "Runner",
    "RunnerCache",
    "RunnerFamily",
    # Launch
    "LaunchSpec",
    "WrapperFlags",
    "CompositorConfig",
    "RuntimeFlags",
    "GameConfig",
    "GameInfo",
    "LaunchConfig",
    "WineConfig",
    "DxvkConfig",
    "GamescopeConfig",
    "MangohudConfig",
]
