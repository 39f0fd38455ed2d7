"""
Launch command compilation and game execution.
"""

from .command import CommandBuilder, CompiledCommand, compile_launch
from .executor import LaunchOutcome, LaunchResult, ProcessExecutor
from .launcher import GameLauncher, load_game_config

__all__ = [
    "CommandBuilder",
    "CompiledCommand",
    "compile_launch",
    "LaunchOutcome",
    "LaunchResult",
    "ProcessExecutor",
    "GameLauncher",
    "load_game_config",
]
