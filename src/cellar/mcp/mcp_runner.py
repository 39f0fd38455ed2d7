"""
MCP (Model Context Protocol) runner for cellar.

This module exposes runner management and game launching as MCP tools using
the fastmcp framework. It reads a `cellar.toml` file from the workspace root
for cellar settings and the games it may launch.

Tools:
1. cellar_list_runners - installed Proton and DXVK runners
2. cellar_available_versions - versions published on a family's release feed
3. cellar_install_runner - download and install a runner version
4. cellar_compile_launch - the launch command of a game, without running it
5. cellar_launch_game - run a game and report how it exited

Every tool returns a JSON string with a "status" field.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

try:
    import tomllib
except ModuleNotFoundError:
    # Python < 3.11
    import tomli as tomllib

from fastmcp import FastMCP
from pydantic import ValidationError

from cellar.cellar_config import CellarConfig
from cellar.cellar_exceptions import CellarException
from cellar.cellar_logger import CellarLogger
from cellar.cellar_settings import CellarSettings
from cellar.launch import GameLauncher
from cellar.runner_manager import RunnerManager
from cellar.runner_models import GameConfig, RunnerFamily


CELLAR_TOML_SCHEMA = """
# Cellar configuration for the cellar MCP server

# Settings (all optional)
[cellar]
# base_directory = "~/.local/share/cellar"
# cache_max_age_seconds = 3600
# use_cache = true
# steam_path = "~/.steam/steam"
# scan_steam = true

# One table per game, keyed by the name used in tool calls
[games.example.game]
name = "Example Game"
executable = "/path/to/prefix/drive_c/Games/Example/example.exe"
wine_prefix = "/path/to/prefix"
proton_version = "9-1"

[games.example.launch]
# Steam style launch options, %command% is the game invocation
launch_options = "%command% -dx11"
gamemode = true

[games.example.gamescope]
enabled = false
"""

CONFIG_FILE_NAME = "cellar.toml"


@dataclass
class WorkspaceConfig:
    """Configuration loaded from cellar.toml."""

    settings: CellarConfig = field(default_factory=CellarConfig)
    games: Dict[str, GameConfig] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "WorkspaceConfig":
        """
        Create a WorkspaceConfig from a dictionary (loaded from TOML).

        Raises:
            CellarException: If a section has the wrong shape or a game is invalid
        """
        cellar_section = config_dict.get("cellar", {})
        if not isinstance(cellar_section, dict):
            raise CellarException("[cellar] must be a table")

        games_section = config_dict.get("games", {})
        if not isinstance(games_section, dict):
            raise CellarException("[games] must be a table")

        games = {}
        for name, game_dict in games_section.items():
            try:
                games[name] = GameConfig.from_dict(game_dict)
            except ValidationError as e:
                raise CellarException(f"Invalid configuration for game '{name}': {e}") from e

        return cls(settings=CellarConfig.from_dict(cellar_section), games=games)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_directory": self.settings.base_directory,
            "games": sorted(self.games),
        }


class MCPToolError(Exception):
    """Base exception for MCP tool errors."""

    pass


def _error(message: str) -> str:
    return json.dumps({"status": "error", "message": message})


def _parse_family(family: str) -> RunnerFamily:
    try:
        return RunnerFamily(family.lower())
    except ValueError:
        raise MCPToolError(f"Invalid runner family: {family}")


class MCPRunner:
    """
    MCP runner exposing cellar's runner management and launching as tools.

    If cellar.toml is missing at startup, every tool checks again when it is
    called, so the file can be created while the server is running.

    Example usage:
    ```python
    runner = MCPRunner("/path/to/workspace")
    server = runner.create_mcp_server()
    server.run()
    ```
    """

    def __init__(self, workspace_root: Optional[str] = None):
        """
        Args:
            workspace_root: Directory holding cellar.toml. If None, uses current directory.
        """
        self.workspace_root = workspace_root or os.getcwd()
        self.logger = CellarLogger()
        self.config: Optional[WorkspaceConfig] = None
        self._manager: Optional[RunnerManager] = None
        self._launcher: Optional[GameLauncher] = None

        self._ensure_configured()

    @property
    def config_path(self) -> str:
        return os.path.join(self.workspace_root, CONFIG_FILE_NAME)

    def _ensure_configured(self) -> bool:
        """
        Load cellar.toml unless it is already loaded.

        Returns:
            True if configured (either already or just loaded), False if not
        """
        if self.config is not None:
            return True

        if not os.path.exists(self.config_path):
            return False

        try:
            with open(self.config_path, "rb") as f:
                toml_dict = tomllib.load(f)
            self.config = WorkspaceConfig.from_dict(toml_dict)
        except (OSError, tomllib.TOMLDecodeError, CellarException) as e:
            self.logger.log(f"Failed to load {self.config_path}: {e}", logging.ERROR)
            return False

        self.logger.log(
            f"Loaded cellar configuration with games: {sorted(self.config.games)}",
            logging.INFO,
        )
        return True

    def get_configuration_error_message(self) -> str:
        return (
            "Cellar is not configured.\n\n"
            f"Please create a '{CONFIG_FILE_NAME}' file in your workspace root "
            f"with the following schema:\n\n{CELLAR_TOML_SCHEMA}"
        )

    @property
    def manager(self) -> RunnerManager:
        if self._manager is None:
            settings = CellarSettings(self.config.settings)
            settings.ensure_all_exist()
            self._manager = RunnerManager(settings, self.logger, self.config.settings)
        return self._manager

    @property
    def launcher(self) -> GameLauncher:
        if self._launcher is None:
            self._launcher = GameLauncher(self.manager.registry, self.logger)
        return self._launcher

    def get_game(self, name: str) -> GameConfig:
        if name not in self.config.games:
            available = ", ".join(sorted(self.config.games))
            raise MCPToolError(f"Game '{name}' is not configured. Available: {available or 'none'}")
        return self.config.games[name]

    # ------------------------------------------------------------------
    # Tool implementations
    # ------------------------------------------------------------------

    async def list_runners(self, family: Optional[str] = None) -> str:
        if not self._ensure_configured():
            return _error(self.get_configuration_error_message())
        try:
            runner_family = _parse_family(family) if family else None
            runners = await self.manager.list_runners(runner_family)
        except MCPToolError as e:
            return _error(str(e))
        except CellarException as e:
            return _error(f"Failed to list runners: {e}")
        return json.dumps({
            "status": "success",
            "runners": [r.model_dump(mode="json") for r in runners],
        })

    async def available_versions(self, family: str) -> str:
        if not self._ensure_configured():
            return _error(self.get_configuration_error_message())
        try:
            runner_family = _parse_family(family)
        except MCPToolError as e:
            return _error(str(e))
        try:
            versions = await self.manager.available_versions(runner_family)
        except CellarException as e:
            return _error(f"Failed to list available versions: {e}")
        return json.dumps({"status": "success", "family": runner_family.value, "versions": versions})

    async def install_runner(self, family: str, version: str) -> str:
        if not self._ensure_configured():
            return _error(self.get_configuration_error_message())
        try:
            runner_family = _parse_family(family)
        except MCPToolError as e:
            return _error(str(e))
        try:
            runner = await self.manager.install_runner(runner_family, version)
        except CellarException as e:
            return _error(f"Failed to install {runner_family.value} {version}: {e}")
        return json.dumps({"status": "success", "runner": runner.model_dump(mode="json")})

    async def compile_launch(self, game: str) -> str:
        if not self._ensure_configured():
            return _error(self.get_configuration_error_message())
        try:
            config = self.get_game(game)
        except MCPToolError as e:
            return _error(str(e))
        try:
            command = await self.launcher.compile(config)
        except CellarException as e:
            return _error(f"Failed to compile launch command for {game}: {e}")
        return json.dumps({
            "status": "success",
            "argv": command.argv,
            "environment": command.environment,
            "working_directory": command.working_directory,
        })

    async def launch_game(self, game: str) -> str:
        if not self._ensure_configured():
            return _error(self.get_configuration_error_message())
        try:
            config = self.get_game(game)
        except MCPToolError as e:
            return _error(str(e))
        try:
            result = await self.launcher.launch_game(config)
        except CellarException as e:
            return _error(f"Failed to launch {game}: {e}")
        except OSError as e:
            return _error(f"Failed to start {game}: {e}")
        return json.dumps({
            "status": "error" if result.failed else "success",
            "outcome": result.outcome.value,
            "return_code": result.return_code,
            "critical_errors": result.critical_errors,
        })

    # ------------------------------------------------------------------
    # fastmcp wiring
    # ------------------------------------------------------------------

    def create_mcp_server(self) -> FastMCP:
        """
        Create a fastmcp server with the cellar tools registered.
        """
        server = FastMCP("cellar-mcp")
        self._register_tools(server)
        return server

    def _register_tools(self, server: FastMCP) -> None:

        @server.tool()
        async def cellar_list_runners(family: Optional[str] = None) -> str:
            """List installed runners.

            Args:
                family: Optional runner family ('proton' or 'dxvk')
            """
            return await self.list_runners(family)

        @server.tool()
        async def cellar_available_versions(family: str) -> str:
            """List versions available for download, newest first.

            Args:
                family: Runner family ('proton' or 'dxvk')
            """
            return await self.available_versions(family)

        @server.tool()
        async def cellar_install_runner(family: str, version: str) -> str:
            """Download and install a runner.

            Args:
                family: Runner family ('proton' or 'dxvk')
                version: Version or release tag, e.g. '9-1' or 'GE-Proton9-1'
            """
            return await self.install_runner(family, version)

        @server.tool()
        async def cellar_compile_launch(game: str) -> str:
            """Show the command a game would be launched with, without running it.

            Args:
                game: Game name as configured in cellar.toml
            """
            return await self.compile_launch(game)

        @server.tool()
        async def cellar_launch_game(game: str) -> str:
            """Launch a game and wait for it to exit.

            Args:
                game: Game name as configured in cellar.toml
            """
            return await self.launch_game(game)


def main() -> None:
    MCPRunner().create_mcp_server().run()


__all__ = [
    "MCPRunner",
    "WorkspaceConfig",
    "MCPToolError",
    "CELLAR_TOML_SCHEMA",
    "main",
]
