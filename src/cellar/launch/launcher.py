"""
Game launching: validation, runner lookup, compilation and execution.
"""

import logging
from pathlib import Path
from typing import Optional

try:
    import tomllib
except ModuleNotFoundError:
    # Python < 3.11
    import tomli as tomllib

from pydantic import ValidationError

from cellar.cellar_exceptions import CellarException, InvalidGameSetup
from cellar.cellar_logger import CellarLogger
from cellar.cellar_settings import CellarSettings
from cellar.launch.command import CommandBuilder, CompiledCommand
from cellar.launch.executor import LaunchResult, ProcessExecutor
from cellar.runner_models import GameConfig, RunnerFamily
from cellar.runner_registry import RunnerRegistry


def load_game_config(path: Path) -> GameConfig:
    """
    Read a game's TOML file.

    Raises:
        CellarException: The file is missing, is not valid TOML, or does not
            describe a game
    """
    path = Path(path)
    if not path.is_file():
        raise CellarException(f"Game config not found: {path}")
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
        return GameConfig.from_dict(data)
    except (tomllib.TOMLDecodeError, ValidationError) as e:
        raise CellarException(f"Failed to parse game config {path}: {e}") from e


class GameLauncher:
    """
    Launches games configured by a GameConfig under a Proton runner.
    """

    def __init__(
        self,
        registry: RunnerRegistry,
        logger: CellarLogger,
        executor: Optional[ProcessExecutor] = None,
    ):
        self.registry = registry
        self.logger = logger
        self.executor = executor or ProcessExecutor(logger)

    def validate_launch_config(self, config: GameConfig) -> None:
        """
        Check that the executable and a usable wine prefix exist.

        A prefix without Proton's ``version`` file is accepted with a warning.

        Raises:
            InvalidGameSetup: The executable or prefix is missing or incomplete
        """
        game = config.game
        if not game.executable.exists():
            raise InvalidGameSetup(f"Game executable not found: {game.executable}")

        if not game.wine_prefix.exists():
            raise InvalidGameSetup(
                f"Wine prefix not found: {game.wine_prefix}. "
                f"Create it first with 'cellar prefix create'"
            )

        if not (game.wine_prefix / "drive_c" / "windows" / "system32").exists():
            raise InvalidGameSetup(f"Wine prefix appears to be incomplete: {game.wine_prefix}")

        if not (game.wine_prefix / "version").exists():
            self.logger.log(
                f"No Proton version file found in prefix {game.wine_prefix}. "
                f"This may not be a Proton-compatible prefix",
                logging.WARNING,
            )

    async def find_proton_installation(self, proton_version: str) -> Path:
        runner = await self.registry.find_installation(proton_version, RunnerFamily.PROTON)
        return runner.path

    async def compile(self, config: GameConfig) -> CompiledCommand:
        """
        Resolve the runner and compile the launch command without running it.
        """
        proton_path = await self.find_proton_installation(config.game.proton_version)
        command = CommandBuilder(config.to_launch_spec()).with_proton_path(proton_path).build()
        self.logger.log(f"Compiled launch command for {config.game.name}: {command.argv}", logging.INFO)
        return command

    async def launch_game(self, config: GameConfig) -> LaunchResult:
        """
        Validate, compile and run a game, waiting until it exits.

        Returns:
            The classified exit; call ``raise_for_outcome`` to turn a failed
            run into LaunchFailed
        """
        self.logger.log(
            f"Launching {config.game.name} ({config.game.executable}) "
            f"with Proton {config.game.proton_version}",
            logging.INFO,
        )
        self.validate_launch_config(config)
        command = await self.compile(config)
        return await self.executor.execute(command)

    async def launch_game_by_name(self, settings: CellarSettings, game_name: str) -> LaunchResult:
        config = load_game_config(settings.get_game_config_path(game_name))
        return await self.launch_game(config)
