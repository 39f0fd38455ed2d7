"""
High level runner management: listing, installing and removing runners.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

import aiohttp

from cellar import runners as families
from cellar.cellar_config import CellarConfig
from cellar.cellar_exceptions import CellarException, RunnerError
from cellar.cellar_logger import CellarLogger
from cellar.cellar_settings import CellarSettings, expand_tilde
from cellar.cellar_utils import FileUtils
from cellar.runner_config import RunnerConfigManager
from cellar.runner_downloader import RunnerDownloader
from cellar.runner_models import Runner, RunnerFamily
from cellar.runner_registry import RunnerRegistry, sort_versions


class RunnerManager:
    """
    Ties the registry and the downloader together for one cellar directory.
    """

    def __init__(
        self,
        settings: CellarSettings,
        logger: CellarLogger,
        config: Optional[CellarConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.settings = settings
        self.logger = logger
        self.config = config or CellarConfig()

        self.config_manager = RunnerConfigManager(settings.runners_dir)
        self.registry = RunnerRegistry(
            settings.runners_dir,
            logger,
            cache_path=settings.get_runner_cache_path(),
            steam_path=expand_tilde(self.config.steam_path) if self.config.steam_path else None,
            scan_steam=self.config.scan_steam,
            cache_max_age_seconds=self.config.cache_max_age_seconds,
        )
        download_dir = (
            expand_tilde(self.config.download_directory)
            if self.config.download_directory
            else settings.cache_dir / "downloads"
        )
        self.downloader = RunnerDownloader(
            self.config_manager, logger, self.config, download_dir=download_dir, session=session
        )

    async def list_runners(self, family: Optional[RunnerFamily] = None) -> List[Runner]:
        return await self.registry.get_runners(family, use_cache=self.config.use_cache)

    async def available_versions(self, family: RunnerFamily) -> List[str]:
        """
        Versions published on the family's release feed, newest first.

        DXVK tags are listed without their leading ``v``.
        """
        profile = self.config_manager.get_profile(family)
        tags = await self.downloader.release_client(profile).list_releases()
        return sort_versions(profile.display_version(tag) for tag in tags)

    async def latest_available(self, family: RunnerFamily) -> Optional[str]:
        versions = await self.available_versions(family)
        return versions[0] if versions else None

    async def install_runner(self, family: RunnerFamily, version: str) -> Runner:
        """
        Download and install a runner version.

        Raises:
            CellarException: The typed error that made the install fail
        """
        family = RunnerFamily(family)
        plan = self.config_manager.create_install_plan(family, version)
        if not await self.downloader.install_runner(plan):
            if isinstance(plan.error, CellarException):
                raise plan.error
            raise RunnerError(plan.error_message or f"Failed to install {plan.plan_key}") from plan.error

        await self.registry.refresh(force=True)
        dest = Path(plan.destination_path)
        return Runner(
            name=families.display_name(family, dest.name),
            version=families.extract_version(family, dest.name),
            path=dest,
            runner_type=family,
            installed=True,
        )

    def is_requested_version(self, runner: Runner, family: RunnerFamily, version: str) -> bool:
        """
        True when ``runner`` is exactly ``version``, given with or without
        the tag prefix. Name substrings do not count, so 9-10 is not 9-1.
        """
        profile = self.config_manager.get_profile(family)
        if runner.path.name == profile.install_dir_name(version):
            return True
        return runner.version == families.extract_version(family, profile.make_tag(version))

    async def ensure_runner(self, family: RunnerFamily, version: str) -> Runner:
        """
        The installed runner for exactly ``version``, installing it on a miss.
        """
        family = RunnerFamily(family)
        for runner in await self.list_runners(family):
            if self.is_requested_version(runner, family, version):
                return runner

        self.logger.log(f"{family.value} {version} not installed, installing", logging.INFO)
        return await self.install_runner(family, version)

    async def delete_runner(self, runner_path: Path) -> None:
        """
        Remove a runner installed under the managed runners directory.

        Raises:
            RunnerError: The path does not exist, is not a directory, or is
                not a managed install
        """
        runner_path = Path(runner_path)
        if not runner_path.exists():
            raise RunnerError(f"Runner path does not exist: {runner_path}")
        if not runner_path.is_dir():
            raise RunnerError(f"Runner path is not a directory: {runner_path}")

        managed_root = os.path.realpath(self.settings.runners_dir)
        real_path = os.path.realpath(runner_path)
        if real_path == managed_root or os.path.commonpath([managed_root, real_path]) != managed_root:
            raise RunnerError(f"Refusing to delete {runner_path}: not a managed runner")

        FileUtils.delete_directory(runner_path)
        self.logger.log(f"Deleted runner at {runner_path}", logging.INFO)
        await self.registry.refresh(force=True)
