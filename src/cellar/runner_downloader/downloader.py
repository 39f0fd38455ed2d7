"""
Runner downloader implementation.

Executes install plans: resolves the release asset, downloads it with size
verification, extracts it securely and checks the resulting install.
"""

import logging
import pathlib
from typing import Dict, Optional

import aiohttp

from cellar import runners as families
from cellar.cellar_config import CellarConfig
from cellar.cellar_exceptions import RunnerError
from cellar.cellar_logger import CellarLogger
from cellar.cellar_utils import FileUtils
from cellar.runner_config.config_manager import (
    InstallPlan,
    InstallStatus,
    RunnerConfigManager,
    RunnerState,
)
from cellar.runner_config.profiles import RunnerProfile
from cellar.runner_downloader.github import GitHubReleaseClient, SecureFetcher


class RunnerDownloader:
    """
    Downloads and installs runners.

    Executes install plans, logs progress, and updates runner states.
    """

    def __init__(
        self,
        config_manager: RunnerConfigManager,
        logger: CellarLogger,
        config: Optional[CellarConfig] = None,
        download_dir: Optional[pathlib.Path] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize the runner downloader.

        Args:
            config_manager: The RunnerConfigManager with install plans
            logger: Logger for progress and error messages
            config: User agent and API endpoint settings
            download_dir: Where archives are stored until extracted,
                defaults to "{runners_dir}/.downloads"
            session: HTTP session shared by all requests, one per request if None
        """
        self.config_manager = config_manager
        self.logger = logger
        self.config = config or CellarConfig()
        self.download_dir = pathlib.Path(
            download_dir or config_manager.runners_dir / ".downloads"
        )
        self.session = session

    def release_client(self, profile: RunnerProfile) -> GitHubReleaseClient:
        return GitHubReleaseClient(
            profile.repo_owner,
            profile.repo_name,
            self.logger,
            user_agent=self.config.user_agent,
            api_base_url=self.config.api_base_url,
            session=self.session,
        )

    def fetcher(self, profile: RunnerProfile) -> SecureFetcher:
        return SecureFetcher(
            self.download_dir,
            profile.max_download_size,
            self.logger,
            user_agent=self.config.user_agent,
            session=self.session,
        )

    async def install_all_pending(self) -> bool:
        """
        Install all pending runners, one after another.

        Returns:
            True if all installs succeeded, False if any failed
        """
        pending = self.config_manager.get_pending_installs()

        if not pending:
            self.logger.log("No pending installs", logging.INFO)
            return True

        self.logger.log(f"Starting install of {len(pending)} runners", logging.INFO)

        all_succeeded = True
        for plan in pending:
            if not await self.install_runner(plan):
                all_succeeded = False

        return all_succeeded

    async def install_runner(self, plan: InstallPlan) -> bool:
        """
        Install a single runner.

        Failures are logged and recorded on the plan (``plan.error``), never
        raised.

        Args:
            plan: The install plan to execute

        Returns:
            True if the install succeeded, False otherwise
        """
        profile = plan.profile
        dest_path = pathlib.Path(plan.destination_path)
        created_dest = False
        try:
            plan.status = InstallStatus.IN_PROGRESS

            if dest_path.is_dir() and families.has_install_marker(plan.family, dest_path):
                self.logger.log(f"{plan.plan_key} is already installed at {dest_path}", logging.INFO)
                self.config_manager.mark_install_completed(plan, success=True)
                return True

            asset = await self.release_client(profile).resolve_asset(
                plan.version, profile.tag_prefix, profile.asset_filter
            )
            archive_path = await self.fetcher(profile).fetch(asset)

            if dest_path.exists():
                self.logger.log(f"Removing incomplete install at {dest_path}", logging.WARNING)
                FileUtils.delete_directory(dest_path)
            created_dest = True

            await FileUtils.extract_archive_secure(
                self.logger,
                archive_path,
                dest_path,
                profile.max_files,
                profile.max_total_size,
            )
            FileUtils.hoist_single_root(dest_path)

            if not self._verify_install(plan):
                raise RunnerError(f"Install verification failed for {plan.plan_key}")

            self.config_manager.mark_install_completed(plan, success=True)
            self.logger.log(f"Successfully installed {plan.plan_key} to {dest_path}", logging.INFO)
            return True

        except Exception as e:
            self.logger.log(f"Failed to install {plan.plan_key}: {e}", logging.ERROR)
            if created_dest:
                self._remove_partial_install(dest_path)
            self.config_manager.mark_install_completed(plan, success=False, error=e)
            return False

    def _remove_partial_install(self, dest_path: pathlib.Path) -> None:
        try:
            if dest_path.is_dir():
                FileUtils.delete_directory(dest_path)
        except OSError as e:
            self.logger.log(f"Could not remove partial install {dest_path}: {e}", logging.WARNING)

    def _verify_install(self, plan: InstallPlan) -> bool:
        dest_path = pathlib.Path(plan.destination_path)

        if not dest_path.is_dir():
            self.logger.log(f"Install directory does not exist: {dest_path}", logging.WARNING)
            return False

        if not families.has_install_marker(plan.family, dest_path):
            self.logger.log(
                f"No {plan.family.value} install marker found in {dest_path}",
                logging.WARNING,
            )
            return False

        return True

    def get_installed_runners(self) -> Dict[str, RunnerState]:
        states = self.config_manager.get_runner_states()
        return {key: state for key, state in states.items() if state.is_installed()}

    def get_failed_runners(self) -> Dict[str, RunnerState]:
        states = self.config_manager.get_runner_states()
        return {
            key: state
            for key, state in states.items()
            if state.install_status == InstallStatus.FAILED
        }

    def get_install_summary(self) -> dict:
        """
        Get a summary of install results.

        Returns:
            Dictionary with counts of completed, failed, and pending installs
        """
        completed = len(self.get_installed_runners())
        failed = len(self.get_failed_runners())
        pending = len(self.config_manager.get_pending_installs())

        return {
            "completed": completed,
            "failed": failed,
            "pending": pending,
            "total": completed + failed + pending,
        }
