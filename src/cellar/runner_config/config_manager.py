"""
Runner install configuration manager.

Turns "install runner family F at version V" requests into install plans that
record where the runner goes and how far the install got.
"""

from pathlib import Path
from typing import Dict, List, Optional

from cellar.runner_config.profiles import PROFILES, RunnerProfile
from cellar.runner_models import RunnerFamily


class InstallStatus:
    """Enumeration of install statuses."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class InstallPlan:
    """
    A plan to download and install one runner version.

    Captures all information needed to resolve, fetch and extract the runner.
    """

    def __init__(
            self,
            plan_key: str,
            profile: RunnerProfile,
            version: str,
            destination_path: Path,
            status: str = InstallStatus.PENDING,
    ):
        """
        Initialize an install plan.

        Args:
            plan_key: Unique key for the plan, "{family}.{tag}"
            profile: Profile of the runner family being installed
            version: Requested version, with or without the tag prefix
            destination_path: Directory the runner is extracted into
            status: Current install status
        """
        self.plan_key = plan_key
        self.profile = profile
        self.version = version
        self.tag = profile.make_tag(version)
        self.destination_path = destination_path
        self.status = status
        self.error: Optional[Exception] = None
        self.error_message: Optional[str] = None

    @property
    def family(self) -> RunnerFamily:
        return self.profile.family

    def __repr__(self) -> str:
        return (
            f"InstallPlan(key={self.plan_key}, "
            f"status={self.status}, tag={self.tag})"
        )


class RunnerState:
    """
    Current state of a requested runner install.
    """

    def __init__(
            self,
            plan_key: str,
            install_status: str,
            installed_path: Optional[Path] = None,
            error_message: Optional[str] = None,
    ):
        self.plan_key = plan_key
        self.install_status = install_status
        self.installed_path = installed_path
        self.error_message = error_message

    def is_installed(self) -> bool:
        """Check if the runner has been successfully installed."""
        return self.install_status == InstallStatus.COMPLETED

    def __repr__(self) -> str:
        return (
            f"RunnerState(key={self.plan_key}, "
            f"status={self.install_status}, path={self.installed_path})"
        )


class RunnerConfigManager:
    """
    Manages runner install requests and their outcomes.

    Resolves the destination directory of each request from the family's
    profile and tracks plans until the downloader marks them done.
    """

    def __init__(
        self,
        runners_dir: Path,
        profiles: Optional[Dict[RunnerFamily, RunnerProfile]] = None,
    ):
        """
        Initialize the runner config manager.

        Args:
            runners_dir: Managed install root; runners go to {runners_dir}/{family}/{tag}
            profiles: Profiles per family, defaults to the built-in ones
        """
        self.runners_dir = Path(runners_dir)
        self.profiles = profiles if profiles is not None else PROFILES
        self.install_plans: Dict[str, InstallPlan] = {}
        self.runner_states: Dict[str, RunnerState] = {}

    def get_profile(self, family: RunnerFamily) -> RunnerProfile:
        return self.profiles[RunnerFamily(family)]

    def create_install_plan(self, family: RunnerFamily, version: str) -> InstallPlan:
        """
        Create (or return the existing) install plan for a runner version.

        Args:
            family: Runner family to install
            version: Version to install, e.g. "9-1" or "GE-Proton9-1"

        Returns:
            The InstallPlan registered under "{family}.{tag}"
        """
        profile = self.get_profile(family)
        tag = profile.make_tag(version)
        plan_key = f"{profile.family.value}.{tag}"

        existing = self.install_plans.get(plan_key)
        if existing is not None and existing.status != InstallStatus.FAILED:
            return existing

        plan = InstallPlan(
            plan_key=plan_key,
            profile=profile,
            version=version,
            destination_path=self._get_destination_path(profile, version),
        )
        self.install_plans[plan_key] = plan
        return plan

    def _get_destination_path(self, profile: RunnerProfile, version: str) -> Path:
        return self.runners_dir / profile.family.value / profile.install_dir_name(version)

    def get_install_plans(self) -> Dict[str, InstallPlan]:
        return self.install_plans

    def get_pending_installs(self) -> List[InstallPlan]:
        """
        Get all pending installs.

        Returns:
            List of InstallPlan objects with PENDING status
        """
        return [p for p in self.install_plans.values() if p.status == InstallStatus.PENDING]

    def mark_install_completed(
        self, plan: InstallPlan, success: bool = True, error: Optional[Exception] = None
    ) -> None:
        """
        Mark an install plan as completed or failed.

        Args:
            plan: The install plan to mark
            success: Whether the install was successful
            error: The exception that made the install fail
        """
        plan.status = InstallStatus.COMPLETED if success else InstallStatus.FAILED
        if not success:
            plan.error = error
            plan.error_message = str(error) if error else "Install failed"

        self.runner_states[plan.plan_key] = RunnerState(
            plan_key=plan.plan_key,
            install_status=plan.status,
            installed_path=plan.destination_path if success else None,
            error_message=plan.error_message,
        )

    def get_runner_states(self) -> Dict[str, RunnerState]:
        return self.runner_states

    def get_runner_state(self, plan_key: str) -> Optional[RunnerState]:
        return self.runner_states.get(plan_key)
