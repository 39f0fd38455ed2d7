"""
Runner install configuration.

This package handles:
1. Per-family profiles (release feed, tag prefix, asset choice, size ceilings)
2. Turning install requests into install plans
3. Tracking which plans completed and where the runner landed
"""

from .profiles import RunnerProfile, PROTON_PROFILE, DXVK_PROFILE, PROFILES, get_profile
from .config_manager import InstallPlan, InstallStatus, RunnerConfigManager, RunnerState

__all__ = [
    "RunnerProfile",
    "PROTON_PROFILE",
    "DXVK_PROFILE",
    "PROFILES",
    "get_profile",
    "InstallPlan",
    "InstallStatus",
    "RunnerConfigManager",
    "RunnerState",
]
