"""
Per-family runner profiles.

A profile carries everything the shared download/install machinery needs to
know about one runner family: where its releases live, how release tags are
spelled, which release asset to pick, and the size ceilings applied while
downloading and extracting it.
"""

from dataclasses import dataclass
from typing import Callable, Dict

from cellar.runner_models import RunnerFamily

GIB = 1024 * 1024 * 1024

AssetFilter = Callable[[str], bool]


def proton_asset_filter(name: str) -> bool:
    return name.endswith(".tar.gz")


def dxvk_asset_filter(name: str) -> bool:
    return name.endswith(".tar.gz") and "source" not in name


@dataclass(frozen=True)
class RunnerProfile:
    """
    Static description of a runner family's release feed and install limits.
    """

    family: RunnerFamily
    repo_owner: str
    repo_name: str
    tag_prefix: str
    asset_filter: AssetFilter
    max_download_size: int
    max_files: int
    max_total_size: int
    strip_prefix_in_listing: bool = False

    def make_tag(self, version: str) -> str:
        """
        Release tag for ``version``; a version that already carries the tag
        prefix is used unchanged.
        """
        if version.startswith(self.tag_prefix):
            return version
        return f"{self.tag_prefix}{version}"

    def install_dir_name(self, version: str) -> str:
        # Installs are named after their release tag
        return self.make_tag(version)

    def display_version(self, tag: str) -> str:
        if self.strip_prefix_in_listing and tag.startswith(self.tag_prefix):
            return tag[len(self.tag_prefix):]
        return tag


PROTON_PROFILE = RunnerProfile(
    family=RunnerFamily.PROTON,
    repo_owner="GloriousEggroll",
    repo_name="proton-ge-custom",
    tag_prefix="GE-Proton",
    asset_filter=proton_asset_filter,
    max_download_size=2 * GIB,
    max_files=200_000,
    max_total_size=10 * GIB,
)

DXVK_PROFILE = RunnerProfile(
    family=RunnerFamily.DXVK,
    repo_owner="doitsujin",
    repo_name="dxvk",
    tag_prefix="v",
    asset_filter=dxvk_asset_filter,
    max_download_size=1 * GIB,
    max_files=10_000,
    max_total_size=2 * GIB,
    strip_prefix_in_listing=True,
)

PROFILES: Dict[RunnerFamily, RunnerProfile] = {
    RunnerFamily.PROTON: PROTON_PROFILE,
    RunnerFamily.DXVK: DXVK_PROFILE,
}


def get_profile(family: RunnerFamily) -> RunnerProfile:
    return PROFILES[RunnerFamily(family)]
