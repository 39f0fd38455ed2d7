"""
Family specific hooks, keyed by RunnerFamily.
"""

from pathlib import Path

from cellar.runner_models import RunnerFamily
from .dxvk import extract_dxvk_version, install_dxvk_to_prefix, is_dxvk_install
from .proton import discover_steam_proton, extract_proton_version, find_steam_path, is_proton_install


def extract_version(family: RunnerFamily, name: str) -> str:
    if RunnerFamily(family) == RunnerFamily.PROTON:
        return extract_proton_version(name)
    return extract_dxvk_version(name)


def has_install_marker(family: RunnerFamily, path: Path) -> bool:
    if RunnerFamily(family) == RunnerFamily.PROTON:
        return is_proton_install(path)
    return is_dxvk_install(path)


def display_name(family: RunnerFamily, dir_name: str) -> str:
    if RunnerFamily(family) == RunnerFamily.DXVK:
        return f"DXVK-{dir_name}"
    return dir_name


__all__ = [
    "extract_version",
    "has_install_marker",
    "display_name",
    "extract_proton_version",
    "extract_dxvk_version",
    "is_proton_install",
    "is_dxvk_install",
    "find_steam_path",
    "discover_steam_proton",
    "install_dxvk_to_prefix",
]
