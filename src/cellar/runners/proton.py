"""
Proton specific discovery and version handling.

Besides cellar's own install directory, Proton builds installed by Steam are
picked up from Steam's library so they can be used without a second download.
"""

import re
from pathlib import Path
from typing import List, Optional

from cellar.runner_models import Runner, RunnerFamily

_PROTON_VERSION = re.compile(r"(?i)proton[^\d]*(\d+(?:[.-]\d+)*)")


def extract_proton_version(name: str) -> str:
    """
    Version token of a Proton directory name.

    ``GE-Proton9-1`` gives ``9-1`` and ``Proton 8.0`` gives ``8.0``; names
    without a recognisable version are returned unchanged.
    """
    match = _PROTON_VERSION.search(name)
    return match.group(1) if match else name


def is_proton_install(path: Path) -> bool:
    return (path / "proton").exists()


def find_steam_path(home: Optional[Path] = None) -> Optional[Path]:
    """
    Locate the Steam root under ``home`` by looking for ``steamapps/common``.
    """
    home = home or Path.home()
    for candidate in (home / ".steam" / "steam", home / ".local" / "share" / "Steam"):
        if (candidate / "steamapps" / "common").exists():
            return candidate
    return None


def discover_steam_proton(steam_path: Optional[Path]) -> List[Runner]:
    """
    Proton builds in Steam's ``steamapps/common``: directories whose name
    contains "proton" and that ship a ``proton`` script.
    """
    if steam_path is None:
        return []
    common = Path(steam_path) / "steamapps" / "common"
    if not common.is_dir():
        return []

    runners = []
    for path in sorted(common.iterdir()):
        if not path.is_dir() or "proton" not in path.name.lower():
            continue
        if is_proton_install(path):
            runners.append(Runner(
                name=path.name,
                version=extract_proton_version(path.name),
                path=path,
                runner_type=RunnerFamily.PROTON,
                installed=True,
            ))
    return runners
