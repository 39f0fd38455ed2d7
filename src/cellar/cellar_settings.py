"""
Defines the on-disk layout used by cellar.
"""

import os
import pathlib
from typing import List, Optional, Union

from cellar.cellar_config import CellarConfig

PathLike = Union[str, os.PathLike]

_UNSAFE_FILENAME_CHARS = '/\\:*?"<>|'


def expand_tilde(path: PathLike) -> pathlib.Path:
    """Expand a leading ``~`` or ``~/`` to the home directory; other paths are returned as-is."""
    path_str = os.fspath(path)
    if path_str == "~" or path_str.startswith("~/"):
        return pathlib.Path(os.path.expanduser(path_str))
    return pathlib.Path(path_str)


def sanitize_filename(name: str) -> str:
    """
    Turn a game name into a lowercase file stem.

    Path separators, shell-reserved characters and control characters become
    ``_``, surrounding whitespace is stripped and inner spaces become ``_``.
    """
    replaced = "".join(
        "_" if c in _UNSAFE_FILENAME_CHARS or not c.isprintable() else c
        for c in name
    )
    return replaced.strip().lower().replace(" ", "_")


class CellarSettings:
    """
    Provides the various directories used by cellar. The base directory is
    ``$CELLAR_HOME`` when set, otherwise ``~/.local/share/cellar``.
    """

    def __init__(self, config: Optional[CellarConfig] = None):
        config = config or CellarConfig()
        if config.base_directory:
            base = expand_tilde(config.base_directory)
        elif os.environ.get("CELLAR_HOME"):
            base = expand_tilde(os.environ["CELLAR_HOME"])
        else:
            base = pathlib.Path.home() / ".local" / "share" / "cellar"

        self.base_dir = base
        self.runners_dir = base / "runners"
        self.prefixes_dir = base / "prefixes"
        self.configs_dir = base / "configs"
        self.cache_dir = base / "cache"

    def ensure_all_exist(self) -> None:
        for path in (
            self.base_dir,
            self.runners_dir,
            self.prefixes_dir,
            self.configs_dir,
            self.cache_dir,
            self.runners_dir / "proton",
            self.runners_dir / "dxvk",
        ):
            path.mkdir(parents=True, exist_ok=True)

    def get_runner_cache_path(self) -> pathlib.Path:
        return self.cache_dir / "runners.json"

    def get_game_config_path(self, game_name: str) -> pathlib.Path:
        return self.configs_dir / f"{sanitize_filename(game_name)}.toml"

    def list_game_configs(self) -> List[str]:
        """Sorted stems of the ``*.toml`` files in the configs directory."""
        if not self.configs_dir.is_dir():
            return []
        return sorted(
            p.stem for p in self.configs_dir.iterdir()
            if p.is_file() and p.suffix == ".toml"
        )
