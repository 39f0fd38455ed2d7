"""
Discovery of installed runners.

The registry scans cellar's managed install directory (and, for Proton,
Steam's library) for runner installs, normalizes their version tokens and
keeps an optional JSON cache of the last scan.

Version ordering here is best-effort: ``version_sort_key`` only understands a
leading ``major[.-]minor`` pair and falls back to the first number it finds,
so unusual directory names can sort in surprising places.
"""

import asyncio
import logging
import os
import re
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from pydantic import ValidationError

from cellar import runners as families
from cellar.cellar_exceptions import RunnerNotFound
from cellar.cellar_logger import CellarLogger
from cellar.runner_models import Runner, RunnerCache, RunnerFamily
from cellar.runner_models.runners import utc_now

_MAJOR_MINOR = re.compile(r"(\d+)[.-](\d+)")
_ANY_NUMBER = re.compile(r"\d+")


def version_sort_key(version: str) -> float:
    """
    Sortable key for a version string: major + minor / 100.

    ``10-10`` gives 10.1 and ``9-1`` gives 9.01. Without a major/minor pair
    the first number is used, and names without digits sort as 0.0.
    """
    match = _MAJOR_MINOR.search(version)
    if match:
        return int(match.group(1)) + int(match.group(2)) / 100.0
    match = _ANY_NUMBER.search(version)
    if match:
        return float(match.group(0))
    return 0.0


def sort_versions(versions: Iterable[str], newest_first: bool = True) -> List[str]:
    return sorted(versions, key=version_sort_key, reverse=newest_first)


def latest_runner(runners: Iterable[Runner]) -> Optional[Runner]:
    """
    The runner with the highest version key; the first one wins ties.
    """
    best = None
    for runner in runners:
        if best is None or version_sort_key(runner.version) > version_sort_key(best.version):
            best = runner
    return best


def find_runner(runners: Iterable[Runner], query: str) -> Optional[Runner]:
    """
    First runner whose version equals ``query`` or whose name contains it.
    """
    for runner in runners:
        if runner.version == query or query in runner.name:
            return runner
    return None


class RunnerRegistry:
    """
    Finds runner installs on disk and caches the result.

    Managed installs live in ``{runners_dir}/{family}/{dir}``; a directory
    only counts as an install when the family's marker is present.
    """

    def __init__(
        self,
        runners_dir: Path,
        logger: CellarLogger,
        cache_path: Optional[Path] = None,
        steam_path: Optional[Path] = None,
        scan_steam: bool = True,
        cache_max_age_seconds: int = 3600,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            runners_dir: Managed install root
            logger: Logger for discovery messages
            cache_path: Location of the cache file, None disables caching
            steam_path: Steam root; looked up under the home directory when None
            scan_steam: Whether Steam's Proton builds are included
            cache_max_age_seconds: Freshness window of the cache
            clock: Source of the current time
        """
        self.runners_dir = Path(runners_dir)
        self.logger = logger
        self.cache_path = Path(cache_path) if cache_path else None
        self.scan_steam = scan_steam
        self.steam_path = Path(steam_path) if steam_path else None
        self.cache_max_age_seconds = cache_max_age_seconds
        self.clock = clock

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def scan_managed(self, family: RunnerFamily) -> List[Runner]:
        family = RunnerFamily(family)
        family_dir = self.runners_dir / family.value
        if not family_dir.is_dir():
            return []

        runners = []
        for path in sorted(family_dir.iterdir()):
            if not path.is_dir() or not families.has_install_marker(family, path):
                continue
            runners.append(Runner(
                name=families.display_name(family, path.name),
                version=families.extract_version(family, path.name),
                path=path,
                runner_type=family,
                installed=True,
            ))
        return runners

    def scan_steam_proton(self) -> List[Runner]:
        if not self.scan_steam:
            return []
        steam_path = self.steam_path or families.find_steam_path()
        return families.discover_steam_proton(steam_path)

    def scan(self, family: Optional[RunnerFamily] = None) -> List[Runner]:
        """
        Live scan for one family, or for every family when ``family`` is None.
        """
        wanted = [RunnerFamily(family)] if family is not None else list(RunnerFamily)
        runners: List[Runner] = []
        for fam in wanted:
            if fam == RunnerFamily.PROTON:
                runners.extend(self.scan_steam_proton())
            runners.extend(self.scan_managed(fam))
        return runners

    async def discover_local_runners(self, family: Optional[RunnerFamily] = None) -> List[Runner]:
        runners = await asyncio.to_thread(self.scan, family)
        self.logger.log(
            f"Discovered {len(runners)} runners: {[r.name for r in runners]}",
            logging.INFO,
        )
        return runners

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def load_cache(self) -> Optional[RunnerCache]:
        """
        Read the cache file. Missing or unreadable files give None.
        """
        if self.cache_path is None or not self.cache_path.is_file():
            return None
        try:
            return RunnerCache.model_validate_json(self.cache_path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            self.logger.log(f"Ignoring unreadable runner cache {self.cache_path}: {e}", logging.WARNING)
            return None

    def save_cache(self, cache: RunnerCache) -> None:
        """
        Replace the cache file wholesale. The new content is written to a
        temporary file next to it and moved into place.
        """
        if self.cache_path is None:
            return
        self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=".runners-", suffix=".json", dir=str(self.cache_path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(cache.model_dump_json(indent=2))
            os.replace(tmp_name, self.cache_path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise

    def is_fresh(self, cache: Optional[RunnerCache]) -> bool:
        return cache is not None and cache.is_fresh(self.clock(), self.cache_max_age_seconds)

    async def refresh(self, cache: Optional[RunnerCache] = None, force: bool = False) -> RunnerCache:
        """
        Return ``cache`` while it is fresh, otherwise rescan and persist.

        Args:
            cache: Previously loaded cache, if any
            force: Rescan even if ``cache`` is fresh

        Returns:
            The cache value callers should use from now on
        """
        if not force and self.is_fresh(cache):
            return cache

        runners = await self.discover_local_runners()
        new_cache = RunnerCache(runners=runners, last_updated=self.clock())
        self.save_cache(new_cache)
        return new_cache

    async def get_runners(
        self, family: Optional[RunnerFamily] = None, use_cache: bool = True
    ) -> List[Runner]:
        """
        Installed runners, served from the cache when it is fresh.

        Cached entries whose install marker has disappeared are dropped.
        """
        cache = self.load_cache() if use_cache else None
        cache = await self.refresh(cache, force=not use_cache)
        runners = [
            r for r in cache.runners
            if r.path.is_dir() and families.has_install_marker(r.runner_type, r.path)
        ]
        if family is not None:
            runners = [r for r in runners if r.runner_type == RunnerFamily(family)]
        return runners

    async def find_installation(
        self, query: str, family: RunnerFamily = RunnerFamily.PROTON, use_cache: bool = True
    ) -> Runner:
        """
        Installed runner matching ``query`` by version or name.

        Raises:
            RunnerNotFound: No installed runner matches
        """
        runner = find_runner(await self.get_runners(family, use_cache=use_cache), query)
        if runner is None:
            raise RunnerNotFound(
                f"{RunnerFamily(family).value} version '{query}' not found. "
                f"Install it first with 'cellar runners install {RunnerFamily(family).value} {query}'"
            )
        return runner

    async def latest_installed(self, family: RunnerFamily, use_cache: bool = True) -> Optional[Runner]:
        return latest_runner(await self.get_runners(family, use_cache=use_cache))
