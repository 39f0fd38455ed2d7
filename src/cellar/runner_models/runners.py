"""
Pydantic data models for installed runners and the runner cache file.

A ``Runner`` is produced by a filesystem scan and never persisted except
through a ``RunnerCache``, which is written and read wholesale.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field


class RunnerFamily(str, Enum):
    """
    The runtime families cellar knows how to install and discover.
    """

    PROTON = "proton"
    DXVK = "dxvk"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Runner(BaseModel):
    """
    One versioned, on-disk installation of a runner family.
    """

    name: str = Field(..., description="Display name, usually the directory name")
    version: str = Field(..., description="Version token extracted from the directory name")
    path: Path = Field(..., description="Install directory")
    runner_type: RunnerFamily
    installed: bool = True


class RunnerCache(BaseModel):
    """
    Snapshot of discovered runners together with the time it was taken.
    """

    runners: List[Runner] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=utc_now)

    def add_runner(self, runner: Runner) -> None:
        self.runners.append(runner)
        self.last_updated = utc_now()

    def find_runner(self, name: str, version: Optional[str] = None) -> Optional[Runner]:
        """
        Find a runner by display name, optionally narrowed to one version.
        """
        for runner in self.runners:
            if runner.name == name and (version is None or runner.version == version):
                return runner
        return None

    def get_runners_by_type(self, runner_type: RunnerFamily) -> List[Runner]:
        return [r for r in self.runners if r.runner_type == runner_type]

    def is_fresh(self, now: Optional[datetime] = None, max_age_seconds: int = 3600) -> bool:
        """
        Whether the snapshot is younger than ``max_age_seconds``.

        A snapshot stamped in the future (clock skew) is treated as stale.
        """
        now = now or utc_now()
        last_updated = self.last_updated
        if last_updated.tzinfo is None:
            last_updated = last_updated.replace(tzinfo=timezone.utc)
        age = now - last_updated
        return timedelta(0) <= age < timedelta(seconds=max_age_seconds)
