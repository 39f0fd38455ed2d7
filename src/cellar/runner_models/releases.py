"""
Pydantic data models for the GitHub release API responses consumed by cellar.

Only the fields cellar relies on are declared; anything else the API returns
is ignored.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class GitHubAsset(BaseModel):
    """
    A single downloadable file attached to a release.
    """

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., description="File name of the asset")
    browser_download_url: str = Field(..., description="URL to download from")
    size: int = Field(..., ge=0, description="Declared size in bytes")


class GitHubRelease(BaseModel):
    """
    A release as returned by ``/repos/{owner}/{repo}/releases[/tags/{tag}]``.
    """

    model_config = ConfigDict(extra="ignore")

    tag_name: str
    name: Optional[str] = None
    assets: List[GitHubAsset] = Field(default_factory=list)
