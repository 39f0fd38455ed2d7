"""
Runner download and installation.

Resolves GitHub releases, downloads assets with size verification and
installs them through secure archive extraction.
"""

from .downloader import RunnerDownloader
from .github import GitHubReleaseClient, SecureFetcher, check_asset_name

__all__ = [
    "RunnerDownloader",
    "GitHubReleaseClient",
    "SecureFetcher",
    "check_asset_name",
]
