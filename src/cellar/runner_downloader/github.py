"""
GitHub release resolution and size-verified asset downloads.
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Callable, List, Optional

import aiohttp
from pydantic import ValidationError

from cellar.cellar_config import DEFAULT_API_BASE_URL, DEFAULT_USER_AGENT
from cellar.cellar_exceptions import (
    AssetNotFound,
    AssetTooLarge,
    DownloadFailed,
    ReleaseNotFound,
    SizeMismatch,
    UnsafeAssetName,
)
from cellar.cellar_logger import CellarLogger
from cellar.runner_models import GitHubAsset, GitHubRelease

CHUNK_SIZE = 64 * 1024


@asynccontextmanager
async def _client_session(
    session: Optional[aiohttp.ClientSession], user_agent: str
) -> AsyncIterator[aiohttp.ClientSession]:
    # A caller supplied session is borrowed, never closed here
    if session is not None:
        yield session
        return
    async with aiohttp.ClientSession(
        headers={"User-Agent": user_agent}, auto_decompress=False
    ) as owned:
        yield owned


class GitHubReleaseClient:
    """
    Reads release metadata of one GitHub repository.
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        logger: CellarLogger,
        user_agent: str = DEFAULT_USER_AGENT,
        api_base_url: str = DEFAULT_API_BASE_URL,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.owner = owner
        self.repo = repo
        self.logger = logger
        self.user_agent = user_agent
        self.api_base_url = api_base_url.rstrip("/")
        self.session = session

    @property
    def releases_url(self) -> str:
        return f"{self.api_base_url}/repos/{self.owner}/{self.repo}/releases"

    async def _get_json(self, url: str, not_found_message: str):
        self.logger.log(f"GET {url}", logging.DEBUG)
        try:
            async with _client_session(self.session, self.user_agent) as session:
                async with session.get(url, headers={"User-Agent": self.user_agent}) as resp:
                    if resp.status < 200 or resp.status >= 300:
                        raise ReleaseNotFound(f"{not_found_message} (HTTP {resp.status})")
                    return await resp.json(content_type=None)
        except aiohttp.ClientError as e:
            raise ReleaseNotFound(f"{not_found_message}: {e}") from e

    async def fetch_release(self, tag: str) -> GitHubRelease:
        """
        Fetch the release published under ``tag``.

        Raises:
            ReleaseNotFound: The API answered with a non-2xx status or
                unparseable release data
        """
        data = await self._get_json(
            f"{self.releases_url}/tags/{tag}",
            f"Release {tag} not found in {self.owner}/{self.repo}",
        )
        try:
            return GitHubRelease.model_validate(data)
        except ValidationError as e:
            raise ReleaseNotFound(f"Malformed release data for {tag}: {e}") from e

    async def list_releases(self) -> List[str]:
        """
        Tag names of the repository's releases, in API order.
        """
        data = await self._get_json(
            self.releases_url, f"Could not list releases of {self.owner}/{self.repo}"
        )
        if not isinstance(data, list):
            raise ReleaseNotFound(f"Unexpected release listing for {self.owner}/{self.repo}")
        return [item["tag_name"] for item in data if isinstance(item, dict) and "tag_name" in item]

    @staticmethod
    def select_asset(release: GitHubRelease, predicate: Callable[[str], bool]) -> GitHubAsset:
        for asset in release.assets:
            if predicate(asset.name):
                return asset
        raise AssetNotFound(f"No matching asset found in release {release.tag_name}")

    async def resolve_asset(
        self, version: str, tag_prefix: str, predicate: Callable[[str], bool]
    ) -> GitHubAsset:
        """
        Resolve the downloadable asset of ``version``.

        Args:
            version: Bare version ("9-1") or full tag ("GE-Proton9-1")
            tag_prefix: Prefix of the family's release tags
            predicate: Asset name filter

        Returns:
            The first asset of the release accepted by ``predicate``
        """
        tag = version if version.startswith(tag_prefix) else f"{tag_prefix}{version}"
        release = await self.fetch_release(tag)
        asset = self.select_asset(release, predicate)
        self.logger.log(
            f"Resolved {self.owner}/{self.repo} {tag} to {asset.name} ({asset.size} bytes)",
            logging.INFO,
        )
        return asset


def check_asset_name(name: str) -> None:
    """
    Raise UnsafeAssetName unless ``name`` is one plain path component.
    """
    if (
        not name
        or name in (".", "..")
        or "/" in name
        or "\\" in name
        or "\x00" in name
        or os.path.basename(name) != name
    ):
        raise UnsafeAssetName(f"Refusing to download asset with unsafe name: {name!r}")


class SecureFetcher:
    """
    Downloads release assets, enforcing the size declared by the release.

    The declared size is checked against the download ceiling before any
    request, against ``Content-Length`` when the server sends one, while the
    body streams in and once more after it ends. The body is written to a
    ``.part`` file that only becomes the final file once every check passed.
    """

    def __init__(
        self,
        download_dir: Path,
        max_download_size: int,
        logger: CellarLogger,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.download_dir = Path(download_dir)
        self.max_download_size = max_download_size
        self.logger = logger
        self.user_agent = user_agent
        self.session = session

    async def fetch(self, asset: GitHubAsset) -> Path:
        """
        Download ``asset`` into the download directory.

        Returns:
            Path of the verified file

        Raises:
            AssetTooLarge: Declared size exceeds the ceiling
            UnsafeAssetName: Asset name is not a plain file name
            DownloadFailed: Non-2xx response or connection error
            SizeMismatch: Header or body disagrees with the declared size
        """
        if asset.size > self.max_download_size:
            raise AssetTooLarge(
                f"Asset {asset.name} is {asset.size} bytes, "
                f"limit is {self.max_download_size} bytes"
            )
        check_asset_name(asset.name)

        self.download_dir.mkdir(parents=True, exist_ok=True)
        final_path = self.download_dir / asset.name
        part_path = self.download_dir / f"{asset.name}.part"

        self.logger.log(f"Downloading {asset.browser_download_url} to {final_path}", logging.INFO)
        try:
            received = await self._stream_to(asset, part_path)
            if received != asset.size:
                raise SizeMismatch(
                    f"Downloaded {received} bytes for {asset.name}, expected {asset.size}"
                )
            os.replace(part_path, final_path)
        except BaseException:
            if part_path.exists():
                part_path.unlink()
            raise

        self.logger.log(f"Downloaded {asset.name} ({asset.size} bytes)", logging.INFO)
        return final_path

    async def _stream_to(self, asset: GitHubAsset, part_path: Path) -> int:
        try:
            async with _client_session(self.session, self.user_agent) as session:
                async with session.get(
                    asset.browser_download_url, headers={"User-Agent": self.user_agent}
                ) as resp:
                    if resp.status < 200 or resp.status >= 300:
                        raise DownloadFailed(
                            f"Download of {asset.name} failed with HTTP {resp.status}"
                        )
                    if resp.content_length is not None and resp.content_length != asset.size:
                        raise SizeMismatch(
                            f"Server announced {resp.content_length} bytes for {asset.name}, "
                            f"release declares {asset.size}"
                        )

                    received = 0
                    with open(part_path, "wb") as f:
                        async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                            received += len(chunk)
                            if received > asset.size:
                                raise SizeMismatch(
                                    f"Received more than the declared {asset.size} bytes "
                                    f"for {asset.name}"
                                )
                            f.write(chunk)
                    return received
        except aiohttp.ClientError as e:
            raise DownloadFailed(f"Download of {asset.name} failed: {e}") from e
