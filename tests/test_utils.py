"""
Helpers shared by the cellar tests: a per-test cellar directory, archive
builders, and a local stand-in for the GitHub release API.
"""

import io
import json
import logging
import tarfile
import zipfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from aiohttp import web
from aiohttp.test_utils import TestServer

from cellar.cellar_config import CellarConfig
from cellar.cellar_logger import CellarLogger
from cellar.cellar_settings import CellarSettings


@dataclass
class CellarTestContext:
    config: CellarConfig
    settings: CellarSettings
    logger: CellarLogger


@contextmanager
def create_test_context(base_dir: Path, **config_overrides):
    """
    A cellar directory under ``base_dir`` with Steam scanning switched off.
    """
    params = {"base_directory": str(base_dir / "cellar"), "scan_steam": False}
    params.update(config_overrides)
    config = CellarConfig.from_dict(params)
    settings = CellarSettings(config)
    settings.ensure_all_exist()
    yield CellarTestContext(
        config=config,
        settings=settings,
        logger=CellarLogger("cellar.tests", logging.DEBUG),
    )


# ----------------------------------------------------------------------
# Archives
# ----------------------------------------------------------------------


def build_tar(
    path: Path,
    files: Dict[str, bytes],
    modes: Optional[Dict[str, int]] = None,
    directories: Iterable[str] = (),
    symlinks: Optional[Dict[str, str]] = None,
    mode: str = "w:gz",
) -> Path:
    """
    Write a tar archive with the given member names, verbatim.
    """
    modes = modes or {}
    with tarfile.open(path, mode) as tar:
        for name in directories:
            info = tarfile.TarInfo(name)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tar.addfile(info)
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = modes.get(name, 0o644)
            tar.addfile(info, io.BytesIO(data))
        for name, target in (symlinks or {}).items():
            info = tarfile.TarInfo(name)
            info.type = tarfile.SYMTYPE
            info.linkname = target
            tar.addfile(info)
    return path


def build_zip(path: Path, files: Dict[str, bytes], modes: Optional[Dict[str, int]] = None) -> Path:
    modes = modes or {}
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in files.items():
            info = zipfile.ZipInfo(name)
            if name in modes:
                info.external_attr = (0o100000 | modes[name]) << 16
            zf.writestr(info, data)
    return path


def build_proton_archive(path: Path, tag: str) -> Path:
    return build_tar(
        path,
        {
            f"{tag}/proton": b"#!/bin/sh\n",
            f"{tag}/version": tag.encode(),
            f"{tag}/files/bin/wine": b"\x7fELF",
        },
        modes={f"{tag}/proton": 0o755, f"{tag}/files/bin/wine": 0o755},
        directories=(tag, f"{tag}/files", f"{tag}/files/bin"),
    )


def build_dxvk_archive(path: Path, version: str) -> Path:
    root = f"dxvk-{version}"
    return build_tar(
        path,
        {
            f"{root}/x64/d3d11.dll": b"MZ64",
            f"{root}/x64/dxgi.dll": b"MZ64",
            f"{root}/x32/d3d11.dll": b"MZ32",
        },
    )


def tar_bytes(builder, tmp_path: Path, *args) -> bytes:
    path = builder(tmp_path / "archive.tar.gz", *args)
    data = path.read_bytes()
    path.unlink()
    return data


# ----------------------------------------------------------------------
# Release API
# ----------------------------------------------------------------------


class FakeReleaseHost:
    """
    Serves ``/repos/{owner}/{repo}/releases[/tags/{tag}]`` and the asset
    downloads those releases point to.

    Use as ``async with FakeReleaseHost() as host``. Assets can declare a
    size different from what is served, and can be streamed without a
    Content-Length header.
    """

    def __init__(self):
        self.releases: Dict[Tuple[str, str], List[dict]] = {}
        self.files: Dict[str, bytes] = {}
        self.chunked: set = set()
        self.user_agents: List[str] = []
        self.server: Optional[TestServer] = None

        self.app = web.Application()
        self.app.router.add_get("/repos/{owner}/{repo}/releases", self._list_releases)
        self.app.router.add_get("/repos/{owner}/{repo}/releases/tags/{tag}", self._get_release)
        self.app.router.add_get("/downloads/{key:.+}", self._download)

    async def __aenter__(self) -> "FakeReleaseHost":
        self.server = TestServer(self.app)
        await self.server.start_server()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.server.close()

    @property
    def base_url(self) -> str:
        return str(self.server.make_url("/")).rstrip("/")

    def add_release(
        self,
        owner: str,
        repo: str,
        tag: str,
        assets: Dict[str, bytes],
        declared_sizes: Optional[Dict[str, int]] = None,
        chunked: Iterable[str] = (),
    ) -> None:
        declared_sizes = declared_sizes or {}
        asset_entries = []
        for name, data in assets.items():
            key = f"{owner}/{repo}/{tag}/{name}"
            self.files[key] = data
            if name in chunked:
                self.chunked.add(key)
            asset_entries.append({
                "name": name,
                "key": key,
                "size": declared_sizes.get(name, len(data)),
            })
        self.releases.setdefault((owner, repo), []).append(
            {"tag_name": tag, "name": tag, "assets": asset_entries}
        )

    def _release_json(self, request: web.Request, release: dict) -> dict:
        origin = str(request.url.origin())
        return {
            "tag_name": release["tag_name"],
            "name": release["name"],
            "draft": False,
            "assets": [
                {
                    "name": asset["name"],
                    "browser_download_url": f"{origin}/downloads/{asset['key']}",
                    "size": asset["size"],
                    "content_type": "application/gzip",
                }
                for asset in release["assets"]
            ],
        }

    async def _list_releases(self, request: web.Request) -> web.Response:
        self.user_agents.append(request.headers.get("User-Agent", ""))
        releases = self.releases.get((request.match_info["owner"], request.match_info["repo"]))
        if releases is None:
            return web.Response(status=404, text=json.dumps({"message": "Not Found"}))
        return web.json_response([self._release_json(request, r) for r in releases])

    async def _get_release(self, request: web.Request) -> web.Response:
        self.user_agents.append(request.headers.get("User-Agent", ""))
        releases = self.releases.get((request.match_info["owner"], request.match_info["repo"]), [])
        for release in releases:
            if release["tag_name"] == request.match_info["tag"]:
                return web.json_response(self._release_json(request, release))
        return web.Response(status=404, text=json.dumps({"message": "Not Found"}))

    async def _download(self, request: web.Request) -> web.StreamResponse:
        self.user_agents.append(request.headers.get("User-Agent", ""))
        key = request.match_info["key"]
        if key not in self.files:
            return web.Response(status=404)
        data = self.files[key]
        if key not in self.chunked:
            return web.Response(body=data, content_type="application/octet-stream")

        response = web.StreamResponse()
        response.enable_chunked_encoding()
        await response.prepare(request)
        await response.write(data)
        await response.write_eof()
        return response
