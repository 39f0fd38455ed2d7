"""
This file contains various utility functions like archive extraction and
directory handling.
"""

import asyncio
import logging
import os
import re
import shutil
import stat
import tarfile
import uuid
import zipfile
from pathlib import Path
from typing import Union

from cellar.cellar_exceptions import (
    ArchiveTooLarge,
    TooManyFiles,
    UnsafeArchivePath,
    UnsupportedArchive,
)
from cellar.cellar_logger import CellarLogger

PathLike = Union[str, os.PathLike]

_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")
_SUSPICIOUS_SUBSTRINGS = ("..", "./", ".\\", ":\\")
_TAR_SUFFIXES = (".tar.gz", ".tgz", ".tar.xz", ".txz", ".tar.bz2", ".tbz2", ".tar")


class FileUtils:
    """
    Utility functions for extracting untrusted archives
    """

    @staticmethod
    def validate_archive_path(entry_name: str, destination: PathLike) -> Path:
        """
        Map an archive entry name to a path inside ``destination``.

        Raises UnsafeArchivePath for null bytes, backslashes, drive prefixes,
        absolute paths, parent references, and for any name whose resolved
        location is not inside the resolved destination.
        """
        if "\0" in entry_name:
            raise UnsafeArchivePath(f"Null byte in archive entry: {entry_name!r}")
        if "\\" in entry_name:
            raise UnsafeArchivePath(f"Backslash in archive entry: {entry_name!r}")
        if _DRIVE_PREFIX.match(entry_name):
            raise UnsafeArchivePath(f"Path prefix not allowed in archive: {entry_name!r}")
        if entry_name.startswith("/"):
            raise UnsafeArchivePath(f"Absolute path not allowed in archive: {entry_name!r}")

        parts = []
        for component in entry_name.split("/"):
            if component in ("", "."):
                continue
            if component == "..":
                raise UnsafeArchivePath(f"Path traversal attempt detected: {entry_name!r}")
            parts.append(component)

        normalized = "/".join(parts)
        if any(pattern in normalized for pattern in _SUSPICIOUS_SUBSTRINGS):
            raise UnsafeArchivePath(f"Suspicious path pattern detected: {entry_name!r}")

        destination = Path(destination)
        final_path = destination.joinpath(*parts)

        canonical_dest = os.path.realpath(destination)
        canonical = os.path.realpath(final_path)
        if os.path.commonpath([canonical_dest, canonical]) != canonical_dest:
            raise UnsafeArchivePath(f"Path escapes destination directory: {entry_name!r}")

        return final_path

    @staticmethod
    def _write_member(source, target: Path, mode: int) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as out:
            shutil.copyfileobj(source, out)
        if mode & 0o777:
            os.chmod(target, mode & 0o777)

    @staticmethod
    def extract_tar_secure(
        logger: CellarLogger,
        archive_path: PathLike,
        destination: PathLike,
        max_files: int,
        max_total_size: int,
    ) -> None:
        """
        Extract a (possibly compressed) tar archive into ``destination``.

        Members are read one header at a time, so the count and size limits
        trip before the rest of the archive is looked at. Symlinks, hardlinks
        and special files are skipped.
        """
        destination = Path(destination)
        file_count = 0
        total_size = 0

        with tarfile.open(archive_path, mode="r:*") as archive:
            for member in archive:
                file_count += 1
                if file_count > max_files:
                    raise TooManyFiles(f"Archive contains too many files (>{max_files} files)")

                total_size += max(member.size, 0)
                if total_size > max_total_size:
                    raise ArchiveTooLarge(
                        f"Archive total size exceeds limit ({max_total_size} bytes)"
                    )

                safe_path = FileUtils.validate_archive_path(member.name, destination)

                if member.isdir():
                    safe_path.mkdir(parents=True, exist_ok=True)
                elif member.isfile():
                    source = archive.extractfile(member)
                    with source:
                        FileUtils._write_member(source, safe_path, member.mode)
                else:
                    logger.log(f"Skipping non-regular archive entry {member.name}", logging.DEBUG)

        logger.log(f"Extracted {file_count} entries from {archive_path}", logging.INFO)

    @staticmethod
    def extract_zip_secure(
        logger: CellarLogger,
        archive_path: PathLike,
        destination: PathLike,
        max_files: int,
        max_total_size: int,
    ) -> None:
        """
        Extract a zip archive into ``destination`` with the same rules as
        extract_tar_secure.
        """
        destination = Path(destination)
        file_count = 0
        total_size = 0

        with zipfile.ZipFile(archive_path) as archive:
            for info in archive.infolist():
                file_count += 1
                if file_count > max_files:
                    raise TooManyFiles(f"Archive contains too many files (>{max_files} files)")

                total_size += max(info.file_size, 0)
                if total_size > max_total_size:
                    raise ArchiveTooLarge(
                        f"Archive total size exceeds limit ({max_total_size} bytes)"
                    )

                safe_path = FileUtils.validate_archive_path(info.filename, destination)
                unix_mode = info.external_attr >> 16

                if info.is_dir():
                    safe_path.mkdir(parents=True, exist_ok=True)
                elif unix_mode and not stat.S_ISREG(unix_mode):
                    logger.log(f"Skipping non-regular archive entry {info.filename}", logging.DEBUG)
                else:
                    with archive.open(info) as source:
                        FileUtils._write_member(source, safe_path, unix_mode)

        logger.log(f"Extracted {file_count} entries from {archive_path}", logging.INFO)

    @staticmethod
    def get_archive_type(archive_path: PathLike) -> str:
        name = os.fspath(archive_path).lower()
        if name.endswith(".zip"):
            return "zip"
        if name.endswith(_TAR_SUFFIXES):
            return "tar"
        raise UnsupportedArchive(f"Unsupported archive type: {archive_path}")

    @staticmethod
    async def extract_archive_secure(
        logger: CellarLogger,
        archive_path: PathLike,
        destination: PathLike,
        max_files: int,
        max_total_size: int,
    ) -> Path:
        """
        Extract ``archive_path`` into ``destination`` on a worker thread and
        delete the archive once extraction succeeded.
        """
        archive_type = FileUtils.get_archive_type(archive_path)
        destination = Path(destination)
        destination.mkdir(parents=True, exist_ok=True)

        extract = (
            FileUtils.extract_zip_secure if archive_type == "zip" else FileUtils.extract_tar_secure
        )
        logger.log(f"Extracting {archive_path} to {destination}", logging.INFO)
        await asyncio.to_thread(
            extract, logger, archive_path, destination, max_files, max_total_size
        )

        os.remove(archive_path)
        return destination

    @staticmethod
    def hoist_single_root(destination: PathLike) -> None:
        """
        If ``destination`` holds exactly one directory and nothing else, move
        that directory's children up into ``destination``.
        """
        destination = Path(destination)
        children = list(destination.iterdir())
        if len(children) != 1 or not children[0].is_dir() or children[0].is_symlink():
            return

        # Rename first so a child named like its parent cannot collide
        wrapper = destination / f".hoist-{uuid.uuid4().hex}"
        os.replace(children[0], wrapper)
        for child in wrapper.iterdir():
            os.replace(child, destination / child.name)
        wrapper.rmdir()

    @staticmethod
    def delete_directory(path: PathLike) -> None:
        shutil.rmtree(path)
