"""
DXVK specific discovery, version handling and prefix installation.
"""

import logging
import re
import shutil
from pathlib import Path
from typing import List

from cellar.cellar_logger import CellarLogger

_DXVK_VERSION = re.compile(r"v?(\d+\.\d+(?:\.\d+)?)")


def extract_dxvk_version(name: str) -> str:
    """
    Version token of a DXVK directory name.

    ``v2.3.1`` and ``dxvk-2.3.1`` both give ``2.3.1``; ``v1.10`` gives
    ``1.10``; names without a recognisable version are returned unchanged.
    """
    match = _DXVK_VERSION.search(name)
    return match.group(1) if match else name


def is_dxvk_install(path: Path) -> bool:
    return (path / "x64").is_dir() or (path / "x32").is_dir()


def _copy_dlls(source_dir: Path, target_dir: Path) -> List[Path]:
    copied = []
    if not source_dir.is_dir():
        return copied
    for dll in sorted(source_dir.iterdir()):
        if dll.is_file() and dll.suffix.lower() == ".dll":
            target = target_dir / dll.name
            shutil.copy2(dll, target)
            copied.append(target)
    return copied


def install_dxvk_to_prefix(logger: CellarLogger, dxvk_path: Path, prefix_path: Path) -> List[Path]:
    """
    Copy the DXVK DLLs into a wine prefix.

    64-bit DLLs from ``x64`` go to ``drive_c/windows/system32`` and 32-bit
    DLLs from ``x32`` go to ``drive_c/windows/syswow64``.

    Returns:
        Paths of the copied DLLs
    """
    dxvk_path = Path(dxvk_path)
    system32 = Path(prefix_path) / "drive_c" / "windows" / "system32"
    syswow64 = Path(prefix_path) / "drive_c" / "windows" / "syswow64"
    system32.mkdir(parents=True, exist_ok=True)
    syswow64.mkdir(parents=True, exist_ok=True)

    copied = _copy_dlls(dxvk_path / "x64", system32)
    copied.extend(_copy_dlls(dxvk_path / "x32", syswow64))

    logger.log(f"Installed {len(copied)} DXVK DLLs from {dxvk_path} into {prefix_path}", logging.INFO)
    return copied
