# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Filesystem primitives used by the registry and installer.
"""

import json
import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def current_time() -> str:
    """Local wall-clock time as 'YYYY-MM-DD HH:MM:SS'"""
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def create_directory(path: PathLike) -> bool:
    """
    Create a directory and its parents.

    Returns:
        True if the directory exists afterwards
    """
    try:
        Path(path).mkdir(parents=True, exist_ok=True)
        return True
    except OSError as e:
        logger.error(f"Failed to create directory {path}: {e}")
        return False


def remove_tree(path: PathLike) -> bool:
    """
    Remove a file or directory tree.

    Symlinks are unlinked, never followed.

    Returns:
        True on success, False if the path is missing or removal failed
    """
    path = Path(path)
    if not path.exists() and not path.is_symlink():
        logger.error(f"Cannot remove {path}: no such file or directory")
        return False

    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
        return True
    except OSError as e:
        logger.error(f"Failed to remove {path}: {e}")
        return False


def clear_directory(path: PathLike) -> bool:
    """
    Remove everything inside a directory, keeping the directory itself.

    A missing directory counts as already clear.
    """
    path = Path(path)
    if not path.exists():
        return True

    success = True
    for entry in path.iterdir():
        if not remove_tree(entry):
            success = False
    return success


def directory_size(path: PathLike) -> int:
    """Total size in bytes of regular files below path (0 if missing)"""
    path = Path(path)
    if not path.exists():
        return 0

    total = 0
    for root, _dirs, files in os.walk(path):
        for name in files:
            file_path = Path(root) / name
            try:
                if file_path.is_file() and not file_path.is_symlink():
                    total += file_path.stat().st_size
            except OSError as e:
                logger.warning(f"Skipping {file_path} in size computation: {e}")
    return total


def child_directories(path: PathLike) -> List[Path]:
    """Immediate subdirectories of path, sorted by name"""
    path = Path(path)
    if not path.exists():
        return []
    return sorted(entry for entry in path.iterdir() if entry.is_dir())


def read_json(path: PathLike) -> Any:
    """Read and decode a JSON file"""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_json_atomic(path: PathLike, data: Dict[str, Any]) -> None:
    """
    Write JSON file atomically using temp file + rename.

    Parent directories are created first. Readers see either the old
    document or the new one, never a partial write.

    Raises:
        OSError: If the write or replace fails
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_file = path.parent / f".{path.name}.tmp"

    with open(temp_file, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
        f.flush()
        os.fsync(f.fileno())

    os.replace(temp_file, path)
