"""
Local file discovery and content hashing.
"""

import hashlib
import logging
import os
from pathlib import Path
from typing import List

from statesync.sync.rules import SyncRules

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def file_hash(path: Path) -> str:
    """SHA-256 hex digest of a file's raw bytes."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def discover_files(state_dir: Path, rules: SyncRules) -> List[str]:
    """
    Find files under the state directory that the rules make eligible.

    Only regular files are considered; symlinks and special files are skipped.

    Returns:
        Sorted relative POSIX paths
    """
    state_dir = Path(state_dir)
    if not state_dir.is_dir():
        return []

    files = []
    for dirpath, dirnames, filenames in os.walk(state_dir, onerror=_log_walk_error):
        dirnames.sort()
        base = Path(dirpath)
        for name in sorted(filenames):
            path = base / name
            if path.is_symlink() or not path.is_file():
                continue
            relative = path.relative_to(state_dir).as_posix()
            if rules.is_eligible(relative):
                files.append(relative)
    return sorted(files)


def _log_walk_error(error: OSError) -> None:
    logger.warning(f"Skipping unreadable directory {error.filename}: {error.strerror}")
