"""
Local directory object store.

Mirrors state into a local directory instead of a bucket (a mounted volume,
or a scratch directory for dry runs). Keys map to relative paths.
"""

from pathlib import Path
from typing import List

from statesync.s3.client import S3Error


class LocalDirectoryStore:
    """Implementation of ObjectStore over the local filesystem."""

    def __init__(self, root: Path):
        """
        Initialize local directory store.

        Args:
            root: Directory that plays the role of the bucket
        """
        self.root = Path(root).resolve()

    def _path(self, method: str, key: str) -> Path:
        path = (self.root / key).resolve()
        if path != self.root and self.root not in path.parents:
            raise S3Error(method, key, 400, "key escapes store root")
        return path

    def list_objects(self, prefix: str) -> List[str]:
        """List keys under prefix in sorted order."""
        if not self.root.exists():
            return []

        keys = []
        for path in sorted(self.root.rglob("*")):
            if not path.is_file() or path.is_symlink():
                continue
            key = path.relative_to(self.root).as_posix()
            if key.startswith(prefix):
                keys.append(key)
        return keys

    def get_object(self, key: str) -> bytes:
        path = self._path("GET", key)
        if not path.is_file():
            raise S3Error("GET", key, 404, "NoSuchKey")
        return path.read_bytes()

    def put_object(self, key: str, data: bytes) -> None:
        path = self._path("PUT", key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
