"""
Object store protocol for statesync.

Defines the interface the sync engine needs from a backend (S3, local directory).
"""

from typing import List, Protocol


class ObjectStore(Protocol):
    """Interface for object store backends."""

    def list_objects(self, prefix: str) -> List[str]:
        """List all object keys starting with ``prefix``."""
        ...

    def get_object(self, key: str) -> bytes:
        """
        Read the full content of an object.

        Args:
            key: Object key

        Returns:
            Object body as bytes
        """
        ...

    def put_object(self, key: str, data: bytes) -> None:
        """
        Create or overwrite an object.

        Args:
            key: Object key
            data: Body to store
        """
        ...
