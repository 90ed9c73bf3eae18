"""
Result models for statesync operations.

Sync passes never raise for per-file problems; they report them here and
the caller decides whether to log and continue.
"""

from typing import List

from pydantic import BaseModel, Field


class FileError(BaseModel):
    """A failure tied to a single file or object key."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


class UploadOutcome(BaseModel):
    """Result of one upload-changed pass."""

    uploaded: int = 0
    unchanged: int = 0
    errors: List[FileError] = Field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.errors)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


class RestoreOutcome(BaseModel):
    """Result of a restore."""

    restored: int = 0
    skipped: int = 0
    first_run: bool = False  # Remote listing was empty
    failed: bool = False     # Restore aborted; local state may be partial
    failure: str = ""

    @property
    def success(self) -> bool:
        return not self.failed
