"""
statesync - persist a gateway's state directory to S3-compatible storage.

Restores state on boot, backs up changed files periodically and flushes
on shutdown, so state survives ephemeral container restarts.
"""

from statesync.config import SyncConfig, ConfigurationError
from statesync.models import FileError, RestoreOutcome, UploadOutcome
from statesync.s3.client import S3Client, S3Error
from statesync.sync.manager import BackupLoop, SyncEngine
from statesync.sync.rules import DEFAULT_RULES, SyncRules

__version__ = "0.1.0"
__all__ = [
    "SyncConfig",
    "ConfigurationError",
    "FileError",
    "RestoreOutcome",
    "UploadOutcome",
    "S3Client",
    "S3Error",
    "BackupLoop",
    "SyncEngine",
    "DEFAULT_RULES",
    "SyncRules",
]
