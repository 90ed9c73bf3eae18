"""
Sync Engine for statesync.

Orchestrates the three operating modes:
1. Restore: download persisted state before the gateway starts
2. Backup loop: periodically upload files whose content changed
3. Flush: one final upload pass at shutdown

Change detection uses an in-memory map of relative path to the SHA-256 of
the bytes last known to be in the store. The map lives only as long as the
process; restore seeds it so the first backup pass skips restored files.
"""

import logging
import signal
import threading
from pathlib import Path
from typing import Dict, Optional

from statesync.config import BACKUP_INTERVAL_SECONDS, SyncConfig
from statesync.models import FileError, RestoreOutcome, UploadOutcome
from statesync.s3.signing import sha256_hex
from statesync.sync.adapter import ObjectStore
from statesync.sync.discovery import discover_files, file_hash
from statesync.sync.rules import DEFAULT_RULES, SyncRules

logger = logging.getLogger(__name__)


class SyncEngine:
    """
    Mirrors eligible files of the state directory to an object store.

    Files are processed one at a time; no pass runs uploads in parallel.
    Local deletions are never propagated.
    """

    def __init__(
        self,
        config: SyncConfig,
        store: ObjectStore,
        rules: SyncRules = DEFAULT_RULES,
    ):
        self.config = config
        self.store = store
        self.rules = rules
        self.state_dir = Path(config.state_dir)
        self.hash_cache: Dict[str, str] = {}

    def _local_path(self, relative_path: str) -> Optional[Path]:
        """Resolve a relative path inside the state directory, or None if it escapes."""
        if relative_path.startswith("/") or ".." in relative_path.split("/"):
            return None
        return self.state_dir / relative_path

    def restore(self) -> RestoreOutcome:
        """
        Download persisted files into the state directory.

        Never raises: a failed restore is logged and reported so the gateway
        can still start with empty or partial state.
        """
        outcome = RestoreOutcome()
        prefix = self.config.key_prefix
        logger.info(f"Restoring state from s3://{self.config.bucket}/{prefix}")

        try:
            keys = self.store.list_objects(prefix)
            if not keys:
                outcome.first_run = True
                logger.info("No existing state found (first run)")
                return outcome

            for key in keys:
                relative_path = key[len(prefix):] if key.startswith(prefix) else ""
                local_path = self._local_path(relative_path)
                # Keys ending in "/" are folder markers, not files
                if (
                    not relative_path
                    or relative_path.endswith("/")
                    or local_path is None
                    or not self.rules.is_eligible(relative_path)
                ):
                    logger.debug(f"Skipping remote object {key}")
                    outcome.skipped += 1
                    continue

                local_path.parent.mkdir(parents=True, exist_ok=True)
                data = self.store.get_object(key)
                local_path.write_bytes(data)
                self.hash_cache[relative_path] = sha256_hex(data)
                outcome.restored += 1

            logger.info(f"Restored {outcome.restored} file(s)")
        except Exception as e:
            outcome.failed = True
            outcome.failure = str(e)
            logger.error(
                f"Restore failed after {outcome.restored} file(s), "
                f"starting with partial state: {e}"
            )

        return outcome

    def upload_changed(self) -> UploadOutcome:
        """
        Upload every eligible file whose content differs from the cached hash.

        A failure on one file is recorded and the pass moves on.
        """
        outcome = UploadOutcome()

        for relative_path in discover_files(self.state_dir, self.rules):
            local_path = self.state_dir / relative_path
            try:
                current = file_hash(local_path)
                if self.hash_cache.get(relative_path) == current:
                    outcome.unchanged += 1
                    continue

                data = local_path.read_bytes()
                self.store.put_object(self.config.object_key(relative_path), data)
                # Cache the hash of what was sent, in case the file changed since hashing.
                self.hash_cache[relative_path] = sha256_hex(data)
                outcome.uploaded += 1
            except Exception as e:
                logger.error(f"Failed to upload {relative_path}: {e}")
                outcome.errors.append(FileError(path=relative_path, message=str(e)))

        return outcome

    def flush(self) -> UploadOutcome:
        """Run a single upload pass before shutdown. Never raises."""
        logger.info("Flushing state to object store...")
        try:
            outcome = self.upload_changed()
        except Exception as e:
            logger.error(f"Flush failed: {e}")
            return UploadOutcome(errors=[FileError(path=self.config.key_prefix, message=str(e))])

        logger.info(f"Flushed {outcome.uploaded} changed file(s)")
        if outcome.errors:
            logger.warning(f"{outcome.failed} file(s) could not be flushed")
        return outcome


class BackupLoop:
    """
    Runs upload passes on a fixed interval until stopped.

    The first pass runs one interval after start. ``stop`` only cancels the
    wait between passes; a pass already in progress runs to completion.
    """

    def __init__(
        self,
        engine: SyncEngine,
        interval: float = BACKUP_INTERVAL_SECONDS,
        stop_event: Optional[threading.Event] = None,
    ):
        self.engine = engine
        self.interval = interval
        self.stop_event = stop_event or threading.Event()
        self.passes = 0

    def stop(self) -> None:
        self.stop_event.set()

    def install_signal_handlers(self) -> None:
        """Stop the loop on SIGTERM and SIGINT. Must be called from the main thread."""
        def _handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, stopping backup loop")
            self.stop()

        signal.signal(signal.SIGTERM, _handler)
        signal.signal(signal.SIGINT, _handler)

    def tick(self) -> Optional[UploadOutcome]:
        """Run one pass, logging instead of raising."""
        self.passes += 1
        try:
            outcome = self.engine.upload_changed()
        except Exception as e:
            logger.error(f"Backup cycle error: {e}")
            return None

        if outcome.uploaded > 0:
            logger.info(f"Backed up {outcome.uploaded} changed file(s)")
        return outcome

    def run(self) -> None:
        """Block until ``stop`` is called."""
        logger.info(f"Starting backup loop (every {self.interval:g}s)")
        while not self.stop_event.wait(self.interval):
            self.tick()
        logger.info("Backup loop stopped")
