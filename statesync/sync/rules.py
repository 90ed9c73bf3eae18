"""
Sync rule set: which paths under the state directory are persisted.

The rules are compiled in. They follow the layout of the gateway's state
directory (identity material, credential caches, the paired-device registry
and per-agent session data) and are not meant to be user-tunable.
"""

from dataclasses import dataclass, field
from typing import Tuple

LOGS_PREFIX = "logs/"

# Rewritten from the environment on every boot.
REGENERATED_CONFIG = "openclaw.json"


@dataclass(frozen=True)
class SyncRules:
    """
    Include/exclude patterns for relative POSIX paths.

    Include patterns ending in ``/`` match a directory tree by prefix, others
    match a path exactly. Exclude patterns are substrings and always win.
    """

    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()
    logs_prefix: str = field(default=LOGS_PREFIX)
    regenerated_config: str = field(default=REGENERATED_CONFIG)

    def is_excluded(self, relative_path: str) -> bool:
        if any(pattern in relative_path for pattern in self.exclude):
            return True
        if relative_path.startswith(self.logs_prefix):
            return True
        return relative_path == self.regenerated_config

    def is_included(self, relative_path: str) -> bool:
        for pattern in self.include:
            if pattern.endswith("/"):
                if relative_path.startswith(pattern):
                    return True
            elif relative_path == pattern:
                return True
        return False

    def is_eligible(self, relative_path: str) -> bool:
        """True if the path should be persisted."""
        if not relative_path or self.is_excluded(relative_path):
            return False
        return self.is_included(relative_path)


DEFAULT_RULES = SyncRules(
    include=(
        "identity/device.json",
        "identity/device-auth.json",
        "credentials/",
        "devices/paired.json",
        "agents/",
    ),
    exclude=(
        # Regenerated at agent startup
        "/qmd/xdg-config/",
    ),
)
