"""
Configuration management for statesync.

Settings are read from the environment (``S3_*`` plus ``OPENCLAW_STATE_DIR``)
and optionally from a YAML file. A single ``SyncConfig`` is built at process
entry and handed to the S3 client and the sync engine.
"""

from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_REGION = "us-east-1"
DEFAULT_PREFIX = "openclaw"
DEFAULT_STATE_DIR = Path("/home/vcap/app/data")

# Fixed on purpose, not read from the environment.
BACKUP_INTERVAL_SECONDS = 60.0


class ConfigurationError(Exception):
    """Required settings are missing or invalid."""
    pass


class SyncConfig(BaseSettings):
    """statesync configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="S3_",
        populate_by_name=True,
        extra="ignore",
    )

    # Credentials
    access_key_id: str = Field(min_length=1)
    secret_access_key: str = Field(min_length=1)
    bucket: str = Field(min_length=1)

    # Endpoint
    endpoint: Optional[str] = None
    region: str = Field(default=DEFAULT_REGION)
    prefix: str = Field(default=DEFAULT_PREFIX)
    verify_tls: bool = False
    timeout: float = Field(default=30.0, gt=0)

    # Backend selection ("s3" or "local")
    backend: str = "s3"
    local_root: Optional[Path] = None

    state_dir: Path = Field(default=DEFAULT_STATE_DIR, validation_alias="OPENCLAW_STATE_DIR")

    @field_validator("endpoint", mode="before")
    @classmethod
    def _blank_endpoint_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("region", "prefix", mode="before")
    @classmethod
    def _blank_uses_default(cls, value, info):
        if isinstance(value, str) and not value.strip():
            return DEFAULT_REGION if info.field_name == "region" else DEFAULT_PREFIX
        return value

    @field_validator("prefix")
    @classmethod
    def _strip_slashes(cls, value: str) -> str:
        value = value.strip("/")
        if not value:
            raise ValueError("prefix must not be empty")
        return value

    @field_validator("backend")
    @classmethod
    def _known_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in ("s3", "local"):
            raise ValueError(f"unknown backend '{value}' (expected 's3' or 'local')")
        return value

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "SyncConfig":
        """
        Build the configuration from the environment and an optional YAML file.

        Values from the file win over environment variables.

        Raises:
            ConfigurationError: If a required value is missing or invalid
        """
        data = {}
        if config_path is not None:
            config_path = Path(config_path)
            if not config_path.exists():
                raise ConfigurationError(f"Config file not found: {config_path}")
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ConfigurationError(f"Config file must contain a mapping: {config_path}")

        try:
            config = cls(**data)
        except ValidationError as e:
            raise ConfigurationError(_describe(e)) from e

        if config.backend == "local" and config.local_root is None:
            raise ConfigurationError("S3_LOCAL_ROOT is required when S3_BACKEND=local")
        return config

    @property
    def path_style(self) -> bool:
        """An explicit endpoint implies path-style addressing."""
        return self.endpoint is not None

    @property
    def scheme(self) -> str:
        if not self.path_style:
            return "https"
        return "https" if urlsplit(self.endpoint).scheme == "https" else "http"

    @property
    def hostname(self) -> str:
        if not self.path_style:
            return f"{self.bucket}.s3.{self.region}.amazonaws.com"
        return urlsplit(self.endpoint).hostname or ""

    @property
    def port(self) -> int:
        if self.path_style:
            explicit = urlsplit(self.endpoint).port
            if explicit:
                return explicit
        return 443 if self.scheme == "https" else 80

    @property
    def host_header(self) -> str:
        """Host header value, with the port only when it is not the default."""
        default_port = 443 if self.scheme == "https" else 80
        if self.port == default_port:
            return self.hostname
        return f"{self.hostname}:{self.port}"

    @property
    def key_prefix(self) -> str:
        """The object-key prefix used for listing, with a trailing slash."""
        return f"{self.prefix}/"

    def object_key(self, relative_path: str) -> str:
        """Remote key for a path relative to the state directory."""
        return f"{self.prefix}/{relative_path}"


def _describe(error: ValidationError) -> str:
    """Turn a pydantic error into a one-line message naming the variables."""
    problems = []
    for item in error.errors():
        field = str(item["loc"][0]) if item["loc"] else "?"
        if field in ("state_dir", "OPENCLAW_STATE_DIR"):
            name = "OPENCLAW_STATE_DIR"
        else:
            name = f"S3_{field.upper()}"
        if item["type"] in ("missing", "string_too_short"):
            problems.append(f"{name} is required")
        else:
            problems.append(f"{name}: {item['msg']}")
    return "Invalid configuration: " + "; ".join(problems)
