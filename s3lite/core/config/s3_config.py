"""Pydantic model and loader for s3lite client configuration."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError

from s3lite.core.config.helpers import parse_bytes
from s3lite.core.const import (
    CONFIG_FILE_ENV_VAR,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONFIG_FILE,
    DEFAULT_HOST,
    DEFAULT_SCHEME,
    DEFAULT_TIMEOUT_SECONDS,
    MULTIPART_THRESHOLD,
)
from s3lite.core.exceptions import ConfigError

_ENV_MAP: dict[str, str] = {
    "bucket": "S3_BUCKET",
    "access_id": "S3_ACCESS_ID",
    "secret": "S3_SECRET_KEY",
    "host": "S3_HOST",
    "scheme": "S3_SCHEME",
    "timeout": "S3_TIMEOUT",
    "chunk_size": "S3_CHUNK_SIZE",
    "multipart_threshold": "S3_MULTIPART_THRESHOLD",
}

_BYTE_FIELDS = {"chunk_size", "multipart_threshold"}


class S3Config(BaseModel):
    """Credentials and endpoint settings for one bucket.

    Attributes:
        bucket: bucket every request is addressed to.
        access_id: public access identifier sent in the Authorization header.
        secret: shared secret used to sign requests.
        host: store host; requests go to ``{bucket}.{host}``.
        scheme: ``https`` or ``http``.
        timeout: per-request transport timeout in seconds.
        chunk_size: part size used when splitting large uploads, in bytes.
        multipart_threshold: uploads larger than this use the multipart API.
    """

    model_config = ConfigDict(frozen=True)

    bucket: str = Field(min_length=1)
    access_id: str = Field(min_length=1)
    secret: SecretStr
    host: str = DEFAULT_HOST
    scheme: str = Field(default=DEFAULT_SCHEME, pattern="^https?$")
    timeout: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, gt=0)
    multipart_threshold: int = Field(default=MULTIPART_THRESHOLD, gt=0)

    @property
    def endpoint(self) -> str:
        """Base URL of the bucket, without a trailing slash."""
        return f"{self.scheme}://{self.bucket}.{self.host}"


def _read_env_overrides() -> dict[str, Any]:
    """Read configuration values from environment variables.

    Returns:
        A dictionary of configuration field names to values.

    Raises:
        ConfigError: If a byte-sized variable cannot be parsed.
    """
    overrides: dict[str, Any] = {}

    for field_name, env_var_name in _ENV_MAP.items():
        env_value = os.getenv(env_var_name)
        if env_value is None:
            continue
        env_value = env_value.strip()
        if not env_value:
            continue

        if field_name in _BYTE_FIELDS:
            try:
                overrides[field_name] = parse_bytes(env_value)
            except ValueError as exc:
                raise ConfigError(f"{env_var_name}: {exc}") from exc
        else:
            overrides[field_name] = env_value

    return overrides


def _resolve_config_file(config_file: Path | str | None) -> Path | None:
    if config_file is not None:
        return Path(config_file).expanduser()
    env_path = os.getenv(CONFIG_FILE_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_FILE if DEFAULT_CONFIG_FILE.exists() else None


def read_config_file(path: Path) -> dict[str, Any]:
    """Read configuration values from a YAML file.

    Byte-sized fields accept unit suffixes, as in the environment.

    Args:
        path: YAML file holding a mapping of field names to values.

    Returns:
        A dictionary of configuration field names to values.

    Raises:
        ConfigError: If the file is missing, unreadable, or not a mapping.
    """
    try:
        with path.open(encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    values: dict[str, Any] = {}
    for field_name, value in data.items():
        if field_name not in S3Config.model_fields:
            raise ConfigError(f"Unknown option {field_name!r} in config file {path}")
        if field_name in _BYTE_FIELDS and value is not None:
            try:
                value = parse_bytes(value)
            except ValueError as exc:
                raise ConfigError(f"{field_name}: {exc}") from exc
        values[field_name] = value
    return values


def load_config(
    overrides: dict[str, Any] | None = None,
    config_file: Path | str | None = None,
) -> S3Config:
    """Resolve the effective client configuration.

    Values are layered in increasing precedence: the YAML config file
    (``config_file``, else ``$S3LITE_CONFIG_FILE``, else
    ``~/.s3lite/config.yaml`` when it exists), then ``S3_*`` environment
    variables, then explicit overrides.

    Args:
        overrides: Optional field values taking precedence over everything else.
        config_file: Optional path of a YAML config file.

    Returns:
        The validated ``S3Config``.

    Raises:
        ConfigError: If required settings are missing or invalid.
    """
    values: dict[str, Any] = {}
    path = _resolve_config_file(config_file)
    if path is not None:
        values.update(read_config_file(path))

    values.update(_read_env_overrides())
    if overrides:
        values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return S3Config(**values)
    except ValidationError as exc:
        missing = [
            _ENV_MAP.get(str(error["loc"][0]), str(error["loc"][0]))
            for error in exc.errors()
            if error["type"] == "missing"
        ]
        if missing:
            raise ConfigError(
                f"Missing required configuration: {', '.join(missing)}"
            ) from exc
        raise ConfigError(f"Invalid configuration: {exc}") from exc
