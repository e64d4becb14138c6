"""Resolve uploader configuration from file, environment and overrides."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from multipart_uploader.config_manager.helpers import (
    load_config_file,
    parse_bytes,
    parse_header,
)
from multipart_uploader.config_manager.uploader_config import (
    ServerConfig,
    UploaderConfig,
)
from multipart_uploader.exceptions import ConfigurationError

_ENV_MAP: dict[str, str] = {
    "endpoint": "MPU_ENDPOINT",
    "namespace": "MPU_NAMESPACE",
    "headers": "MPU_HEADERS",
    "concurrency_limit": "MPU_CONCURRENCY_LIMIT",
    "part_min_size_bytes": "MPU_PART_MIN_SIZE",
    "max_num_parts": "MPU_MAX_NUM_PARTS",
    "resume_namespace": "MPU_RESUME_NAMESPACE",
    "state_db_path": "MPU_STATE_DB_PATH",
    "request_timeout_seconds": "MPU_REQUEST_TIMEOUT",
    "part_timeout_seconds": "MPU_PART_TIMEOUT",
    "debug_mode": "MPU_DEBUG",
}

_SERVER_FIELDS = frozenset(ServerConfig.model_fields)

YES_CONFIRMATION = {"1", "true", "yes", "y"}


class ConfigManager:
    """Build the effective uploader configuration.

    Sources are applied field by field, later ones winning:
    defaults, config file, environment, explicit overrides. Server fields may
    be given flat (``endpoint``) or under a ``server`` mapping.
    """

    def __init__(self, config_path: Path | None = None) -> None:
        """Initialise ConfigManager.

        Args:
            config_path: Optional YAML file with base configuration values.
        """
        self.config_path = config_path

    def _read_file_values(self) -> dict[str, Any]:
        if self.config_path is None:
            return {}
        try:
            return load_config_file(self.config_path)
        except (OSError, ValueError) as exc:
            raise ConfigurationError(
                f"Could not load config file {self.config_path}: {exc}"
            ) from exc

    def _read_env_overrides(self) -> dict[str, Any]:
        """Read configuration overrides from environment variables.

        Returns:
            A dictionary of configuration field names to override values.
            Unparseable values are skipped.
        """
        overrides: dict[str, Any] = {}

        for field_name, env_var_name in _ENV_MAP.items():
            env_value = os.getenv(env_var_name)
            if env_value is None:
                continue

            if field_name == "part_min_size_bytes":
                try:
                    overrides[field_name] = parse_bytes(env_value)
                except ValueError:
                    continue
            elif field_name in {"concurrency_limit", "max_num_parts"}:
                try:
                    overrides[field_name] = int(env_value)
                except ValueError:
                    continue
            elif field_name in {"request_timeout_seconds", "part_timeout_seconds"}:
                try:
                    overrides[field_name] = float(env_value)
                except ValueError:
                    continue
            elif field_name == "debug_mode":
                overrides[field_name] = env_value.lower() in YES_CONFIRMATION
            elif field_name == "headers":
                headers: dict[str, str] = {}
                for item in env_value.split(";"):
                    if not item.strip():
                        continue
                    try:
                        name, value = parse_header(item)
                    except ValueError:
                        continue
                    headers[name] = value
                overrides[field_name] = headers
            else:
                overrides[field_name] = env_value

        return overrides

    @staticmethod
    def _apply(config: UploaderConfig, updates: dict[str, Any]) -> UploaderConfig:
        """Override individual fields of ``config``; None values are ignored."""
        server_updates = dict(updates.get("server") or {})
        top_updates: dict[str, Any] = {}
        for name, value in updates.items():
            if name == "server" or value is None:
                continue
            if name in _SERVER_FIELDS:
                server_updates[name] = value
            else:
                top_updates[name] = value

        if "part_min_size_bytes" in top_updates:
            top_updates["part_min_size_bytes"] = parse_bytes(
                top_updates["part_min_size_bytes"]
            )

        server_data = config.server.model_dump()
        server_data.update(
            {name: value for name, value in server_updates.items() if value is not None}
        )
        data = config.model_dump()
        data.update(top_updates)
        data["server"] = server_data
        return UploaderConfig.model_validate(data)

    def resolve_effective_config(
        self, overrides: dict[str, Any] | None = None
    ) -> UploaderConfig:
        """Resolve the effective configuration for this run.

        Args:
            overrides: Explicit values, e.g. from CLI options.

        Returns:
            The resolved ``UploaderConfig``.

        Raises:
            ConfigurationError: If a value is invalid.
        """
        try:
            config = UploaderConfig()
            for updates in (
                self._read_file_values(),
                self._read_env_overrides(),
                overrides or {},
            ):
                config = self._apply(config, updates)
        except (ValidationError, ValueError) as exc:
            raise ConfigurationError(f"Invalid uploader configuration: {exc}") from exc
        return config
