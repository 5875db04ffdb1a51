"""Configuration loading: YAML defaults, user overrides, then environment."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from grid_watch.config.schema import AppConfig
from grid_watch.errors import ConfigError

logger = logging.getLogger(__name__)

# Environment variable -> dotted config path
ENV_OVERRIDES: dict[str, str] = {
    "DEYE_BASE_URL": "deye.base_url",
    "DEYE_APP_ID": "deye.app_id",
    "DEYE_APP_SECRET": "deye.app_secret",
    "DEYE_EMAIL": "deye.email",
    "DEYE_PASSWORD": "deye.password",
    "DEYE_STATION_ID": "deye.station_id",
    "DEYE_DEVICE_SN": "deye.device_sn",
    "TELEGRAM_BOT_TOKEN": "telegram.bot_token",
    "TELEGRAM_USER_IDS": "telegram.user_ids",
    "POLL_INTERVAL_SEC": "monitor.poll_interval_seconds",
    "LOG_LEVEL": "logging.level",
}


class ConfigManager:
    """Loads config from YAML files and the environment, then validates it."""

    def __init__(
        self,
        defaults_path: Path | None = None,
        user_path: Path | None = None,
        environ: Mapping[str, str] | None = None,
        dotenv_path: Path | None = None,
    ) -> None:
        self._defaults_path = defaults_path or Path("config.defaults.yaml")
        self._user_path = user_path or Path("config.yaml")
        self._environ = environ
        self._dotenv_path = dotenv_path or Path(".env")

    def load(self) -> AppConfig:
        """Load and validate configuration.

        Raises:
            ConfigError: if validation fails or required settings are empty.
        """
        defaults = self._load_yaml(self._defaults_path)
        overrides = self._load_yaml(self._user_path) if self._user_path.exists() else {}
        merged = self._deep_merge(defaults, overrides)
        merged = self._deep_merge(merged, self._env_overrides())

        try:
            config = AppConfig.model_validate(merged)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration: {exc}") from exc

        missing = config.missing_required()
        if missing:
            raise ConfigError("Missing required settings: " + ", ".join(missing))

        logger.info("Configuration loaded successfully")
        return config

    def _env_overrides(self) -> dict[str, Any]:
        """Build a nested override dict from the environment.

        When no explicit environ mapping was given, a ``.env`` file is
        loaded into the process environment first (existing variables win).
        """
        if self._environ is None:
            load_dotenv(self._dotenv_path, override=False)
            environ: Mapping[str, str] = os.environ
        else:
            environ = self._environ

        result: dict[str, Any] = {}
        for var, dotted in ENV_OVERRIDES.items():
            value = environ.get(var)
            if value is None or value == "":
                continue
            node = result
            *parents, leaf = dotted.split(".")
            for key in parents:
                node = node.setdefault(key, {})
            node[leaf] = value
        return result

    @staticmethod
    def _load_yaml(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Recursively merge override into base, returning a new dict."""
        result = dict(base)
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = ConfigManager._deep_merge(result[key], value)
            else:
                result[key] = value
        return result
