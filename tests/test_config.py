"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from grid_watch.config.manager import ConfigManager
from grid_watch.config.schema import AppConfig, TelegramConfig, parse_user_ids
from grid_watch.errors import ConfigError

REQUIRED_ENV = {
    "DEYE_APP_ID": "app-1",
    "DEYE_APP_SECRET": "secret",
    "DEYE_EMAIL": "owner@example.com",
    "DEYE_PASSWORD": "hunter2",
    "TELEGRAM_BOT_TOKEN": "123:abc",
    "TELEGRAM_USER_IDS": "111,222",
}

REPO_DEFAULTS = Path(__file__).resolve().parent.parent / "config.defaults.yaml"


def _manager(tmp_path: Path, environ: dict[str, str], defaults: str = "", user: str | None = None) -> ConfigManager:
    defaults_file = tmp_path / "defaults.yaml"
    defaults_file.write_text(defaults, encoding="utf-8")
    user_file = tmp_path / "user.yaml"
    if user is not None:
        user_file.write_text(user, encoding="utf-8")
    return ConfigManager(defaults_path=defaults_file, user_path=user_file, environ=environ)


class TestAppConfig:
    def test_default_config(self) -> None:
        config = AppConfig()
        assert config.deye.base_url == "https://eu1-developer.deyecloud.com"
        assert config.deye.token_validity_seconds == 59 * 24 * 3600
        assert config.outage.cache_ttl_seconds == 600
        assert config.monitor.poll_interval_seconds == 60
        assert config.telegram.parse_mode == "HTML"

    def test_defaults_are_missing_credentials(self) -> None:
        assert AppConfig().missing_required() == [
            "deye.app_id",
            "deye.app_secret",
            "deye.email",
            "deye.password",
            "telegram.bot_token",
            "telegram.user_ids",
        ]

    def test_long_poll_fits_in_request_timeout(self) -> None:
        cfg = TelegramConfig()
        assert cfg.request_timeout_seconds > cfg.long_poll_timeout_seconds


class TestUserIds:
    def test_comma_separated(self) -> None:
        assert parse_user_ids(" 111, 222 ,,333, ") == [111, 222, 333]

    def test_negative_group_ids(self) -> None:
        assert parse_user_ids("-1001234567890") == [-1001234567890]

    def test_invalid_item(self) -> None:
        with pytest.raises(ValueError, match="abc"):
            parse_user_ids("111,abc")

    def test_schema_accepts_string(self) -> None:
        assert TelegramConfig(user_ids="1,2").user_ids == [1, 2]


class TestConfigManager:
    def test_env_fills_required(self, tmp_path: Path) -> None:
        config = _manager(tmp_path, REQUIRED_ENV).load()
        assert config.deye.app_id == "app-1"
        assert config.telegram.user_ids == [111, 222]

    def test_env_overrides_yaml(self, tmp_path: Path) -> None:
        env = dict(REQUIRED_ENV, POLL_INTERVAL_SEC="15", DEYE_STATION_ID="77", LOG_LEVEL="DEBUG")
        mgr = _manager(tmp_path, env, defaults="monitor:\n  poll_interval_seconds: 60\n")
        config = mgr.load()
        assert config.monitor.poll_interval_seconds == 15
        assert config.deye.station_id == 77
        assert config.logging.level == "DEBUG"

    def test_user_yaml_overrides_defaults(self, tmp_path: Path) -> None:
        mgr = _manager(
            tmp_path, REQUIRED_ENV,
            defaults="outage:\n  house: '63'\n  enabled: true\n",
            user="outage:\n  house: '1'\n",
        )
        config = mgr.load()
        assert config.outage.house == "1"
        assert config.outage.enabled is True

    def test_empty_env_value_ignored(self, tmp_path: Path) -> None:
        env = dict(REQUIRED_ENV, DEYE_BASE_URL="")
        config = _manager(tmp_path, env).load()
        assert config.deye.base_url == "https://eu1-developer.deyecloud.com"

    def test_missing_required_names_all(self, tmp_path: Path) -> None:
        env = {k: v for k, v in REQUIRED_ENV.items() if k not in ("DEYE_PASSWORD", "TELEGRAM_BOT_TOKEN")}
        with pytest.raises(ConfigError) as exc_info:
            _manager(tmp_path, env).load()
        assert "deye.password" in str(exc_info.value)
        assert "telegram.bot_token" in str(exc_info.value)

    def test_bad_user_id_is_config_error(self, tmp_path: Path) -> None:
        env = dict(REQUIRED_ENV, TELEGRAM_USER_IDS="111,bob")
        with pytest.raises(ConfigError):
            _manager(tmp_path, env).load()

    def test_only_separators_is_missing(self, tmp_path: Path) -> None:
        env = dict(REQUIRED_ENV, TELEGRAM_USER_IDS=" , ,")
        with pytest.raises(ConfigError, match="telegram.user_ids"):
            _manager(tmp_path, env).load()

    def test_bad_number_is_config_error(self, tmp_path: Path) -> None:
        env = dict(REQUIRED_ENV, POLL_INTERVAL_SEC="soon")
        with pytest.raises(ConfigError):
            _manager(tmp_path, env).load()

    def test_repo_defaults_file_loads(self, tmp_path: Path) -> None:
        mgr = ConfigManager(
            defaults_path=REPO_DEFAULTS, user_path=tmp_path / "none.yaml", environ=REQUIRED_ENV,
        )
        config = mgr.load()
        assert config.outage.house == "63"
        assert config.timezone == "Europe/Kyiv"

    def test_deep_merge(self) -> None:
        base = {"a": {"b": 1, "c": 2}, "d": 3}
        override = {"a": {"b": 10}, "e": 5}
        result = ConfigManager._deep_merge(base, override)
        assert result == {"a": {"b": 10, "c": 2}, "d": 3, "e": 5}
