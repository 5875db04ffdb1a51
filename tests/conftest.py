"""Shared test fixtures for Grid Watch."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from grid_watch.config.schema import AppConfig, DeyeCloudConfig, OutageConfig, TelegramConfig
from grid_watch.telemetry.models import DeviceState, PowerStatus


@pytest.fixture
def deye_config() -> DeyeCloudConfig:
    return DeyeCloudConfig(
        base_url="https://deye.test",
        app_id="app-1",
        app_secret="app-secret",
        email="owner@example.com",
        password="hunter2",
        station_id=42,
        device_sn="SN-1",
    )


@pytest.fixture
def telegram_config() -> TelegramConfig:
    return TelegramConfig(
        bot_token="123:abc",
        user_ids=[111, 222, 333],
        api_base_url="https://telegram.test",
        retry_backoff_seconds=0.01,
    )


@pytest.fixture
def outage_config() -> OutageConfig:
    return OutageConfig(
        city="м. Підгороднє",
        street="вул. Сагайдачного Петра",
        house="1",
        page_url="https://dtek.test/ua/shutdowns",
        ajax_url="https://dtek.test/ua/ajax",
        origin="https://dtek.test",
        cache_ttl_seconds=600,
    )


@pytest.fixture
def config(deye_config, telegram_config, outage_config) -> AppConfig:
    """A complete, valid configuration with the outage lookup disabled."""
    return AppConfig(
        deye=deye_config,
        telegram=telegram_config,
        outage=outage_config.model_copy(update={"enabled": False}),
        shutdown_timeout_seconds=1,
    )


@pytest.fixture
def grid_up_status() -> PowerStatus:
    return PowerStatus(
        has_grid=True,
        grid_power_w=1200,
        purchase_power_w=1200,
        generation_power_w=850,
        consumption_power_w=1900,
        battery_soc=87,
        battery_power_w=-150,
        device_online=True,
        device_state=DeviceState.ONLINE,
        updated_at=datetime(2026, 10, 19, 12, 30, tzinfo=timezone.utc),
    )


@pytest.fixture
def grid_down_status() -> PowerStatus:
    return PowerStatus(
        has_grid=False,
        generation_power_w=300,
        consumption_power_w=640,
        battery_soc=64,
        battery_power_w=340,
        discharge_power_w=340,
        device_online=True,
        device_state=DeviceState.ONLINE,
        updated_at=datetime(2026, 10, 19, 13, 5, tzinfo=timezone.utc),
    )
