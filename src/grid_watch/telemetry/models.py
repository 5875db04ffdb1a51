"""Deye Cloud wire models and the normalized PowerStatus snapshot."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import IntEnum

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class DeviceState(IntEnum):
    """Device connection state as reported by ``device/latest``."""

    UNKNOWN = 0
    ONLINE = 1
    ALERT = 2
    OFFLINE = 3


class _Envelope(BaseModel):
    """Fields every Deye Cloud response carries."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    success: bool = False
    code: str | int | None = None
    msg: str | None = None


class TokenResponse(_Envelope):
    access_token: str = Field("", alias="accessToken")
    refresh_token: str = Field("", alias="refreshToken")
    expires_in: str | int | None = Field(None, alias="expiresIn")


class DeviceInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    device_sn: str = Field("", alias="deviceSn")
    device_id: int = Field(0, alias="deviceId")
    device_type: str = Field("", alias="deviceType")
    product_id: int | str | None = Field(None, alias="productId")
    station_id: int = Field(0, alias="stationId")
    connect_status: int = Field(0, alias="connectStatus")
    product_name: str = Field("", alias="productName")
    station_name: str = Field("", alias="stationName")


class DeviceListResponse(_Envelope):
    total: int = 0
    devices: list[DeviceInfo] = Field(default_factory=list, alias="deviceListItems")


class StationLatest(_Envelope):
    """Latest station-level readings. Every numeric field may be absent."""

    generation_power: float | None = Field(None, alias="generationPower")
    consumption_power: float | None = Field(None, alias="consumptionPower")
    grid_power: float | None = Field(None, alias="gridPower")
    purchase_power: float | None = Field(None, alias="purchasePower")
    wire_power: float | None = Field(None, alias="wirePower")
    battery_power: float | None = Field(None, alias="batteryPower")
    battery_soc: float | None = Field(None, alias="batterySOC")
    charge_power: float | None = Field(None, alias="chargePower")
    discharge_power: float | None = Field(None, alias="dischargePower")
    last_update_time: float | None = Field(None, alias="lastUpdateTime")


class DeviceDataItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    value: str | None = None
    unit: str | None = None


class DeviceLatestEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    device_sn: str = Field("", alias="deviceSn")
    device_state: int = Field(0, alias="deviceState")
    collection_time: int | None = Field(None, alias="collectionTime")
    data_list: list[DeviceDataItem] = Field(default_factory=list, alias="dataList")


class DeviceLatest(_Envelope):
    devices: list[DeviceLatestEntry] = Field(default_factory=list, alias="deviceListItems")


@dataclass(frozen=True)
class PowerStatus:
    """Point-in-time snapshot of the installation's power flows."""

    has_grid: bool
    grid_power_w: float = 0.0
    purchase_power_w: float = 0.0
    generation_power_w: float = 0.0
    consumption_power_w: float = 0.0
    battery_soc: float = 0.0  # percent, 0-100
    battery_power_w: float = 0.0
    discharge_power_w: float = 0.0
    device_online: bool = False
    device_state: DeviceState = DeviceState.UNKNOWN
    updated_at: datetime | None = None

    @classmethod
    def from_raw(cls, station: StationLatest, device: DeviceLatest | None = None) -> PowerStatus:
        """Normalize raw telemetry. Absent readings become 0.

        Grid presence: if either grid field is reported, the grid is up when
        either is above zero. When neither is reported the installation is
        treated as off-grid (running on battery).
        """
        if station.grid_power is not None or station.purchase_power is not None:
            has_grid = _or_zero(station.grid_power) > 0 or _or_zero(station.purchase_power) > 0
        else:
            has_grid = False

        state = DeviceState.UNKNOWN
        if device is not None and device.devices:
            try:
                state = DeviceState(device.devices[0].device_state)
            except ValueError:
                state = DeviceState.UNKNOWN

        updated_at = None
        if station.last_update_time:
            try:
                updated_at = datetime.fromtimestamp(station.last_update_time, tz=timezone.utc)
            except (ValueError, OverflowError, OSError):
                # Display-only; messages fall back to the current time
                logger.debug("Unusable lastUpdateTime %r", station.last_update_time)

        return cls(
            has_grid=has_grid,
            grid_power_w=_or_zero(station.grid_power),
            purchase_power_w=_or_zero(station.purchase_power),
            generation_power_w=_or_zero(station.generation_power),
            consumption_power_w=_or_zero(station.consumption_power),
            battery_soc=_or_zero(station.battery_soc),
            battery_power_w=_or_zero(station.battery_power),
            discharge_power_w=_or_zero(station.discharge_power),
            device_online=state == DeviceState.ONLINE,
            device_state=state,
            updated_at=updated_at,
        )


def _or_zero(value: float | None) -> float:
    return 0.0 if value is None else float(value)
