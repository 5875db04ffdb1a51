"""Deye Cloud OpenAPI client.

All endpoints are JSON POSTs authorized with a bearer token:
  /v1.0/account/token    token exchange (see token.py)
  /v1.0/device/list      paginated device discovery
  /v1.0/station/latest   station power flows
  /v1.0/device/latest    per-device state and data points

A 401 on any call triggers one re-authentication and one retry.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from grid_watch.config.schema import DeyeCloudConfig
from grid_watch.errors import TelemetryTransportError, TelemetryUpstreamError
from grid_watch.telemetry.models import (
    DeviceInfo,
    DeviceLatest,
    DeviceListResponse,
    PowerStatus,
    StationLatest,
)
from grid_watch.telemetry.result import Err, ErrorKind, Ok, Outcome
from grid_watch.telemetry.token import TokenManager

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class DeyeCloudClient:
    """Authenticated Deye Cloud client producing normalized PowerStatus."""

    def __init__(
        self,
        config: DeyeCloudConfig,
        client: httpx.AsyncClient | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url.rstrip("/"),
            timeout=config.request_timeout_seconds,
        )
        self._owns_client = client is None
        self._tokens = TokenManager(config, self._client, now=now)

    @property
    def tokens(self) -> TokenManager:
        return self._tokens

    async def authenticate(self) -> None:
        await self._tokens.authenticate()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ── Endpoints ────────────────────────────────────────────

    async def fetch_device_list(self) -> list[DeviceInfo]:
        """Return every device on the account, following pagination."""
        size = self._config.device_page_size
        devices: list[DeviceInfo] = []
        page = 1
        while True:
            resp = await self._request(
                "/v1.0/device/list", {"page": page, "size": size}, DeviceListResponse,
            )
            devices.extend(resp.devices)
            if not resp.devices or len(devices) >= resp.total or len(resp.devices) < size:
                break
            page += 1
        logger.debug("Device list: %d device(s) over %d page(s)", len(devices), page)
        return devices

    async def fetch_station_latest(self, station_id: int) -> StationLatest:
        return await self._request(
            "/v1.0/station/latest", {"stationId": station_id}, StationLatest,
        )

    async def fetch_device_latest(self, device_sns: list[str]) -> DeviceLatest:
        return await self._request(
            "/v1.0/device/latest", {"deviceList": list(device_sns)}, DeviceLatest,
        )

    async def get_power_status(self, station_id: int, device_sn: str) -> PowerStatus:
        """Fetch station and device telemetry and normalize it."""
        station = await self.fetch_station_latest(station_id)
        device = await self.fetch_device_latest([device_sn])
        return PowerStatus.from_raw(station, device)

    # ── Request plumbing ─────────────────────────────────────

    async def _request(self, path: str, body: dict[str, Any], model: type[M]) -> M:
        payload = (await self._call_with_reauth(path, body)).unwrap()
        try:
            parsed = model.model_validate(payload)
        except ValidationError as exc:
            raise TelemetryTransportError(f"{path}: unexpected response shape: {exc}") from exc
        if not getattr(parsed, "success", True):
            raise TelemetryUpstreamError(
                f"{path} failed: code={getattr(parsed, 'code', None)} msg={getattr(parsed, 'msg', None)}"
            )
        return parsed

    async def _call_with_reauth(self, path: str, body: dict[str, Any]) -> Outcome[dict[str, Any]]:
        """Send once; on 401 re-authenticate and send exactly once more."""
        token = await self._tokens.get_valid_token()
        outcome = await self._send(path, body, token)
        if isinstance(outcome, Err) and outcome.kind is ErrorKind.UNAUTHORIZED:
            logger.warning("Deye %s returned 401, re-authenticating", path)
            token = await self._tokens.refresh(token)
            outcome = await self._send(path, body, token)
            if isinstance(outcome, Err) and outcome.kind is ErrorKind.UNAUTHORIZED:
                logger.error("Deye %s still unauthorized after re-authentication", path)
        return outcome

    async def _send(self, path: str, body: dict[str, Any], token: str) -> Outcome[dict[str, Any]]:
        try:
            resp = await self._client.post(path, json=body, headers={"Authorization": token})
        except httpx.HTTPError as exc:
            return Err(ErrorKind.TRANSPORT, f"{path}: {exc!r}")

        logger.debug("Deye %s <<< %d %.200s", path, resp.status_code, resp.text)

        if resp.status_code == 401:
            return Err(ErrorKind.UNAUTHORIZED, f"{path}: HTTP 401")
        if resp.status_code >= 400:
            return Err(ErrorKind.HTTP_STATUS, f"{path}: HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError:
            return Err(ErrorKind.MALFORMED, f"{path}: non-JSON body {resp.text[:200]!r}")
        if not isinstance(data, dict):
            return Err(ErrorKind.MALFORMED, f"{path}: expected a JSON object")
        return Ok(data)
