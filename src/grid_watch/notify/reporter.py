"""Composes outbound messages from telemetry and the outage schedule."""

from __future__ import annotations

import logging
from typing import Protocol

from grid_watch.monitor.power_state import GridEvent, PowerStatusSource
from grid_watch.notify import formatting
from grid_watch.telemetry.models import PowerStatus
from grid_watch.timezone_utils import resolve_timezone

logger = logging.getLogger(__name__)


class OutageLineSource(Protocol):
    async def shutdown_line(self) -> str: ...


class StatusReporter:
    """Builds status and transition messages.

    The outage line is pulled on demand from ``outage``; pass ``None`` to
    leave it out of messages entirely.
    """

    def __init__(
        self,
        telemetry: PowerStatusSource,
        outage: OutageLineSource | None,
        station_id: int,
        device_sn: str,
        tz_name: str = "Europe/Kyiv",
    ) -> None:
        self._telemetry = telemetry
        self._outage = outage
        self._station_id = station_id
        self._device_sn = device_sn
        self._tz = resolve_timezone(tz_name)

    async def outage_line(self) -> str | None:
        if self._outage is None:
            return None
        return await self._outage.shutdown_line()

    async def event_message(self, event: GridEvent, status: PowerStatus) -> str:
        line = await self.outage_line()
        if event is GridEvent.RESTORED:
            return formatting.format_power_on(status, line, self._tz)
        if event is GridEvent.LOST:
            return formatting.format_power_off(status, line, self._tz)
        return formatting.format_status(status, line, self._tz)

    async def status_message(self) -> str:
        """Fresh status for ``/status``; a failed poll yields the error text."""
        try:
            status = await self._telemetry.get_power_status(self._station_id, self._device_sn)
        except Exception as exc:
            logger.warning("Failed to get status for /status command: %s", exc)
            return formatting.STATUS_ERROR_TEXT
        return formatting.format_status(status, await self.outage_line(), self._tz)
