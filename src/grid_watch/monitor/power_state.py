"""Edge-triggered grid power monitor."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Protocol

from grid_watch.config.schema import MonitorConfig
from grid_watch.logging.context import bind_context
from grid_watch.telemetry.models import PowerStatus

logger = logging.getLogger(__name__)


class GridEvent(str, Enum):
    INITIAL = "initial"    # first successful sample after startup
    LOST = "lost"
    RESTORED = "restored"


class PowerStatusSource(Protocol):
    async def get_power_status(self, station_id: int, device_sn: str) -> PowerStatus: ...


EventCallback = Callable[[GridEvent, PowerStatus], Awaitable[None]]


@dataclass
class MonitorState:
    """Snapshot of the monitor's view of the grid."""

    last_has_grid: bool | None = None  # None until the first good sample
    samples: int = 0
    transitions: int = 0
    failed_polls: int = 0
    last_sample_at: datetime | None = None
    is_running: bool = False


class PowerStateMonitor:
    """Polls telemetry on a fixed interval and reports grid transitions.

    Only successful samples move the state machine. A failed poll is
    logged and leaves ``last_has_grid`` alone, so an outage of the
    telemetry API never looks like a grid change.
    """

    def __init__(
        self,
        config: MonitorConfig,
        telemetry: PowerStatusSource,
        station_id: int,
        device_sn: str,
        on_event: EventCallback | None = None,
    ) -> None:
        self._config = config
        self._telemetry = telemetry
        self._station_id = station_id
        self._device_sn = device_sn
        self._on_event = on_event
        self._state = MonitorState()
        self._stop_event = asyncio.Event()

    @property
    def state(self) -> MonitorState:
        return self._state

    def observe(self, status: PowerStatus) -> GridEvent | None:
        """Feed one successful sample into the state machine."""
        current = status.has_grid
        previous = self._state.last_has_grid
        self._state.samples += 1
        self._state.last_sample_at = datetime.now(timezone.utc)
        self._state.last_has_grid = current

        if previous is None:
            logger.info("Initial state: has_grid=%s", current)
            return GridEvent.INITIAL
        if current == previous:
            return None

        self._state.transitions += 1
        event = GridEvent.RESTORED if current else GridEvent.LOST
        logger.info("Grid state changed: has_grid=%s (%s)", current, event.value)
        return event

    async def check_once(self) -> GridEvent | None:
        """Poll once and dispatch the resulting event, if any."""
        try:
            status = await self._telemetry.get_power_status(self._station_id, self._device_sn)
        except Exception as exc:
            self._state.failed_polls += 1
            logger.warning("Power status poll failed: %s", exc, exc_info=True)
            return None

        logger.info(
            "Grid: %.0fW | Purchase: %.0fW | Gen: %.0fW | Cons: %.0fW | SOC: %.0f%% | Online: %s",
            status.grid_power_w, status.purchase_power_w,
            status.generation_power_w, status.consumption_power_w,
            status.battery_soc, status.device_online,
        )

        event = self.observe(status)
        if event is not None and self._on_event is not None:
            try:
                await self._on_event(event, status)
            except Exception:
                logger.exception("Grid event handler failed for %s", event.value)
        return event

    async def run(self) -> None:
        """Run until stopped. The first check happens immediately."""
        bind_context(loop="power_monitor")
        interval = self._config.poll_interval_seconds
        self._state.is_running = True
        logger.info("Power monitor starting (interval: %ds)", interval)
        try:
            while not self._stop_event.is_set():
                await self.check_once()
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                    break
                except asyncio.TimeoutError:
                    pass
        finally:
            self._state.is_running = False
            logger.info(
                "Power monitor stopped after %d samples (%d transitions, %d failed polls)",
                self._state.samples, self._state.transitions, self._state.failed_polls,
            )

    def stop(self) -> None:
        """Signal the loop to stop."""
        self._stop_event.set()
