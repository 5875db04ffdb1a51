"""Grid Watch application entry point and lifecycle orchestrator.

Startup sequence:
  config → logging → Deye auth (fatal on failure) → device discovery →
  outage client → power monitor + command listener tasks
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
import signal
import sys
from pathlib import Path

from grid_watch import __version__
from grid_watch.config.manager import ConfigManager
from grid_watch.config.schema import AppConfig
from grid_watch.errors import ConfigError, GridWatchError
from grid_watch.logging.structured import setup_logging
from grid_watch.monitor.power_state import GridEvent, PowerStateMonitor
from grid_watch.notify.dispatcher import NotificationDispatcher
from grid_watch.notify.listener import CommandListener
from grid_watch.notify.reporter import StatusReporter
from grid_watch.notify.telegram import TelegramClient
from grid_watch.outage.browser import PlaywrightChallengeSolver
from grid_watch.outage.client import OutageScheduleClient
from grid_watch.telemetry.client import DeyeCloudClient
from grid_watch.telemetry.models import PowerStatus

logger = logging.getLogger(__name__)


class Application:
    """Main application lifecycle manager.

    Wires all components together and manages startup/shutdown ordering.
    """

    def __init__(
        self,
        config: AppConfig,
        telemetry: DeyeCloudClient | None = None,
        telegram: TelegramClient | None = None,
        outage: OutageScheduleClient | None = None,
    ) -> None:
        self.config = config
        self._running = False
        self._tasks: list[asyncio.Task] = []
        self._shutdown: asyncio.Future | None = None

        self.telemetry = telemetry or DeyeCloudClient(config.deye)
        self.telegram = telegram or TelegramClient(config.telegram)
        if outage is None and config.outage.enabled:
            outage = OutageScheduleClient(config.outage, PlaywrightChallengeSolver(config.outage))
        self.outage = outage

        self.dispatcher = NotificationDispatcher(self.telegram, config.telegram.user_ids)
        self.station_id = config.deye.station_id
        self.device_sn = config.deye.device_sn

        # Built in start() once the station and device are known
        self.reporter: StatusReporter | None = None
        self.monitor: PowerStateMonitor | None = None
        self.listener: CommandListener | None = None

    async def start(self) -> None:
        """Start all components and block until the loops exit.

        Raises:
            GridWatchError: if authentication or device discovery fails.
        """
        logger.info("Starting Grid Watch v%s", __version__)
        self._running = True

        # ── 1. Authenticate (fail fast on bad credentials) ───
        await self.telemetry.authenticate()
        if not self._running:
            return  # stop() arrived during startup; clients are closed

        # ── 2. Resolve station and device ────────────────────
        await self._discover_device()
        if not self._running:
            return  # stop() arrived during startup

        # ── 3. Components ────────────────────────────────────
        self.reporter = StatusReporter(
            self.telemetry, self.outage, self.station_id, self.device_sn,
            tz_name=self.config.timezone,
        )
        self.monitor = PowerStateMonitor(
            self.config.monitor, self.telemetry, self.station_id, self.device_sn,
            on_event=self._on_grid_event,
        )
        self.listener = CommandListener(
            self.config.telegram, self.telegram, self.dispatcher, self.reporter,
        )

        # ── 4. Background loops ──────────────────────────────
        self._tasks = [
            asyncio.create_task(self.monitor.run(), name="power_monitor"),
            asyncio.create_task(self.listener.run(), name="command_listener"),
        ]
        logger.info(
            "Grid Watch running: station=%d device=%s subscribers=%d outage=%s",
            self.station_id, self.device_sn, len(self.dispatcher.subscribers),
            "on" if self.outage is not None else "off",
        )
        await asyncio.gather(*self._tasks, return_exceptions=True)

    async def stop(self) -> None:
        """Stop the loops and release clients. Safe to call more than once."""
        if self._shutdown is None:
            self._shutdown = asyncio.ensure_future(self._shutdown_components())
        await asyncio.shield(self._shutdown)

    async def _shutdown_components(self) -> None:
        if not self._running:
            return
        logger.info("Shutting down Grid Watch")
        self._running = False

        if self.monitor:
            self.monitor.stop()
        if self.listener:
            self.listener.stop()

        # In-flight polls finish; anything still running after the grace period is cancelled
        if self._tasks:
            _, pending = await asyncio.wait(
                self._tasks, timeout=self.config.shutdown_timeout_seconds,
            )
            for task in pending:
                logger.warning("Task %s did not stop in time, cancelling", task.get_name())
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        for name, client in (("telemetry", self.telemetry), ("telegram", self.telegram), ("outage", self.outage)):
            if client is None:
                continue
            try:
                await client.close()
            except Exception:
                logger.exception("Error closing %s client", name)

        logger.info("Shutdown complete")

    async def _discover_device(self) -> None:
        """Fill in station id / device serial from the account's device list."""
        if self.station_id and self.device_sn:
            return

        devices = await self.telemetry.fetch_device_list()
        if not devices:
            raise GridWatchError("no devices found on the Deye Cloud account")
        for dev in devices:
            logger.info(
                "Device: SN=%s type=%s station=%d product=%s",
                dev.device_sn, dev.device_type, dev.station_id, dev.product_id,
            )

        first = devices[0]
        if not self.device_sn:
            self.device_sn = first.device_sn
        if not self.station_id:
            self.station_id = first.station_id
        logger.info("Using station=%d device=%s", self.station_id, self.device_sn)

    async def _on_grid_event(self, event: GridEvent, status: PowerStatus) -> None:
        assert self.reporter is not None
        text = await self.reporter.event_message(event, status)
        await self.dispatcher.broadcast(text)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="grid-watch",
        description="Notify Telegram subscribers when grid power is lost or restored.",
    )
    parser.add_argument(
        "--config", type=Path, default=Path("config.yaml"),
        help="user config file (default: config.yaml)",
    )
    parser.add_argument(
        "--defaults", type=Path, default=Path("config.defaults.yaml"),
        help="defaults config file (default: config.defaults.yaml)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Entry point for the application."""
    args = _parse_args(argv)

    config_manager = ConfigManager(args.defaults, args.config)
    try:
        config = config_manager.load()
    except ConfigError as exc:
        print(f"grid-watch: {exc}", file=sys.stderr)
        sys.exit(1)

    setup_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_file=config.logging.file,
    )

    app = Application(config)
    stop_requested = False
    signal_count = 0
    exit_code = 0

    async def _run() -> None:
        nonlocal exit_code
        try:
            await app.start()
        except GridWatchError as exc:
            logger.error("Startup failed: %s", exc)
            exit_code = 1
        finally:
            with contextlib.suppress(Exception):
                await app.stop()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def _request_stop() -> None:
        nonlocal stop_requested, signal_count
        signal_count += 1
        if signal_count >= 2:
            os._exit(130)
        if stop_requested or loop.is_closed():
            return
        stop_requested = True
        logger.info("Shutdown requested")
        loop.call_soon_threadsafe(lambda: asyncio.create_task(app.stop()))

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _request_stop)
    else:
        signal.signal(signal.SIGINT, lambda *_: _request_stop())
        if hasattr(signal, "SIGTERM"):
            signal.signal(signal.SIGTERM, lambda *_: _request_stop())

    try:
        loop.run_until_complete(_run())
    except KeyboardInterrupt:
        _request_stop()
        with contextlib.suppress(Exception):
            loop.run_until_complete(app.stop())
    finally:
        pending = [task for task in asyncio.all_tasks(loop) if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            with contextlib.suppress(Exception):
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        loop.close()

    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
