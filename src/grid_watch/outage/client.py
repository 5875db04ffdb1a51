"""DTEK shutdown schedule client with a TTL cache.

Flow on a cache miss:
  1. A ChallengeSolver passes the site's bot check in a headless browser
     and hands back cookies and the CSRF token.
  2. A plain form POST to the AJAX endpoint asks for the house schedule.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Callable

import httpx

from grid_watch.config.schema import OutageConfig
from grid_watch.errors import OutageFetchError
from grid_watch.outage.base import ChallengeSolver, OutageWindow
from grid_watch.timezone_utils import resolve_timezone

logger = logging.getLogger(__name__)

LINE_NO_OUTAGE = "📋 ДТЕК: відключень немає"
LINE_UNAVAILABLE = "📋 ДТЕК: помилка отримання даних"


class OutageScheduleClient:
    """Looks up the scheduled outage for one address.

    ``get_shutdown()`` serves from cache within ``cache_ttl_seconds``. The
    lock is held across check, fetch and store so concurrent callers share
    a single browser session.
    """

    def __init__(
        self,
        config: OutageConfig,
        solver: ChallengeSolver,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._config = config
        self._solver = solver
        self._client = client or httpx.AsyncClient(timeout=config.request_timeout_seconds)
        self._owns_client = client is None
        self._clock = clock or time.monotonic
        self._tz = resolve_timezone(config.timezone)
        self._lock = asyncio.Lock()
        self._cached_at: float | None = None
        self._cached_value: OutageWindow | None = None
        self.fetch_count = 0

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def get_shutdown(self) -> OutageWindow | None:
        """Return the cached window, fetching when the cache is stale.

        A failed fetch leaves the previous cache entry in place and raises.
        """
        async with self._lock:
            now = self._clock()
            if self._cached_at is not None and now - self._cached_at < self._config.cache_ttl_seconds:
                return self._cached_value

            window = await self.fetch_shutdowns()
            self._cached_at = self._clock()
            self._cached_value = window
            return window

    async def clear_cache(self) -> None:
        """Drop the cached window. Waits for an in-flight fetch to store first."""
        async with self._lock:
            self._cached_at = None
            self._cached_value = None
        logger.info("Outage cache cleared")

    async def shutdown_line(self) -> str:
        """One-line outage summary for messages; failures become a notice."""
        try:
            window = await self.get_shutdown()
        except Exception:
            logger.warning("Outage lookup failed", exc_info=True)
            return LINE_UNAVAILABLE
        if window is None:
            return LINE_NO_OUTAGE
        return f"📋 ДТЕК: {window.start} – {window.end}"

    async def fetch_shutdowns(self) -> OutageWindow | None:
        """Fetch the schedule directly, bypassing the cache."""
        cfg = self._config
        self.fetch_count += 1

        challenge = await self._solver.solve(cfg.page_url, cfg.origin)

        update_fact = datetime.now(self._tz).strftime("%d.%m.%Y %H:%M")
        form = {
            "method": "getHomeNum",
            "data[0][name]": "city",
            "data[0][value]": cfg.city,
            "data[1][name]": "street",
            "data[1][value]": cfg.street,
            "data[2][name]": "updateFact",
            "data[2][value]": update_fact,
        }
        headers = {
            "X-Requested-With": "XMLHttpRequest",
            "X-CSRF-Token": challenge.csrf_token,
            "Referer": cfg.page_url,
            "Origin": cfg.origin,
            "Cookie": challenge.cookie_header,
            "User-Agent": cfg.user_agent,
            "Accept": "application/json, text/javascript, */*; q=0.01",
        }

        try:
            resp = await self._client.post(cfg.ajax_url, data=form, headers=headers)
        except httpx.HTTPError as exc:
            raise OutageFetchError(f"schedule request failed: {exc!r}") from exc

        logger.debug("DTEK ajax <<< %d %.300s", resp.status_code, resp.text)
        if resp.status_code >= 400:
            raise OutageFetchError(f"schedule request returned HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise OutageFetchError(f"schedule response is not JSON: {resp.text[:200]!r}") from exc

        window = self._parse_response(data, cfg.house)
        if window is None:
            logger.info("No outage scheduled for house %s", cfg.house)
        else:
            logger.info(
                "Outage for house %s: %s - %s (%s)",
                cfg.house, window.start, window.end, window.sub_type,
            )
        return window

    @staticmethod
    def _parse_response(data: Any, house: str) -> OutageWindow | None:
        """Extract the house's record from ``{"result", "data": {house: {...}}}``."""
        if not isinstance(data, dict):
            raise OutageFetchError("schedule response is not a JSON object")
        if not data.get("result"):
            raise OutageFetchError(f"schedule endpoint returned result=false: {data.get('text', '')}")

        houses = data.get("data") or {}
        if not isinstance(houses, dict):
            return None
        record = houses.get(house)
        if not isinstance(record, dict):
            return None

        reasons = record.get("sub_type_reason") or []
        if isinstance(reasons, str):
            reasons = [reasons]
        return OutageWindow(
            start=str(record.get("start_date") or ""),
            end=str(record.get("end_date") or ""),
            sub_type=str(record.get("sub_type") or ""),
            outage_type=str(record.get("type") or ""),
            reasons=tuple(str(r) for r in reasons),
        )
