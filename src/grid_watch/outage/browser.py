"""Headless Chromium challenge solver built on Playwright."""

from __future__ import annotations

import logging
import os
import shutil
from typing import Iterable

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from grid_watch.config.schema import OutageConfig
from grid_watch.errors import BrowserNotFoundError, ChallengeError
from grid_watch.outage.base import ChallengeResult

logger = logging.getLogger(__name__)

CSRF_SELECTOR = 'meta[name="csrf-token"]'


def find_browser_binary(candidates: Iterable[str]) -> str | None:
    """Return the first usable browser from an ordered candidate list.

    Absolute paths must exist and be executable; bare names are looked up
    on PATH.
    """
    for candidate in candidates:
        if os.path.isabs(candidate):
            if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
                return candidate
            continue
        found = shutil.which(candidate)
        if found:
            return found
    return None


class PlaywrightChallengeSolver:
    """Passes the site's bot check with a real headless browser.

    The browser waits until the CSRF meta tag is present, which only
    happens once the challenge page has been replaced by the real one.
    """

    def __init__(self, config: OutageConfig) -> None:
        self._config = config

    async def solve(self, page_url: str, origin: str) -> ChallengeResult:
        browser_path = find_browser_binary(self._config.browser_paths)
        if browser_path is None:
            raise BrowserNotFoundError(
                "chromium not found; install it (e.g. snap install chromium) "
                "or set outage.browser_paths"
            )
        logger.info("Using browser: %s", browser_path)

        nav_timeout_ms = self._config.navigation_timeout_seconds * 1000
        challenge_timeout_ms = self._config.challenge_timeout_seconds * 1000

        async with async_playwright() as pw:
            try:
                browser = await pw.chromium.launch(
                    executable_path=browser_path,
                    headless=True,
                    args=["--no-sandbox", "--disable-gpu"],
                    timeout=nav_timeout_ms,
                )
            except PlaywrightError as exc:
                raise ChallengeError(f"browser launch failed: {exc}") from exc

            try:
                context = await browser.new_context(user_agent=self._config.user_agent)
                page = await context.new_page()
                await page.goto(page_url, wait_until="load", timeout=nav_timeout_ms)
                meta = await page.wait_for_selector(
                    CSRF_SELECTOR, state="attached", timeout=challenge_timeout_ms,
                )
                csrf_token = await meta.get_attribute("content") if meta else None
                raw_cookies = await context.cookies([origin])
            except PlaywrightTimeoutError as exc:
                raise ChallengeError(f"challenge did not resolve: {exc}") from exc
            except PlaywrightError as exc:
                raise ChallengeError(f"browser session failed: {exc}") from exc
            finally:
                await browser.close()

        cookies = {c["name"]: c["value"] for c in raw_cookies}
        if not csrf_token:
            raise ChallengeError("csrf-token meta tag is empty")
        if not cookies:
            raise ChallengeError(f"no cookies set for {origin}")

        logger.info("Challenge solved: %d cookies, CSRF %.20s", len(cookies), csrf_token)
        return ChallengeResult(cookies=cookies, csrf_token=csrf_token)
