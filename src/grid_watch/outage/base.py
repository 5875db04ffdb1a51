"""Outage schedule data model and the browser challenge boundary."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class OutageWindow:
    """One scheduled outage for an address.

    Start and end are kept as the utility renders them (``"14:00 19.10.2026"``).
    """

    start: str
    end: str
    sub_type: str = ""
    outage_type: str = ""
    reasons: tuple[str, ...] = ()


@dataclass(frozen=True)
class ChallengeResult:
    """What a solved anti-bot challenge yields for later direct requests."""

    cookies: dict[str, str] = field(default_factory=dict)
    csrf_token: str = ""

    @property
    def cookie_header(self) -> str:
        return "; ".join(f"{name}={value}" for name, value in self.cookies.items())


@runtime_checkable
class ChallengeSolver(Protocol):
    """Visits a protected page in a real browser and returns its session."""

    async def solve(self, page_url: str, origin: str) -> ChallengeResult:
        """Return cookies for ``origin`` and the page's CSRF token.

        Raises:
            BrowserNotFoundError: no browser binary available.
            ChallengeError: the challenge did not resolve in time, or the
                cookies/CSRF token are missing.
        """
        ...
