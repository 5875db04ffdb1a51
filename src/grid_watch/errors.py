"""Exception hierarchy shared by all Grid Watch components."""

from __future__ import annotations


class GridWatchError(Exception):
    """Base class for all application errors."""


class ConfigError(GridWatchError):
    """Required settings are missing or invalid. Fatal at startup."""


# ── Telemetry (Deye Cloud) ───────────────────────────────────


class TelemetryError(GridWatchError):
    """Any failure talking to the telemetry API."""


class AuthenticationError(TelemetryError):
    """The token exchange failed or was rejected by the provider."""


class TelemetryRejectedError(TelemetryError):
    """A request was rejected with 401 even after re-authenticating."""


class TelemetryTransportError(TelemetryError):
    """Timeout, connection failure, bad HTTP status or unreadable body."""


class TelemetryUpstreamError(TelemetryError):
    """The API answered but reported ``success: false``."""


# ── Outage schedule (DTEK) ───────────────────────────────────


class OutageError(GridWatchError):
    """Any failure fetching the outage schedule."""


class BrowserNotFoundError(OutageError):
    """No usable headless browser binary is installed."""


class ChallengeError(OutageError):
    """The anti-bot challenge did not resolve or left no cookies/CSRF token."""


class OutageFetchError(OutageError):
    """The schedule endpoint failed or returned a failure envelope."""


# ── Messaging (Telegram) ─────────────────────────────────────


class MessagingError(GridWatchError):
    """A Telegram Bot API call failed."""
