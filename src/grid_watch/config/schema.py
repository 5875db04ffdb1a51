"""Pydantic configuration models for all system settings."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class DeyeCloudConfig(BaseModel):
    base_url: str = "https://eu1-developer.deyecloud.com"
    app_id: str = ""
    app_secret: str = ""
    email: str = ""
    password: str = ""
    station_id: int = 0  # 0 = discover from the device list at startup
    device_sn: str = ""  # empty = discover from the device list at startup
    request_timeout_seconds: float = Field(30.0, gt=0)
    # Provider issues ~60 day tokens; renew a day early
    token_validity_seconds: int = Field(59 * 24 * 3600, gt=0)
    device_page_size: int = Field(100, ge=1, le=100)


class TelegramConfig(BaseModel):
    bot_token: str = ""
    user_ids: list[int] = Field(default_factory=list)
    api_base_url: str = "https://api.telegram.org"
    parse_mode: str = "HTML"
    long_poll_timeout_seconds: int = Field(30, ge=0)
    request_timeout_seconds: float = Field(60.0, gt=0)  # must exceed long_poll_timeout_seconds
    retry_backoff_seconds: float = Field(5.0, ge=0)

    @field_validator("user_ids", mode="before")
    @classmethod
    def _split_user_ids(cls, value: object) -> object:
        """Accept the comma-separated form used in environment variables."""
        if isinstance(value, str):
            return parse_user_ids(value)
        if isinstance(value, int):
            return [value]
        return value


class OutageConfig(BaseModel):
    enabled: bool = True
    city: str = "м. Підгороднє"
    street: str = "вул. Сагайдачного Петра"
    house: str = "63"
    page_url: str = "https://www.dtek-dnem.com.ua/ua/shutdowns"
    ajax_url: str = "https://www.dtek-dnem.com.ua/ua/ajax"
    origin: str = "https://www.dtek-dnem.com.ua"
    timezone: str = "Europe/Kyiv"
    cache_ttl_seconds: int = Field(600, ge=0)
    navigation_timeout_seconds: float = Field(60.0, gt=0)
    challenge_timeout_seconds: float = Field(30.0, gt=0)
    request_timeout_seconds: float = Field(30.0, gt=0)
    # Searched in order; bare names are resolved on PATH
    browser_paths: list[str] = Field(
        default_factory=lambda: [
            "/snap/bin/chromium",
            "/usr/bin/chromium",
            "/usr/bin/chromium-browser",
            "/usr/bin/google-chrome",
            "/usr/bin/google-chrome-stable",
            "chromium",
            "chromium-browser",
            "google-chrome",
        ]
    )
    user_agent: str = (
        "Mozilla/5.0 (X11; Linux aarch64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )


class MonitorConfig(BaseModel):
    poll_interval_seconds: int = Field(60, ge=1)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "json"
    file: str = ""


class AppConfig(BaseModel):
    """Root configuration model containing all system settings."""

    deye: DeyeCloudConfig = DeyeCloudConfig()
    telegram: TelegramConfig = TelegramConfig()
    outage: OutageConfig = OutageConfig()
    monitor: MonitorConfig = MonitorConfig()
    logging: LoggingConfig = LoggingConfig()
    timezone: str = "Europe/Kyiv"  # used to render timestamps in messages
    shutdown_timeout_seconds: float = Field(90.0, gt=0)

    def missing_required(self) -> list[str]:
        """Return dotted names of required settings that are empty."""
        required = {
            "deye.base_url": self.deye.base_url,
            "deye.app_id": self.deye.app_id,
            "deye.app_secret": self.deye.app_secret,
            "deye.email": self.deye.email,
            "deye.password": self.deye.password,
            "telegram.bot_token": self.telegram.bot_token,
            "telegram.user_ids": self.telegram.user_ids,
        }
        return [name for name, value in required.items() if not value]


def parse_user_ids(raw: str) -> list[int]:
    """Parse ``"123, 456,"`` into ``[123, 456]``.

    Raises ValueError on a non-integer item.
    """
    ids: list[int] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.append(int(part))
        except ValueError:
            raise ValueError(f"cannot parse user ID {part!r}") from None
    return ids
