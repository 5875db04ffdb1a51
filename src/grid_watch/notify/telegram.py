"""Minimal Telegram Bot API client (sendMessage / getUpdates)."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from grid_watch.config.schema import TelegramConfig
from grid_watch.errors import MessagingError

logger = logging.getLogger(__name__)


class Chat(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    type: str = ""


class Message(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message_id: int = 0
    chat: Chat
    text: str | None = None


class Update(BaseModel):
    model_config = ConfigDict(extra="ignore")

    update_id: int
    message: Message | None = None


class _ApiResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ok: bool = False
    description: str = ""
    result: Any = None


class _UpdatesResponse(_ApiResponse):
    result: list[Update] = Field(default_factory=list)


class TelegramClient:
    """Bot API client. Tracks the getUpdates cursor between calls."""

    def __init__(self, config: TelegramConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client or httpx.AsyncClient(
            base_url=f"{config.api_base_url.rstrip('/')}/bot{config.bot_token}",
            timeout=config.request_timeout_seconds,
        )
        self._owns_client = client is None
        self._offset = 0

    @property
    def offset(self) -> int:
        """Next ``offset`` sent to getUpdates (one past the last update seen)."""
        return self._offset

    async def send_message(self, chat_id: int, text: str) -> None:
        """Send an HTML message to one chat.

        Raises:
            MessagingError: on transport failure or ``ok: false``.
        """
        body = {"chat_id": chat_id, "text": text, "parse_mode": self._config.parse_mode}
        await self._call("sendMessage", body, _ApiResponse)

    async def get_updates(self) -> list[Update]:
        """Long-poll for new updates and advance the cursor past them."""
        params = {"offset": self._offset, "timeout": self._config.long_poll_timeout_seconds}
        resp = await self._call("getUpdates", params, _UpdatesResponse)
        updates = resp.result
        if updates:
            self._offset = max(u.update_id for u in updates) + 1
        return updates

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _call(self, method: str, body: dict[str, Any], model: type[_ApiResponse]) -> Any:
        try:
            resp = await self._client.post(f"/{method}", json=body)
        except httpx.HTTPError as exc:
            raise MessagingError(f"{method}: {exc!r}") from exc

        try:
            parsed = model.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            raise MessagingError(
                f"{method}: unreadable response (HTTP {resp.status_code}): {resp.text[:200]!r}"
            ) from exc

        if not parsed.ok:
            raise MessagingError(f"{method}: telegram error: {parsed.description or resp.status_code}")
        return parsed
