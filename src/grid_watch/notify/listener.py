"""Inbound Telegram command loop (/status, /start)."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from grid_watch.config.schema import TelegramConfig
from grid_watch.errors import MessagingError
from grid_watch.logging.context import bind_context
from grid_watch.notify.dispatcher import NotificationDispatcher
from grid_watch.notify.formatting import START_TEXT
from grid_watch.notify.telegram import Update

logger = logging.getLogger(__name__)


class UpdateSource(Protocol):
    async def get_updates(self) -> list[Update]: ...


class StatusSource(Protocol):
    async def status_message(self) -> str: ...


class CommandListener:
    """Long-polls for updates and answers subscriber commands."""

    def __init__(
        self,
        config: TelegramConfig,
        updates: UpdateSource,
        dispatcher: NotificationDispatcher,
        reporter: StatusSource,
    ) -> None:
        self._config = config
        self._updates = updates
        self._dispatcher = dispatcher
        self._reporter = reporter
        self._stop_event = asyncio.Event()

    async def poll_once(self) -> int:
        """Fetch one batch of updates and handle them. Returns the batch size.

        Raises:
            MessagingError: if getUpdates fails.
        """
        updates = await self._updates.get_updates()
        for update in updates:
            await self.handle_update(update)
        return len(updates)

    async def handle_update(self, update: Update) -> None:
        message = update.message
        if message is None:
            return
        chat_id = message.chat.id
        if not self._dispatcher.is_subscriber(chat_id):
            logger.warning("Unauthorized user: %d", chat_id)
            return

        text = (message.text or "").strip()
        command = text.split(maxsplit=1)[0].split("@", 1)[0] if text else ""
        if command == "/status":
            reply = await self._reporter.status_message()
            if not await self._dispatcher.send(chat_id, reply):
                logger.warning("Failed to send /status reply to %d", chat_id)
        elif command == "/start":
            if not await self._dispatcher.send(chat_id, START_TEXT):
                logger.warning("Failed to send /start reply to %d", chat_id)
        else:
            logger.debug("Ignoring message from %d: %.50s", chat_id, text)

    async def run(self) -> None:
        bind_context(loop="command_listener")
        backoff = self._config.retry_backoff_seconds
        logger.info("Command listener starting")
        try:
            while not self._stop_event.is_set():
                try:
                    await self.poll_once()
                    continue
                except MessagingError as exc:
                    logger.warning("Failed to get updates: %s", exc)
                except Exception:
                    logger.warning("Command handling failed", exc_info=True)
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=backoff)
                    break
                except asyncio.TimeoutError:
                    pass
        finally:
            logger.info("Command listener stopped")

    def stop(self) -> None:
        """Signal the loop to stop after the current long-poll returns."""
        self._stop_event.set()
