"""Best-effort fan-out of messages to the subscriber list."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Protocol

from grid_watch.errors import MessagingError

logger = logging.getLogger(__name__)


class MessageSender(Protocol):
    async def send_message(self, chat_id: int, text: str) -> None: ...


@dataclass
class BroadcastReport:
    delivered: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)

    @property
    def all_delivered(self) -> bool:
        return not self.failed


class NotificationDispatcher:
    """Sends to each subscriber independently; one failure never stops the rest."""

    def __init__(self, sender: MessageSender, subscribers: Iterable[int]) -> None:
        self._sender = sender
        # Delivery order follows configuration order
        self._order = list(dict.fromkeys(subscribers))
        self._subscribers = frozenset(self._order)

    @property
    def subscribers(self) -> frozenset[int]:
        return self._subscribers

    def is_subscriber(self, chat_id: int) -> bool:
        return chat_id in self._subscribers

    async def send(self, chat_id: int, text: str) -> bool:
        """Deliver to one chat. Returns False (and logs) on failure."""
        try:
            await self._sender.send_message(chat_id, text)
        except MessagingError as exc:
            logger.warning("Failed to send to %d: %s", chat_id, exc)
            return False
        return True

    async def broadcast(self, text: str) -> BroadcastReport:
        report = BroadcastReport()
        for chat_id in self._order:
            try:
                await self._sender.send_message(chat_id, text)
            except MessagingError as exc:
                logger.warning("Failed to send to %d: %s", chat_id, exc)
                report.failed[chat_id] = str(exc)
            else:
                report.delivered.append(chat_id)
        logger.info(
            "Broadcast delivered to %d/%d subscribers",
            len(report.delivered), len(self._order),
        )
        return report
