"""
Notification sinks.

The kernel hands every user-visible outcome to a sink and moves on; a sink
must not raise and must not block.
"""

from __future__ import annotations

import asyncio
import logging

from datasync.kernel.types import Notification

logger = logging.getLogger("dashboard.notify")

_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class LoggingSink:
    """Writes notifications to the `dashboard.notify` logger. The CLI's sink."""

    def notify(self, notification: Notification) -> None:
        level = _LEVELS.get(notification.kind, logging.INFO)
        if notification.detail:
            logger.log(level, "%s: %s", notification.title, notification.detail)
        else:
            logger.log(level, "%s", notification.title)


class MemorySink:
    """Collects notifications in a list."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    def of_kind(self, kind: str) -> list[Notification]:
        return [n for n in self.notifications if n.kind == kind]

    def clear(self) -> None:
        self.notifications.clear()


class QueueSink:
    """Hands notifications to a consumer task through an asyncio.Queue."""

    def __init__(self, maxsize: int = 100) -> None:
        self.queue: asyncio.Queue[Notification] = asyncio.Queue(maxsize=maxsize)

    def notify(self, notification: Notification) -> None:
        try:
            self.queue.put_nowait(notification)
        except asyncio.QueueFull:
            logger.warning("Notification queue full, dropping: %s", notification.title)
