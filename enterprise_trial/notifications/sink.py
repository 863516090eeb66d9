"""Notification sink — toasts/banners shown to the user."""

from __future__ import annotations

from typing import Protocol

import structlog
from pydantic import BaseModel

logger = structlog.get_logger()


class NotificationSink(Protocol):
    def add_success(self, text: str) -> None: ...

    def add_warning(self, text: str) -> None: ...

    def add_error(self, text: str) -> None: ...


class Notification(BaseModel):
    level: str  # success | warning | error
    text: str


class LogNotificationSink:
    """Logs notifications and keeps them for the caller to display."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def _add(self, level: str, text: str) -> None:
        self.notifications.append(Notification(level=level, text=text))
        log = logger.info if level == "success" else logger.warning
        log("notification", level=level, text=text)

    def add_success(self, text: str) -> None:
        self._add("success", text)

    def add_warning(self, text: str) -> None:
        self._add("warning", text)

    def add_error(self, text: str) -> None:
        self._add("error", text)
