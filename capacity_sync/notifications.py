"""User-visible notifications.

The engine reports failed writes and similar conditions through a
``Notifier``. The UI layer supplies its own; ``LogNotifier`` is the default
and ``RecordingNotifier`` keeps messages in memory for polling and tests.
"""
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog

logger = structlog.get_logger()


class Notifier(Protocol):
    def info(self, message: str, **context: Any) -> None: ...

    def warning(self, message: str, **context: Any) -> None: ...

    def error(self, message: str, **context: Any) -> None: ...


class LogNotifier:
    """Notifier writing to the structured log."""

    def info(self, message: str, **context: Any) -> None:
        logger.info("notification", message=message, **context)

    def warning(self, message: str, **context: Any) -> None:
        logger.warning("notification", message=message, **context)

    def error(self, message: str, **context: Any) -> None:
        logger.error("notification", message=message, **context)


@dataclass
class Notification:
    level: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)


class RecordingNotifier:
    """Notifier keeping every notification in order."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def _record(self, level: str, message: str, context: dict[str, Any]) -> None:
        self.notifications.append(Notification(level, message, context))

    def info(self, message: str, **context: Any) -> None:
        self._record("info", message, context)

    def warning(self, message: str, **context: Any) -> None:
        self._record("warning", message, context)

    def error(self, message: str, **context: Any) -> None:
        self._record("error", message, context)

    def of_level(self, level: str) -> list[Notification]:
        return [n for n in self.notifications if n.level == level]

    def clear(self) -> None:
        self.notifications.clear()
