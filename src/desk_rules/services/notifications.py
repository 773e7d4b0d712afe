"""User-facing notifications emitted by the rule services.

The services never render anything; they publish Notification records
(toasts and inline banners) to a NotificationCenter the view layer
subscribes to.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable

from desk_shared import get_logger

log = get_logger(__name__)


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class RuleOperation(str, Enum):
    """Operation a notification reports on; picks the recovery action."""

    FETCH = "FETCH"
    SAVE = "SAVE"
    DELETE = "DELETE"
    STATUS = "STATUS"
    ORDER = "ORDER"


@dataclass
class NotificationAction:
    """Button attached to a notification, e.g. "Retry"."""

    label: str
    callback: Callable[[], Awaitable[Any] | Any]

    async def run(self) -> Any:
        result = self.callback()
        if inspect.isawaitable(result):
            return await result
        return result


@dataclass
class Notification:
    """Toast or inline notification request."""

    level: NotificationLevel
    message: str
    operation: RuleOperation | None = None
    action: NotificationAction | None = None
    inline: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level.value,
            "message": self.message,
            "operation": self.operation.value if self.operation else None,
            "action": self.action.label if self.action else None,
            "inline": self.inline,
            "created_at": self.created_at.isoformat(),
        }


Subscriber = Callable[[Notification], None]


class NotificationCenter:
    """Fans notifications out to subscribers and keeps a history."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self.history: list[Notification] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a subscriber; returns a callable that unsubscribes it."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def publish(self, notification: Notification) -> Notification:
        self.history.append(notification)
        for subscriber in list(self._subscribers):
            subscriber(notification)
        return notification

    def success(self, message: str, operation: RuleOperation | None = None) -> Notification:
        return self.publish(
            Notification(level=NotificationLevel.SUCCESS, message=message, operation=operation)
        )

    def error(
        self,
        message: str,
        operation: RuleOperation | None = None,
        *,
        action: NotificationAction | None = None,
        inline: bool = False,
    ) -> Notification:
        log.debug(
            "Error notification published",
            operation=operation.value if operation else None,
            inline=inline,
            has_action=action is not None,
        )
        return self.publish(
            Notification(
                level=NotificationLevel.ERROR,
                message=message,
                operation=operation,
                action=action,
                inline=inline,
            )
        )

    def errors(self) -> list[Notification]:
        return [n for n in self.history if n.level == NotificationLevel.ERROR]

    def clear(self) -> None:
        self.history.clear()
