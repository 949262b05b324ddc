from dataclasses import dataclass
from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)

DEFAULT = "default"
DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    variant: str = DEFAULT


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None:
        ...


class LogNotifier:
    """Notifier that only writes to the log"""

    def notify(self, notification: Notification) -> None:
        log = logger.warning if notification.variant == DESTRUCTIVE else logger.info
        log(notification.title, description=notification.description)
