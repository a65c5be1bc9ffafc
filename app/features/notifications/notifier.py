"""
Outbound notifications (password setup links, welcome messages).

Delivery is fire-and-forget: provisioning calls ``send_notification`` after
its own transaction has committed, and a failed delivery is logged, never
raised back into the operation that triggered it.
"""
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from app.utils import get_logger


log = get_logger(__name__)


class NotificationKind(str, Enum):
    PASSWORD_SETUP = "password_setup"
    WELCOME = "welcome"
    PASSWORD_RESET = "password_reset"


@runtime_checkable
class Notifier(Protocol):
    """Delivery channel for user-facing notifications."""

    async def notify(self, email: str, kind: NotificationKind, payload: dict[str, Any]) -> None:
        ...


class LoggingNotifier:
    """
    Notifier that writes messages to the application log.

    Used in development and wherever no mail transport is configured; the
    reset link appears in the log so the flow can still be completed.
    """

    async def notify(self, email: str, kind: NotificationKind, payload: dict[str, Any]) -> None:
        log.info("Notification %s for %s: %s", kind.value, email, payload)


_notifier: Notifier = LoggingNotifier()


def get_notifier() -> Notifier:
    """FastAPI dependency returning the notifier; override it to plug in a mail transport."""
    return _notifier


async def send_notification(
    notifier: Notifier,
    email: str,
    kind: NotificationKind,
    payload: dict[str, Any],
) -> bool:
    """Deliver a notification, logging instead of raising on failure."""
    try:
        await notifier.notify(email, kind, payload)
    except Exception:
        log.exception("Failed to deliver %s notification to %s", kind.value, email)
        return False
    return True
