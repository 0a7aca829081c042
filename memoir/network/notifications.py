"""
Participant notifications.

Delivery (push, e-mail, in-app) belongs to the surrounding system; the core
only hands events to a Notifier.
"""
from typing import Any, Dict, Iterable

from memoir.logging_config import get_logger
from memoir.monitoring import capture_exception
from memoir.network.core_types import NotificationEvent

logger = get_logger(__name__)


class Notifier:
    """Interface for delivering merger lifecycle events to users."""

    def notify(self, user_id: str, event: NotificationEvent, payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class LogNotifier(Notifier):
    """Default notifier: records what would be sent."""

    def notify(self, user_id: str, event: NotificationEvent, payload: Dict[str, Any]) -> None:
        logger.info(
            f"Notification {event.value} would be sent",
            extra={"user_id": user_id, "payload": payload},
        )


def notify_all(
    notifier: Notifier,
    user_ids: Iterable[str],
    event: NotificationEvent,
    payload: Dict[str, Any],
) -> None:
    """
    Fan an event out to users after the triggering write has committed.

    A delivery failure is logged and reported; it does not undo the write.
    """
    for user_id in user_ids:
        try:
            notifier.notify(user_id, event, payload)
        except Exception as e:
            logger.error(
                f"Failed to deliver {event.value}: {e}",
                exc_info=True,
                extra={"user_id": user_id},
            )
            capture_exception(e, context={"event": event.value, "user_id": user_id})
