"""
Notification sink for lifecycle events.

Handlers queue notifications while their transaction is open and hand them to
dispatch() after commit. Delivery is fire-and-forget: a failing sink is logged
and never aborts the handler that triggered it.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import requests

from .config import get_webhook_url, NOTIFY_TIMEOUT_SEC
from ..util.logging import logger

NEW_VETTING_ITEM = "new_vetting_item"
PENDING_VETTING = "pending_vetting"
PENDING_VOTES = "pending_votes"
ITEM_COMPLETED = "item_completed"


@dataclass
class Notification:
    kind: str
    title: str
    member_ids: List[str] = field(default_factory=list)
    average_score: Optional[float] = None


class NotificationSink:
    """Receiver for the four lifecycle notifications."""

    def notify_new_vetting_item(self, title: str):
        raise NotImplementedError

    def notify_pending_vetting(self, member_ids: List[str], title: str):
        raise NotImplementedError

    def notify_pending_votes(self, member_ids: List[str], title: str):
        raise NotImplementedError

    def notify_item_completed(self, title: str, average_score: float):
        raise NotImplementedError

    def send(self, notification: Notification):
        """Route a queued notification to the matching operation."""
        if notification.kind == NEW_VETTING_ITEM:
            self.notify_new_vetting_item(notification.title)
        elif notification.kind == PENDING_VETTING:
            self.notify_pending_vetting(notification.member_ids, notification.title)
        elif notification.kind == PENDING_VOTES:
            self.notify_pending_votes(notification.member_ids, notification.title)
        elif notification.kind == ITEM_COMPLETED:
            self.notify_item_completed(notification.title, notification.average_score)
        else:
            raise ValueError(f"Unknown notification kind: {notification.kind}")


class LoggingNotifier(NotificationSink):
    """Default sink: writes each notification to the log."""

    def notify_new_vetting_item(self, title: str):
        logger.log_notification(NEW_VETTING_ITEM, "logged", {"title": title})

    def notify_pending_vetting(self, member_ids: List[str], title: str):
        logger.log_notification(PENDING_VETTING, "logged", {"title": title, "members": len(member_ids)})

    def notify_pending_votes(self, member_ids: List[str], title: str):
        logger.log_notification(PENDING_VOTES, "logged", {"title": title, "members": len(member_ids)})

    def notify_item_completed(self, title: str, average_score: float):
        logger.log_notification(ITEM_COMPLETED, "logged", {"title": title, "average_score": average_score})


class WebhookNotifier(NotificationSink):
    """Posts notifications as JSON to an HTTP endpoint that fans them out."""

    def __init__(self, url: str, timeout: float = NOTIFY_TIMEOUT_SEC, session: requests.Session = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, kind: str, title: str, body: str, member_ids: Optional[List[str]] = None):
        payload: Dict = {"kind": kind, "title": title, "body": body, "member_ids": member_ids}
        response = self.session.post(self.url, json=payload, timeout=self.timeout)
        response.raise_for_status()
        logger.log_notification(kind, "sent", {"status_code": response.status_code})

    def notify_new_vetting_item(self, title: str):
        self._post(NEW_VETTING_ITEM, "New movie for vetting",
                   f'"{title}" is ready for vetting. Have you seen it?')

    def notify_pending_vetting(self, member_ids: List[str], title: str):
        self._post(PENDING_VETTING, "Vetting pending",
                   f'You have not said yet whether you have seen "{title}".', member_ids)

    def notify_pending_votes(self, member_ids: List[str], title: str):
        self._post(PENDING_VOTES, "Vote pending",
                   f'You still have not scored "{title}". Do not forget!', member_ids)

    def notify_item_completed(self, title: str, average_score: float):
        self._post(ITEM_COMPLETED, "Final result",
                   f'"{title}" received an average of {average_score:.1f}/10')


_notifier: Optional[NotificationSink] = None


def get_notifier() -> NotificationSink:
    """Process-wide sink: webhook when NOTIFY_WEBHOOK_URL is set, else logging."""
    global _notifier
    if _notifier is None:
        url = get_webhook_url()
        _notifier = WebhookNotifier(url) if url else LoggingNotifier()
    return _notifier


def set_notifier(notifier: Optional[NotificationSink]):
    """Replace the process-wide sink (None resets to the configured default)."""
    global _notifier
    _notifier = notifier


def dispatch(notifications: Iterable[Notification], sink: NotificationSink = None) -> int:
    """Deliver queued notifications, returning how many succeeded."""
    sink = sink or get_notifier()
    delivered = 0
    for notification in notifications:
        try:
            sink.send(notification)
            delivered += 1
        except Exception as e:
            # Delivery failures never affect lifecycle state
            logger.log_notification(notification.kind, "failed", {
                "title": notification.title,
                "error": str(e)[:100]
            })
    return delivered
