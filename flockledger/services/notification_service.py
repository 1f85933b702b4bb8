"""
Manager notifications.

Delivery belongs to an external service; the ledger only needs to hand a
message over. The installed notifier is called after the ledger
transaction has committed, and any error it raises is logged and
swallowed so a failed delivery never undoes a recorded sale.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from flockledger.models.enums import NotificationType
from flockledger.services.logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)


class Notifier(Protocol):
    """Delivery backend for organization manager notifications."""

    def send_to_org_managers(
        self,
        organization_id: str,
        title: str,
        message: str,
        type: str,
        link: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...


class LoggingNotifier:
    """Default notifier: writes each notification to the service log."""

    def send_to_org_managers(
        self,
        organization_id,
        title,
        message,
        type,
        link=None,
        details=None,
    ):
        logger.info(
            f"[{type}] {title}: {message}",
            extra={"organization_id": organization_id, "link": link},
        )


@dataclass
class PendingNotification:
    """A notification queued during a transaction, sent after commit."""

    organization_id: Optional[str]
    title: str
    message: str
    type: NotificationType = NotificationType.INFO
    link: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


_notifier: Notifier = LoggingNotifier()


def set_notifier(notifier: Notifier) -> Notifier:
    """Install a notifier and return the previous one."""
    global _notifier
    previous = _notifier
    _notifier = notifier
    return previous


def get_notifier() -> Notifier:
    return _notifier


def notify_org_managers(notification: PendingNotification) -> bool:
    """
    Deliver a notification, best effort.

    Returns:
        True if the notifier accepted it, False if it was skipped or failed
    """
    if not notification.organization_id:
        return False
    try:
        _notifier.send_to_org_managers(
            organization_id=notification.organization_id,
            title=notification.title,
            message=notification.message,
            type=notification.type.value,
            link=notification.link,
            details=notification.details or None,
        )
        return True
    except Exception as e:
        log_operation(
            logger,
            operation="notify_org_managers",
            outcome="failed",
            level=logging.ERROR,
            organization_id=notification.organization_id,
            title=notification.title,
            error=str(e),
        )
        return False


def dispatch(notifications: List[PendingNotification]) -> int:
    """Deliver queued notifications; returns how many were accepted."""
    return sum(1 for notification in notifications if notify_org_managers(notification))
