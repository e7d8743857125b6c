"""
Notification Engine Module

Sends loan lifecycle alerts (approval, rejection, payment, completion,
default) over in-app, log and webhook channels. Delivery is fire-and-forget:
a failed send is recorded with ``failed`` status and audited, never raised
to the operation that triggered it. Failed notifications can be retried.
"""

from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Any
from enum import Enum
from abc import ABC, abstractmethod
import uuid

import requests

from .audit import AuditTrail, AuditEventType
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord


logger = get_logger("table_banking.notifications")


class NotificationChannel(Enum):
    """Available notification channels"""
    IN_APP = "in_app"
    LOG = "log"
    WEBHOOK = "webhook"


class NotificationType(Enum):
    """Types of notifications"""
    LOAN_REQUESTED = "loan_requested"
    LOAN_APPROVED = "loan_approved"
    LOAN_REJECTED = "loan_rejected"
    PAYMENT_RECORDED = "payment_recorded"
    LOAN_COMPLETED = "loan_completed"
    LOAN_DEFAULTED = "loan_defaulted"


class NotificationStatus(Enum):
    """Status of notifications"""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    READ = "read"


# (subject, body) per type, rendered with str.format
DEFAULT_TEMPLATES: Dict[NotificationType, tuple] = {
    NotificationType.LOAN_REQUESTED: (
        "New loan request",
        "A loan of {principal} was requested for {borrower_id} and awaits review.",
    ),
    NotificationType.LOAN_APPROVED: (
        "Loan approved",
        "Your loan of {principal} was approved. Total repayable: {total_amount}, "
        "final due date {due_date}.",
    ),
    NotificationType.LOAN_REJECTED: (
        "Loan rejected",
        "Your loan request of {principal} was rejected. Reason: {reason}",
    ),
    NotificationType.PAYMENT_RECORDED: (
        "Payment received",
        "Installment {installment_number} paid: {amount_paid} (penalty {penalty_amount}).",
    ),
    NotificationType.LOAN_COMPLETED: (
        "Loan repaid",
        "Your loan of {total_amount} is fully repaid.",
    ),
    NotificationType.LOAN_DEFAULTED: (
        "Loan in default",
        "Your loan of {total_amount} has defaulted: {overdue_count} installment(s) "
        "unpaid past the grace period.",
    ),
}


@dataclass
class Notification(StorageRecord):
    """Individual notification instance"""
    notification_type: NotificationType
    channel: NotificationChannel
    recipient_id: str
    subject: str
    body: str
    status: NotificationStatus = NotificationStatus.PENDING
    sent_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
    failed_reason: Optional[str] = None
    retry_count: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["notification_type"] = self.notification_type.value
        result["channel"] = self.channel.value
        result["status"] = self.status.value
        result["sent_at"] = self.sent_at.isoformat() if self.sent_at else None
        result["read_at"] = self.read_at.isoformat() if self.read_at else None
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Notification':
        data = dict(data)
        data["notification_type"] = NotificationType(data["notification_type"])
        data["channel"] = NotificationChannel(data["channel"])
        data["status"] = NotificationStatus(data["status"])
        data["created_at"] = datetime.fromisoformat(data["created_at"])
        data["updated_at"] = datetime.fromisoformat(data["updated_at"])
        for key in ("sent_at", "read_at"):
            if data.get(key):
                data[key] = datetime.fromisoformat(data[key])
        return cls(**data)


class ChannelProvider(ABC):
    """Abstract base class for notification channel providers"""

    @abstractmethod
    def send(self, notification: Notification) -> bool:
        """Send notification via this channel. Returns True if successful."""
        pass


class LogChannelProvider(ChannelProvider):
    """Writes notifications to the application log"""

    def __init__(self, channel_logger=None):
        self.logger = channel_logger or get_logger("table_banking.notifications.log")

    def send(self, notification: Notification) -> bool:
        log_action(
            self.logger, "info",
            f"{notification.subject} | {notification.body[:100]}",
            user_id=notification.recipient_id,
            action=notification.notification_type.value,
            resource=notification.metadata.get("loan_id"),
        )
        return True


class WebhookChannelProvider(ChannelProvider):
    """Webhook channel provider for external integrations"""

    def __init__(self, url: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, notification: Notification) -> bool:
        """POST the notification as JSON; any non-2xx response is a failure"""
        payload = {
            "notification_id": notification.id,
            "type": notification.notification_type.value,
            "recipient_id": notification.recipient_id,
            "subject": notification.subject,
            "body": notification.body,
            "timestamp": notification.created_at.isoformat(),
            "metadata": notification.metadata,
        }
        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Webhook send failed: %s", e)
            return False
        return True


class InAppChannelProvider(ChannelProvider):
    """In-app notification provider using storage"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table = "in_app_notifications"

    def send(self, notification: Notification) -> bool:
        now = datetime.now(timezone.utc).isoformat()
        self.storage.save(self.table, notification.id, {
            "id": notification.id,
            "created_at": now,
            "updated_at": now,
            "recipient_id": notification.recipient_id,
            "type": notification.notification_type.value,
            "subject": notification.subject,
            "body": notification.body,
            "read": False,
            "metadata": notification.metadata,
        })
        return True

    def inbox(self, recipient_id: str) -> List[Dict[str, Any]]:
        """In-app messages for a user, newest first"""
        messages = self.storage.find(self.table, {"recipient_id": recipient_id})
        messages.sort(key=lambda m: m["created_at"], reverse=True)
        return messages


class NotificationDispatcher:
    """
    Renders and delivers notifications over every registered channel

    Args:
        storage: Where notification records are kept
        audit_trail: Receives an event for every failed delivery
        providers: Channel providers; defaults to in-app and log
        clock: Source of timestamps
    """

    def __init__(
        self,
        storage: StorageInterface,
        audit_trail: Optional[AuditTrail] = None,
        providers: Optional[Dict[NotificationChannel, ChannelProvider]] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.storage = storage
        self.audit = audit_trail
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.notifications_table = "notifications"
        self.templates: Dict[NotificationType, tuple] = dict(DEFAULT_TEMPLATES)

        if providers is None:
            providers = {
                NotificationChannel.IN_APP: InAppChannelProvider(storage),
                NotificationChannel.LOG: LogChannelProvider(),
            }
        self.providers: Dict[NotificationChannel, ChannelProvider] = dict(providers)

    def register_provider(self, channel: NotificationChannel, provider: ChannelProvider) -> None:
        """Register or replace the provider of a channel"""
        self.providers[channel] = provider

    def notify(
        self,
        notification_type: NotificationType,
        recipient_id: str,
        data: Dict[str, Any],
        channels: Optional[List[NotificationChannel]] = None
    ) -> List[Notification]:
        """
        Send one notification per channel

        Returns:
            The stored notification records, one per channel attempted
        """
        subject_template, body_template = self.templates[notification_type]
        subject = subject_template.format(**data)
        body = body_template.format(**data)

        results = []
        for channel in channels or list(self.providers):
            now = self.clock()
            notification = Notification(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                notification_type=notification_type,
                channel=channel,
                recipient_id=recipient_id,
                subject=subject,
                body=body,
                metadata=dict(data),
            )
            self._deliver(notification)
            results.append(notification)
        return results

    def _deliver(self, notification: Notification) -> None:
        provider = self.providers.get(notification.channel)
        if provider is None:
            success, reason = False, f"No provider registered for channel: {notification.channel.value}"
        else:
            try:
                success = provider.send(notification)
                reason = None if success else "Provider send failed"
            except Exception as e:
                logger.exception("Notification provider %s raised", notification.channel.value)
                success, reason = False, str(e)

        notification.updated_at = self.clock()
        if success:
            notification.status = NotificationStatus.SENT
            notification.sent_at = notification.updated_at
            notification.failed_reason = None
        else:
            notification.status = NotificationStatus.FAILED
            notification.failed_reason = reason

        self.storage.save(self.notifications_table, notification.id, notification.to_dict())

        if not success:
            log_action(logger, "warning", "Notification delivery failed",
                       user_id=notification.recipient_id,
                       action=notification.notification_type.value,
                       resource=notification.id,
                       extra={"channel": notification.channel.value, "reason": reason})
            if self.audit:
                self.audit.log_event(
                    AuditEventType.NOTIFICATION_FAILED,
                    "notification",
                    notification.id,
                    {
                        "type": notification.notification_type.value,
                        "channel": notification.channel.value,
                        "recipient_id": notification.recipient_id,
                        "reason": reason,
                        "retry_count": notification.retry_count,
                    },
                    "system"
                )

    def get_notifications(
        self,
        recipient_id: str,
        status: Optional[NotificationStatus] = None,
        limit: int = 50
    ) -> List[Notification]:
        """Get notifications for a recipient, newest first"""
        filters = {"recipient_id": recipient_id}
        if status:
            filters["status"] = status.value

        notifications = [
            Notification.from_dict(data)
            for data in self.storage.find(self.notifications_table, filters)
        ]
        notifications.sort(key=lambda n: n.created_at, reverse=True)
        return notifications[:limit]

    def mark_as_read(self, notification_id: str) -> bool:
        """Mark notification as read"""
        data = self.storage.load(self.notifications_table, notification_id)
        if not data:
            return False

        notification = Notification.from_dict(data)
        if notification.status != NotificationStatus.READ:
            notification.status = NotificationStatus.READ
            notification.read_at = self.clock()
            notification.updated_at = notification.read_at
            self.storage.save(self.notifications_table, notification.id, notification.to_dict())
        return True

    def retry_failed(self, max_retries: int = 3) -> Dict[str, int]:
        """Retry failed notifications that have not used up their retries"""
        results = {"attempted": 0, "succeeded": 0, "failed": 0}

        failed = self.storage.find(self.notifications_table, {
            "status": NotificationStatus.FAILED.value
        })
        for data in failed:
            notification = Notification.from_dict(data)
            if notification.retry_count >= max_retries:
                continue

            results["attempted"] += 1
            notification.retry_count += 1
            self._deliver(notification)

            if notification.status == NotificationStatus.SENT:
                results["succeeded"] += 1
            else:
                results["failed"] += 1

        return results

    def get_delivery_stats(self) -> Dict[str, int]:
        """Counts of notifications per status"""
        stats = {status.value: 0 for status in NotificationStatus}
        for data in self.storage.load_all(self.notifications_table):
            stats[data["status"]] += 1
        return stats
