"""Notification aggregate (CQRS) — one fired rule action and its delivery lifecycle.

A notification is created by the rule engine when a rule fires, one per rule
action, fanned out to every recipient of that action. Each recipient carries
its own delivery status; the notification carries the overall status that the
delivery worker drives through the operations below.

State Machine (overall status):
    PENDING → PROCESSING → SENT
    PENDING → PROCESSING → FAILED → (requeue) → PENDING
    PENDING → SENT | FAILED
    PENDING | PROCESSING | FAILED (retryable) → CANCELLED

Recipient status only moves forward:
    PENDING → SENT → DELIVERED | BOUNCED
    PENDING → FAILED → (requeue) → PENDING
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

import structlog
from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from alerting.domain import alerting
from alerting.notification.events import (
    NotificationCancelled,
    NotificationCreated,
    NotificationFailed,
    NotificationProcessing,
    NotificationRetried,
    NotificationSent,
    RecipientOutcomeRecorded,
)
from alerting.shared.enums import ActionType, EventType, Priority, RecipientType

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class NotificationStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


class DeliveryStatus(Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    DELIVERED = "delivered"
    BOUNCED = "bounced"


# ---------------------------------------------------------------------------
# State Machine
# ---------------------------------------------------------------------------
_VALID_TRANSITIONS = {
    NotificationStatus.PENDING: {
        NotificationStatus.PROCESSING,
        NotificationStatus.SENT,
        NotificationStatus.FAILED,
        NotificationStatus.CANCELLED,
    },
    NotificationStatus.PROCESSING: {
        NotificationStatus.SENT,
        NotificationStatus.FAILED,
        NotificationStatus.CANCELLED,
    },
    NotificationStatus.FAILED: {
        NotificationStatus.PENDING,  # Via requeue
        NotificationStatus.CANCELLED,
    },
    NotificationStatus.SENT: set(),  # Terminal
    NotificationStatus.CANCELLED: set(),  # Terminal
}

_RECIPIENT_TRANSITIONS = {
    DeliveryStatus.PENDING: {
        DeliveryStatus.SENT,
        DeliveryStatus.FAILED,
        DeliveryStatus.DELIVERED,
        DeliveryStatus.BOUNCED,
    },
    DeliveryStatus.SENT: {DeliveryStatus.DELIVERED, DeliveryStatus.BOUNCED},
    DeliveryStatus.FAILED: set(),  # Only requeue moves it back to pending
    DeliveryStatus.DELIVERED: set(),
    DeliveryStatus.BOUNCED: set(),
}

_SUCCESSFUL = {DeliveryStatus.SENT.value, DeliveryStatus.DELIVERED.value}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@alerting.value_object(part_of="Notification")
class NotificationContent:
    """Rendered message content plus the variables it was rendered from."""

    subject = Text()
    body = Text()
    template = Text()
    variables = Text()  # JSON


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@alerting.entity(part_of="Notification")
class Recipient:
    """Delivery state for one recipient of a notification."""

    recipient_type = String(required=True, choices=RecipientType)
    value = String(required=True, max_length=500)
    status = String(choices=DeliveryStatus, default=DeliveryStatus.PENDING.value)
    sent_at = DateTime()
    error = Text()
    retry_count = Integer(default=0)
    position = Integer(default=0)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@alerting.aggregate
class Notification:
    # Origin
    rule_id = Identifier(required=True)  # Lookup only, never loaded through
    business_id = Identifier(required=True)
    franchise_id = Identifier()
    event_type = String(required=True, choices=EventType)
    action_type = String(required=True, choices=ActionType)
    trigger_data = Text()  # JSON snapshot of the event payload

    # Fan-out
    recipients = HasMany(Recipient)
    content = ValueObject(NotificationContent)

    # Status
    status = String(choices=NotificationStatus, default=NotificationStatus.PENDING.value)
    priority = String(choices=Priority, default=Priority.NORMAL.value)

    # Scheduling and delivery tracking
    scheduled_for = DateTime()
    sent_at = DateTime()
    failed_at = DateTime()
    error = Text()

    # Retry
    retry_count = Integer(default=0)
    max_retries = Integer(default=3, min_value=0)
    retry_delay_minutes = Integer(default=5, min_value=0)

    # Timestamps
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        rule_id,
        business_id,
        event_type,
        action_type,
        recipients,
        template,
        subject=None,
        body=None,
        variables=None,
        trigger_data=None,
        franchise_id=None,
        priority=Priority.NORMAL.value,
        scheduled_for=None,
        max_retries=3,
        retry_delay_minutes=5,
        created_at=None,
    ):
        """Create a new notification in PENDING status.

        Args:
            recipients: List of dicts with ``type`` and ``value``.
            template: Action template text; subject and body default to it.
            variables: Data available to the template (the event payload).
        """
        now = created_at or datetime.now(UTC)

        notification = cls(
            rule_id=rule_id,
            business_id=business_id,
            franchise_id=franchise_id,
            event_type=event_type,
            action_type=action_type,
            trigger_data=json.dumps(trigger_data if trigger_data is not None else {}),
            recipients=[
                Recipient(
                    recipient_type=r["type"],
                    value=r["value"],
                    status=DeliveryStatus.PENDING.value,
                    retry_count=0,
                    position=index,
                )
                for index, r in enumerate(recipients)
            ],
            content=NotificationContent(
                subject=subject or template,
                body=body or template,
                template=template,
                variables=json.dumps(variables if variables is not None else {}),
            ),
            status=NotificationStatus.PENDING.value,
            priority=priority or Priority.NORMAL.value,
            scheduled_for=scheduled_for or now,
            retry_count=0,
            max_retries=max_retries,
            retry_delay_minutes=retry_delay_minutes,
            created_at=now,
            updated_at=now,
        )

        notification.raise_(
            NotificationCreated(
                notification_id=str(notification.id),
                rule_id=str(rule_id),
                business_id=str(business_id),
                franchise_id=str(franchise_id) if franchise_id else None,
                event_type=event_type,
                action_type=action_type,
                priority=notification.priority,
                recipient_count=len(recipients),
                subject=notification.content.subject,
                scheduled_for=notification.scheduled_for,
                created_at=now,
            )
        )

        return notification

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def ordered_recipients(self):
        return sorted(self.recipients, key=lambda r: r.position or 0)

    @property
    def trigger_payload(self):
        return json.loads(self.trigger_data) if self.trigger_data else {}

    def can_retry(self):
        """True while the notification is failed and retries remain."""
        return NotificationStatus(self.status) == NotificationStatus.FAILED and self.retry_count < self.max_retries

    def success_rate(self):
        """Percentage of recipients that were sent or delivered (0 when there are none)."""
        total = len(self.recipients)
        if total == 0:
            return 0

        successful = sum(1 for r in self.recipients if r.status in _SUCCESSFUL)
        return successful / total * 100

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        """Validate state machine transition."""
        current = NotificationStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def mark_processing(self, started_at=None):
        """A delivery worker has claimed the notification."""
        self._assert_can_transition(NotificationStatus.PROCESSING)

        now = started_at or datetime.now(UTC)
        self.status = NotificationStatus.PROCESSING.value
        self.updated_at = now

        self.raise_(
            NotificationProcessing(
                notification_id=str(self.id),
                business_id=str(self.business_id),
                started_at=now,
            )
        )

    def mark_sent(self, sent_at=None):
        """Mark the notification sent; every still-pending recipient is sent too."""
        self._assert_can_transition(NotificationStatus.SENT)

        now = sent_at or datetime.now(UTC)
        self.status = NotificationStatus.SENT.value
        self.sent_at = now
        self.updated_at = now

        sent = 0
        for recipient in self.recipients:
            if recipient.status == DeliveryStatus.PENDING.value:
                recipient.status = DeliveryStatus.SENT.value
                recipient.sent_at = now
                sent += 1

        self.raise_(
            NotificationSent(
                notification_id=str(self.id),
                business_id=str(self.business_id),
                action_type=self.action_type,
                recipients_sent=sent,
                sent_at=now,
            )
        )

    def mark_failed(self, error, failed_at=None):
        """Mark the notification failed; every still-pending recipient fails with it."""
        self._assert_can_transition(NotificationStatus.FAILED)

        now = failed_at or datetime.now(UTC)
        self.status = NotificationStatus.FAILED.value
        self.failed_at = now
        self.error = error
        self.updated_at = now

        for recipient in self.recipients:
            if recipient.status == DeliveryStatus.PENDING.value:
                recipient.status = DeliveryStatus.FAILED.value
                recipient.error = error

        self.raise_(
            NotificationFailed(
                notification_id=str(self.id),
                business_id=str(self.business_id),
                action_type=self.action_type,
                error=error,
                retry_count=self.retry_count,
                max_retries=self.max_retries,
                failed_at=now,
            )
        )

    def increment_retry(self):
        """Count a retry on the notification and on each currently failed recipient."""
        self.retry_count = self.retry_count + 1
        for recipient in self.recipients:
            if recipient.status == DeliveryStatus.FAILED.value:
                recipient.retry_count = (recipient.retry_count or 0) + 1

    def requeue(self, requeued_at=None):
        """Put a failed notification back in the queue for another attempt.

        Failed recipients go back to pending; sent, delivered and bounced
        recipients keep their status. The next attempt is scheduled
        ``retry_delay_minutes`` after ``requeued_at``.
        """
        if NotificationStatus(self.status) != NotificationStatus.FAILED:
            raise ValidationError({"status": ["Only failed notifications can be retried"]})
        if not self.can_retry():
            raise ValidationError({"retry_count": ["Maximum retry attempts exceeded"]})

        now = requeued_at or datetime.now(UTC)
        self.increment_retry()

        for recipient in self.recipients:
            if recipient.status == DeliveryStatus.FAILED.value:
                recipient.status = DeliveryStatus.PENDING.value
                recipient.error = None

        self.status = NotificationStatus.PENDING.value
        self.error = None
        self.scheduled_for = now + timedelta(minutes=self.retry_delay_minutes or 0)
        self.updated_at = now

        self.raise_(
            NotificationRetried(
                notification_id=str(self.id),
                business_id=str(self.business_id),
                retry_count=self.retry_count,
                scheduled_for=self.scheduled_for,
                retried_at=now,
            )
        )

    def cancel(self, reason, cancelled_at=None):
        """Cancel a notification that has not reached a terminal state."""
        if NotificationStatus(self.status) == NotificationStatus.FAILED and not self.can_retry():
            raise ValidationError({"status": ["Cannot cancel a notification whose retries are exhausted"]})
        self._assert_can_transition(NotificationStatus.CANCELLED)

        now = cancelled_at or datetime.now(UTC)
        self.status = NotificationStatus.CANCELLED.value
        self.error = reason
        self.updated_at = now

        self.raise_(
            NotificationCancelled(
                notification_id=str(self.id),
                business_id=str(self.business_id),
                reason=reason,
                cancelled_at=now,
            )
        )

    def record_recipient_outcome(self, value, outcome, recorded_at=None, error=None, recipient_type=None):
        """Move one recipient's delivery status forward.

        The recipient is matched on ``value`` and, when given, ``recipient_type``.
        A value shared by recipients of different types must name the type.

        Returns False (and changes nothing) when the recipient is already past
        ``outcome``; acknowledgements arriving out of order are expected.
        """
        if NotificationStatus(self.status) == NotificationStatus.CANCELLED:
            raise ValidationError({"status": ["Cannot record outcomes on a cancelled notification"]})

        try:
            target = DeliveryStatus(outcome)
        except ValueError:
            raise ValidationError({"outcome": [f"Unknown recipient outcome: {outcome}"]}) from None

        candidates = [
            r
            for r in self.ordered_recipients
            if r.value == value and (recipient_type is None or r.recipient_type == recipient_type)
        ]
        if not candidates:
            raise ValidationError({"recipient": [f"Recipient not found: {value}"]})
        if len(candidates) > 1:
            raise ValidationError({"recipient_type": [f"Recipient type required, {value} is ambiguous"]})
        recipient = candidates[0]

        current = DeliveryStatus(recipient.status)
        if target not in _RECIPIENT_TRANSITIONS[current]:
            logger.debug(
                "Ignoring out-of-order recipient outcome",
                notification_id=str(self.id),
                recipient=value,
                current=current.value,
                outcome=target.value,
            )
            return False

        now = recorded_at or datetime.now(UTC)
        recipient.status = target.value
        if target == DeliveryStatus.SENT or (target == DeliveryStatus.DELIVERED and recipient.sent_at is None):
            recipient.sent_at = now
        if target in (DeliveryStatus.FAILED, DeliveryStatus.BOUNCED):
            recipient.error = error
        self.updated_at = now

        self.raise_(
            RecipientOutcomeRecorded(
                notification_id=str(self.id),
                business_id=str(self.business_id),
                recipient_type=recipient.recipient_type,
                recipient_value=value,
                status=target.value,
                error=error,
                recorded_at=now,
            )
        )
        return True
