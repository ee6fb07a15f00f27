"""Domain events for the Notification aggregate."""

from protean.fields import DateTime, Identifier, Integer, String, Text

from alerting.domain import alerting


@alerting.event(part_of="Notification")
class NotificationCreated:
    """A rule fired and a notification was queued for one of its actions."""

    __version__ = 1

    notification_id: Identifier(required=True)
    rule_id: Identifier(required=True)
    business_id: Identifier(required=True)
    franchise_id: Identifier()
    event_type: String(required=True)
    action_type: String(required=True)
    priority: String(required=True)
    recipient_count: Integer(default=0)
    subject: Text()
    scheduled_for: DateTime()
    created_at: DateTime(required=True)


@alerting.event(part_of="Notification")
class NotificationProcessing:
    """A delivery worker picked the notification up."""

    __version__ = 1

    notification_id: Identifier(required=True)
    business_id: Identifier(required=True)
    started_at: DateTime(required=True)


@alerting.event(part_of="Notification")
class NotificationSent:
    __version__ = 1

    notification_id: Identifier(required=True)
    business_id: Identifier(required=True)
    action_type: String(required=True)
    recipients_sent: Integer(default=0)
    sent_at: DateTime(required=True)


@alerting.event(part_of="Notification")
class NotificationFailed:
    __version__ = 1

    notification_id: Identifier(required=True)
    business_id: Identifier(required=True)
    action_type: String(required=True)
    error: Text(required=True)
    retry_count: Integer(required=True)
    max_retries: Integer(required=True)
    failed_at: DateTime(required=True)


@alerting.event(part_of="Notification")
class NotificationRetried:
    """A failed notification was re-queued for another delivery attempt."""

    __version__ = 1

    notification_id: Identifier(required=True)
    business_id: Identifier(required=True)
    retry_count: Integer(required=True)
    scheduled_for: DateTime(required=True)
    retried_at: DateTime(required=True)


@alerting.event(part_of="Notification")
class NotificationCancelled:
    __version__ = 1

    notification_id: Identifier(required=True)
    business_id: Identifier(required=True)
    reason: Text(required=True)
    cancelled_at: DateTime(required=True)


@alerting.event(part_of="Notification")
class RecipientOutcomeRecorded:
    """A single recipient's delivery status moved forward."""

    __version__ = 1

    notification_id: Identifier(required=True)
    business_id: Identifier(required=True)
    recipient_type: String(required=True)
    recipient_value: String(required=True, max_length=500)
    status: String(required=True)
    error: Text()
    recorded_at: DateTime(required=True)
