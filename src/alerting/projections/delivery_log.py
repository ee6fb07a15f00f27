"""DeliveryLog — one audit row per notification, following its delivery.

Besides the overall status the row counts per-recipient acknowledgements, so
a dashboard can show how many recipients actually received a notification
without loading the aggregate.
"""

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

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
from alerting.notification.notification import (
    DeliveryStatus,
    Notification,
    NotificationStatus,
)


@alerting.projection
class DeliveryLog:
    notification_id: Identifier(identifier=True, required=True)
    rule_id: Identifier(required=True)
    business_id: Identifier(required=True)
    event_type: String(required=True)
    action_type: String(required=True)
    priority: String()
    status: String(required=True)
    recipient_count: Integer(default=0)
    delivered_count: Integer(default=0)
    bounced_count: Integer(default=0)
    retry_count: Integer(default=0)
    last_error: Text()
    scheduled_for: DateTime()
    created_at: DateTime()
    sent_at: DateTime()
    failed_at: DateTime()
    updated_at: DateTime()


@alerting.projector(projector_for=DeliveryLog, aggregates=[Notification])
class DeliveryLogProjector:
    def _change(self, notification_id, mutate):
        """Apply ``mutate`` to the stored row. Rows created before the log existed are skipped."""
        repo = current_domain.repository_for(DeliveryLog)
        try:
            row = repo.get(notification_id)
        except ObjectNotFoundError:
            return
        mutate(row)
        repo.add(row)

    @on(NotificationCreated)
    def opened(self, event):
        current_domain.repository_for(DeliveryLog).add(
            DeliveryLog(
                notification_id=event.notification_id,
                rule_id=event.rule_id,
                business_id=event.business_id,
                event_type=event.event_type,
                action_type=event.action_type,
                priority=event.priority,
                status=NotificationStatus.PENDING.value,
                recipient_count=event.recipient_count,
                scheduled_for=event.scheduled_for,
                created_at=event.created_at,
                updated_at=event.created_at,
            )
        )

    @on(NotificationProcessing)
    def claimed(self, event):
        def mutate(row):
            row.status = NotificationStatus.PROCESSING.value
            row.updated_at = event.started_at

        self._change(event.notification_id, mutate)

    @on(NotificationSent)
    def sent(self, event):
        def mutate(row):
            row.status = NotificationStatus.SENT.value
            row.sent_at = event.sent_at
            row.updated_at = event.sent_at

        self._change(event.notification_id, mutate)

    @on(NotificationFailed)
    def failed(self, event):
        def mutate(row):
            row.status = NotificationStatus.FAILED.value
            row.last_error = event.error
            row.retry_count = event.retry_count
            row.failed_at = event.failed_at
            row.updated_at = event.failed_at

        self._change(event.notification_id, mutate)

    @on(NotificationRetried)
    def requeued(self, event):
        # last_error is kept so the row still explains why a retry happened
        def mutate(row):
            row.status = NotificationStatus.PENDING.value
            row.retry_count = event.retry_count
            row.scheduled_for = event.scheduled_for
            row.updated_at = event.retried_at

        self._change(event.notification_id, mutate)

    @on(NotificationCancelled)
    def cancelled(self, event):
        def mutate(row):
            row.status = NotificationStatus.CANCELLED.value
            row.last_error = event.reason
            row.updated_at = event.cancelled_at

        self._change(event.notification_id, mutate)

    @on(RecipientOutcomeRecorded)
    def acknowledged(self, event):
        def mutate(row):
            if event.status == DeliveryStatus.DELIVERED.value:
                row.delivered_count = (row.delivered_count or 0) + 1
            elif event.status == DeliveryStatus.BOUNCED.value:
                row.bounced_count = (row.bounced_count or 0) + 1
                row.last_error = event.error or row.last_error
            row.updated_at = event.recorded_at

        self._change(event.notification_id, mutate)
