"""Recovery commands + handler — notifications that did not go through.

A failed notification is either put back in the delivery queue or cancelled.
RetryNotification and CancelNotification act on one notification on request.
RetryFailedNotifications is the periodic sweep run by a background job: it
re-queues every failed notification that still has retries left once its
retry delay has elapsed.
"""

from datetime import UTC, datetime

import structlog
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from alerting.domain import alerting
from alerting.notification.notification import Notification

logger = structlog.get_logger(__name__)


@alerting.command(part_of="Notification")
class RetryNotification:
    notification_id: Identifier(required=True)
    requeued_at: DateTime()


@alerting.command(part_of="Notification")
class RetryFailedNotifications:
    """Re-queue every failed notification whose retry is due."""

    as_of: DateTime()  # Defaults to now
    limit: Integer(default=100, min_value=1)


@alerting.command(part_of="Notification")
class CancelNotification:
    """Stop a pending, in-flight or still-retryable notification."""

    notification_id: Identifier(required=True)
    reason: String(required=True, max_length=500)
    cancelled_at: DateTime()


@alerting.command_handler(part_of=Notification)
class NotificationRecoveryHandler:
    @handle(RetryNotification)
    def retry_notification(self, command: RetryNotification):
        repo = current_domain.repository_for(Notification)
        notification = repo.get(command.notification_id)
        notification.requeue(command.requeued_at)
        repo.add(notification)

    @handle(RetryFailedNotifications)
    def retry_failed(self, command: RetryFailedNotifications):
        as_of = command.as_of or datetime.now(UTC)
        repo = current_domain.repository_for(Notification)

        due = repo.awaiting_retry(as_of, limit=command.limit or 100)
        for notification in due:
            notification.requeue(as_of)
            repo.add(notification)

            if notification.retry_count >= notification.max_retries:
                logger.info(
                    "Final retry attempt scheduled",
                    notification_id=str(notification.id),
                    retry_count=notification.retry_count,
                )

        logger.info("Failed notifications re-queued", requeued=len(due), as_of=as_of.isoformat())
        return len(due)

    @handle(CancelNotification)
    def cancel_notification(self, command: CancelNotification):
        repo = current_domain.repository_for(Notification)
        notification = repo.get(command.notification_id)
        previous = notification.status
        notification.cancel(command.reason, command.cancelled_at)
        repo.add(notification)

        logger.info(
            "Notification cancelled",
            notification_id=str(notification.id),
            previous_status=previous,
            reason=command.reason,
        )
