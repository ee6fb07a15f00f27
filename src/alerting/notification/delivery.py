"""Delivery reporting commands + handler — outcomes reported by the delivery worker.

The worker claims a notification (StartDelivery), performs the transport
send outside this context, then reports the overall result
(ConfirmDelivery / ReportDeliveryFailure) and, when the channel provides them,
per-recipient acknowledgements (RecordRecipientOutcome).
"""

import structlog
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from alerting.domain import alerting
from alerting.notification.notification import DeliveryStatus, Notification
from alerting.shared.enums import RecipientType

logger = structlog.get_logger(__name__)


@alerting.command(part_of="Notification")
class StartDelivery:
    notification_id: Identifier(required=True)
    started_at: DateTime()


@alerting.command(part_of="Notification")
class ConfirmDelivery:
    """The transport accepted the notification for all pending recipients."""

    notification_id: Identifier(required=True)
    sent_at: DateTime()


@alerting.command(part_of="Notification")
class ReportDeliveryFailure:
    notification_id: Identifier(required=True)
    error: String(required=True, max_length=1000)
    failed_at: DateTime()


@alerting.command(part_of="Notification")
class RecordRecipientOutcome:
    """Acknowledgement for a single recipient (sent, failed, delivered, bounced)."""

    notification_id: Identifier(required=True)
    recipient_value: String(required=True, max_length=500)
    recipient_type: String(choices=RecipientType)  # Needed only when a value is shared across types
    outcome: String(required=True, choices=DeliveryStatus)
    error: String(max_length=1000)
    recorded_at: DateTime()


@alerting.command_handler(part_of=Notification)
class DeliveryReportHandler:
    @handle(StartDelivery)
    def start_delivery(self, command: StartDelivery):
        repo = current_domain.repository_for(Notification)
        notification = repo.get(command.notification_id)
        notification.mark_processing(command.started_at)
        repo.add(notification)

    @handle(ConfirmDelivery)
    def confirm_delivery(self, command: ConfirmDelivery):
        repo = current_domain.repository_for(Notification)
        notification = repo.get(command.notification_id)
        notification.mark_sent(command.sent_at)
        repo.add(notification)

    @handle(ReportDeliveryFailure)
    def report_failure(self, command: ReportDeliveryFailure):
        repo = current_domain.repository_for(Notification)
        notification = repo.get(command.notification_id)
        notification.mark_failed(command.error, command.failed_at)
        repo.add(notification)

        logger.warning(
            "Notification delivery failed",
            notification_id=str(notification.id),
            error=command.error,
            retry_count=notification.retry_count,
            can_retry=notification.can_retry(),
        )

    @handle(RecordRecipientOutcome)
    def record_outcome(self, command: RecordRecipientOutcome):
        repo = current_domain.repository_for(Notification)
        notification = repo.get(command.notification_id)
        if notification.record_recipient_outcome(
            command.recipient_value,
            command.outcome,
            recorded_at=command.recorded_at,
            error=command.error,
            recipient_type=command.recipient_type,
        ):
            repo.add(notification)
