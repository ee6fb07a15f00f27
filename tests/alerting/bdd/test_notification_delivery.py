"""BDD tests for the notification delivery lifecycle."""

from datetime import UTC, datetime

from pytest_bdd import parsers, scenarios, when

scenarios("features/notification_delivery.feature")

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


@when("the delivery worker claims the notification", target_fixture="notification")
def claim(notification):
    notification.mark_processing(NOW)
    return notification


@when("the notification is confirmed as sent", target_fixture="notification")
def confirm_sent(notification):
    notification.mark_sent(NOW)
    return notification


@when(
    parsers.cfparse('recipient "{value}" reports "{outcome}"'),
    target_fixture="notification",
)
def recipient_reports(notification, value, outcome):
    notification.record_recipient_outcome(value, outcome, NOW)
    return notification


@when("the notification is requeued", target_fixture="notification")
def requeue(notification):
    notification.requeue(NOW)
    return notification


@when(
    parsers.cfparse('the delivery fails with "{error}"'),
    target_fixture="notification",
)
def delivery_fails(notification, error):
    notification.mark_failed(error, NOW)
    return notification


@when(
    parsers.cfparse('the notification is cancelled with reason "{reason}"'),
    target_fixture="notification",
)
def cancel(notification, reason):
    notification.cancel(reason, NOW)
    return notification
