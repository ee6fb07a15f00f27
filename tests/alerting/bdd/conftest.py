"""Shared BDD fixtures and step definitions for the alerting domain."""

from datetime import UTC, datetime

import pytest
from alerting.notification.notification import Notification
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


def _new_notification(recipient_count=1, max_retries=3):
    n = Notification.create(
        rule_id="rule-bdd",
        business_id="biz-bdd",
        event_type="rating_low",
        action_type="email",
        recipients=[{"type": "email", "value": f"r{i}@example.com"} for i in range(1, recipient_count + 1)],
        template="Low rating received",
        max_retries=max_retries,
        created_at=NOW,
    )
    n._events.clear()
    return n


# ---------------------------------------------------------------------------
# Given steps: notifications
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse("a pending notification with {count:d} recipients"),
    target_fixture="notification",
)
def pending_notification(count):
    return _new_notification(recipient_count=count)


@given(
    parsers.cfparse("a failed notification allowing {retries:d} retries"),
    target_fixture="notification",
)
def failed_notification(retries):
    n = _new_notification(max_retries=retries)
    n.mark_failed("SMTP timeout", NOW)
    n._events.clear()
    return n


# ---------------------------------------------------------------------------
# Then steps: notifications
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the notification status is "{status}"'))
def notification_status(notification, status):
    assert notification.status == status


@then(parsers.cfparse("the success rate is {rate:g} percent"))
def success_rate(notification, rate):
    assert notification.success_rate() == pytest.approx(rate, abs=0.01)


@then(parsers.cfparse("the retry count is {count:d}"))
def retry_count(notification, count):
    assert notification.retry_count == count


@then("the notification cannot be retried")
def cannot_retry(notification):
    assert notification.can_retry() is False


@then("requeueing the notification is rejected")
def requeue_rejected(notification):
    with pytest.raises(ValidationError):
        notification.requeue(NOW)


@then("cancelling the notification is rejected")
def cancel_rejected(notification):
    with pytest.raises(ValidationError):
        notification.cancel("too late", NOW)
