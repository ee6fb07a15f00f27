"""Tests for notification retries — counters, requeue and exhaustion."""

from datetime import UTC, datetime, timedelta

import pytest
from alerting.notification.events import NotificationRetried
from alerting.notification.notification import (
    DeliveryStatus,
    Notification,
    NotificationStatus,
)
from protean.exceptions import ValidationError

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def _make_failed_notification(**overrides):
    defaults = {
        "rule_id": "rule-001",
        "business_id": "biz-001",
        "event_type": "complaint",
        "action_type": "email",
        "recipients": [
            {"type": "email", "value": "a@example.com"},
            {"type": "email", "value": "b@example.com"},
        ],
        "template": "Complaint filed",
        "created_at": NOW,
    }
    defaults.update(overrides)
    n = Notification.create(**defaults)
    n.mark_failed("SMTP timeout", NOW)
    n._events.clear()
    return n


class TestCanRetry:
    def test_failed_with_retries_left(self):
        assert _make_failed_notification().can_retry() is True

    def test_pending_cannot_retry(self):
        n = Notification.create(
            rule_id="rule-001",
            business_id="biz-001",
            event_type="complaint",
            action_type="email",
            recipients=[],
            template="x",
        )
        assert n.can_retry() is False

    def test_no_retries_allowed(self):
        assert _make_failed_notification(max_retries=0).can_retry() is False


class TestIncrementRetry:
    def test_increments_notification_count(self):
        n = _make_failed_notification()
        n.increment_retry()
        assert n.retry_count == 1

    def test_increments_only_failed_recipients(self):
        n = Notification.create(
            rule_id="rule-001",
            business_id="biz-001",
            event_type="complaint",
            action_type="email",
            recipients=[
                {"type": "email", "value": "a@example.com"},
                {"type": "email", "value": "b@example.com"},
            ],
            template="x",
            created_at=NOW,
        )
        n.record_recipient_outcome("a@example.com", "sent", NOW)
        n.mark_failed("Partial failure", NOW)

        n.increment_retry()

        counts = {r.value: r.retry_count for r in n.recipients}
        assert counts == {"a@example.com": 0, "b@example.com": 1}

    def test_count_is_incremental(self):
        n = _make_failed_notification()
        for expected in (1, 2, 3):
            n.increment_retry()
            assert n.retry_count == expected


class TestRequeue:
    def test_requeue_returns_to_pending(self):
        n = _make_failed_notification()
        n.requeue(NOW)
        assert n.status == NotificationStatus.PENDING.value
        assert n.retry_count == 1
        assert n.error is None

    def test_requeue_schedules_after_retry_delay(self):
        n = _make_failed_notification(retry_delay_minutes=15)
        n.requeue(NOW)
        assert n.scheduled_for == NOW + timedelta(minutes=15)

    def test_requeue_resets_failed_recipients(self):
        n = _make_failed_notification()
        n.requeue(NOW)
        assert all(r.status == DeliveryStatus.PENDING.value for r in n.recipients)
        assert all(r.retry_count == 1 for r in n.recipients)
        assert all(r.error is None for r in n.recipients)

    def test_requeue_raises_event(self):
        n = _make_failed_notification()
        n.requeue(NOW)
        event = n._events[-1]
        assert isinstance(event, NotificationRetried)
        assert event.retry_count == 1
        assert event.scheduled_for == NOW + timedelta(minutes=5)

    def test_requeue_pending_raises(self):
        n = _make_failed_notification()
        n.requeue(NOW)
        with pytest.raises(ValidationError) as exc_info:
            n.requeue(NOW)
        assert "status" in exc_info.value.messages

    def test_retries_exhaust_after_max(self):
        n = _make_failed_notification(max_retries=2)
        for _ in range(2):
            n.requeue(NOW)
            n.mark_failed("Still failing", NOW)

        assert n.retry_count == 2
        assert n.can_retry() is False
        with pytest.raises(ValidationError) as exc_info:
            n.requeue(NOW)
        assert "retry_count" in exc_info.value.messages

    def test_requeue_after_processing_failure(self):
        n = Notification.create(
            rule_id="rule-001",
            business_id="biz-001",
            event_type="complaint",
            action_type="sms",
            recipients=[{"type": "phone", "value": "+15550100"}],
            template="x",
            created_at=NOW,
        )
        n.mark_processing(NOW)
        n.mark_failed("Carrier rejected", NOW)
        n.requeue(NOW)
        n.mark_processing(NOW)
        n.mark_sent(NOW)
        assert n.status == NotificationStatus.SENT.value
        assert n.retry_count == 1
