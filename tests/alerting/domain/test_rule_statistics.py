"""Tests for rule trigger statistics."""

from datetime import UTC, datetime, timedelta

from alerting.rule.events import RuleTriggered
from alerting.rule.rule import Rule, RuleStatistics

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def _make_rule():
    rule = Rule.create(name="Complaints", business_id="biz-001", event_type="complaint", created_at=NOW)
    rule._events.clear()
    return rule


class TestRuleStatistics:
    def test_incremented_success(self):
        stats = RuleStatistics().incremented(True, NOW)
        assert stats.total_triggered == 1
        assert stats.total_sent == 1
        assert stats.total_failed == 0
        assert stats.last_triggered == NOW

    def test_incremented_failure(self):
        stats = RuleStatistics().incremented(False, NOW)
        assert stats.total_triggered == 1
        assert stats.total_sent == 0
        assert stats.total_failed == 1

    def test_incremented_returns_new_value(self):
        original = RuleStatistics()
        original.incremented(True, NOW)
        assert original.total_triggered == 0


class TestRecordTrigger:
    def test_record_trigger_updates_statistics(self):
        rule = _make_rule()
        rule.record_trigger(triggered_at=NOW)
        assert rule.statistics.total_triggered == 1
        assert rule.statistics.total_sent == 1
        assert rule.statistics.last_triggered == NOW
        assert rule.updated_at == NOW

    def test_totals_accumulate(self):
        rule = _make_rule()
        rule.record_trigger(triggered_at=NOW)
        rule.record_trigger(success=False, triggered_at=NOW + timedelta(minutes=1))
        rule.record_trigger(triggered_at=NOW + timedelta(minutes=2))

        stats = rule.statistics
        assert stats.total_triggered == 3
        assert stats.total_sent == 2
        assert stats.total_failed == 1
        assert stats.total_sent + stats.total_failed == stats.total_triggered
        assert stats.last_triggered == NOW + timedelta(minutes=2)

    def test_record_trigger_raises_event(self):
        rule = _make_rule()
        rule.record_trigger(triggered_at=NOW)
        event = rule._events[-1]
        assert isinstance(event, RuleTriggered)
        assert event.success is True
        assert event.total_triggered == 1
        assert event.event_type == "complaint"
