"""Application tests for the TriggerEvent command handler."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from alerting.engine.trigger import TriggerEvent
from alerting.notification.notification import Notification, NotificationStatus
from alerting.rule.rule import Rule
from protean import current_domain
from protean.exceptions import ValidationError

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def _create_rule(**overrides):
    defaults = {
        "name": "Low rating alert",
        "business_id": "biz-app-1",
        "event_type": "rating_low",
        "conditions": [{"field": "rating", "operator": "less_than", "value": 3}],
        "actions": [
            {
                "type": "email",
                "template": "Low rating",
                "recipients": [{"type": "email", "value": "owner@example.com"}],
            }
        ],
        "created_at": NOW - timedelta(days=1),
    }
    defaults.update(overrides)
    rule = Rule.create(**defaults)
    current_domain.repository_for(Rule).add(rule)
    return str(rule.id)


def _trigger(payload, business_id="biz-app-1", event_type="rating_low", occurred_at=NOW):
    return current_domain.process(
        TriggerEvent(
            business_id=business_id,
            event_type=event_type,
            payload=json.dumps(payload),
            occurred_at=occurred_at,
        ),
        asynchronous=False,
    )


class TestTriggerEventCommand:
    def test_matching_event_persists_notification(self):
        rule_id = _create_rule()
        ids = _trigger({"rating": 1})

        assert len(ids) == 1
        n = current_domain.repository_for(Notification).get(ids[0])
        assert n.status == NotificationStatus.PENDING.value
        assert n.rule_id == rule_id
        assert n.business_id == "biz-app-1"
        assert n.trigger_payload == {"rating": 1}

    def test_fired_rule_statistics_are_saved(self):
        rule_id = _create_rule()
        _trigger({"rating": 1})

        rule = current_domain.repository_for(Rule).get(rule_id)
        assert rule.statistics.total_triggered == 1
        assert rule.statistics.total_sent == 1

    def test_non_matching_event_creates_nothing(self):
        rule_id = _create_rule()
        assert _trigger({"rating": 4}) == []

        rule = current_domain.repository_for(Rule).get(rule_id)
        assert rule.statistics.total_triggered == 0

    def test_inactive_rule_is_ignored(self):
        _create_rule(is_active=False)
        assert _trigger({"rating": 1}) == []

    def test_other_event_type_is_ignored(self):
        _create_rule()
        assert _trigger({"rating": 1}, event_type="complaint") == []

    def test_cooldown_applies_across_commands(self):
        _create_rule(cooldown_minutes=10)
        assert len(_trigger({"rating": 1})) == 1
        assert _trigger({"rating": 1}, occurred_at=NOW + timedelta(minutes=5)) == []
        assert len(_trigger({"rating": 1}, occurred_at=NOW + timedelta(minutes=11))) == 1

    def test_every_matching_rule_fires(self):
        _create_rule(name="first")
        _create_rule(name="second", conditions=[])
        assert len(_trigger({"rating": 2})) == 2


class TestTriggerEventPayload:
    def test_malformed_json_rejected(self):
        _create_rule()
        with pytest.raises(ValidationError) as exc_info:
            current_domain.process(
                TriggerEvent(business_id="biz-app-1", event_type="rating_low", payload="{rating: 1"),
                asynchronous=False,
            )
        assert "payload" in exc_info.value.messages

    def test_non_object_payload_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            current_domain.process(
                TriggerEvent(business_id="biz-app-1", event_type="rating_low", payload="[1, 2]"),
                asynchronous=False,
            )
        assert "payload" in exc_info.value.messages

    def test_missing_payload_is_empty_event(self):
        _create_rule(conditions=[])
        ids = current_domain.process(
            TriggerEvent(business_id="biz-app-1", event_type="rating_low", occurred_at=NOW),
            asynchronous=False,
        )
        assert len(ids) == 1
