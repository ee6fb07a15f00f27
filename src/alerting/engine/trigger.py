"""TriggerEvent command + handler — run the rule engine for an incoming business event.

Fired rules are saved with their updated statistics and every drafted
notification is persisted in PENDING status for the delivery worker.
"""

import json

import structlog
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from alerting.domain import alerting
from alerting.engine.engine import RuleEngine
from alerting.engine.stores import RepositoryNotificationSink, RepositoryRuleStore
from alerting.notification.notification import Notification
from alerting.rule.rule import Rule
from alerting.shared.enums import EventType

logger = structlog.get_logger(__name__)


def _decode_payload(raw):
    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError({"payload": [f"Payload is not valid JSON: {exc.msg}"]}) from None
    if not isinstance(payload, dict):
        raise ValidationError({"payload": ["Payload must be a JSON object"]})
    return payload


@alerting.command(part_of="Notification")
class TriggerEvent:
    """A business event that may fire notification rules."""

    business_id: Identifier(required=True)
    event_type: String(required=True, choices=EventType)
    payload: Text()  # JSON object
    occurred_at: DateTime()  # Optional: evaluate as of this time (defaults to now)


@alerting.command_handler(part_of=Notification)
class TriggerEventHandler:
    @handle(TriggerEvent)
    def trigger_event(self, command: TriggerEvent):
        payload = _decode_payload(command.payload)

        rule_repo = current_domain.repository_for(Rule)
        sink = RepositoryNotificationSink()
        engine = RuleEngine(RepositoryRuleStore(rule_repo))

        fired = engine.evaluate(
            str(command.business_id),
            command.event_type,
            payload,
            now=command.occurred_at,
        )

        notification_ids = []
        for fired_rule in fired:
            rule_repo.add(fired_rule.rule)
            for notification in fired_rule.notifications:
                sink.save(notification)
                notification_ids.append(str(notification.id))

        logger.info(
            "Event processed",
            business_id=str(command.business_id),
            event_type=command.event_type,
            rules_fired=len(fired),
            notifications=len(notification_ids),
        )

        return notification_ids
