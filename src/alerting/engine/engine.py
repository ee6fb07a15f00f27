"""Rule engine — decides which rules fire for an event and drafts their notifications.

For every candidate rule (in the order the rule store returns them) the
engine checks the gates, then the conditions. A rule that passes both fires:
each of its actions becomes one pending Notification addressed to all of the
action's recipients, and the rule's statistics record a single trigger. The
engine never delivers anything and never persists anything itself.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta

import structlog

from alerting.engine.ports import Clock, RuleStore, SystemClock
from alerting.notification.notification import Notification
from alerting.rule import conditions
from alerting.rule.gating import can_fire
from alerting.shared.enums import Priority

logger = structlog.get_logger(__name__)


@dataclass
class FiredRule:
    rule: object
    notifications: list = field(default_factory=list)


def build_notification(rule, action, payload, now: datetime) -> Notification:
    """Draft the notification for one action of a firing rule."""
    settings = action.settings
    delay = settings.delay_minutes if settings and settings.delay_minutes else 0

    return Notification.create(
        rule_id=str(rule.id),
        business_id=str(rule.business_id),
        franchise_id=str(rule.franchise_id) if rule.franchise_id else None,
        event_type=rule.event_type,
        action_type=action.action_type,
        recipients=action.recipient_list,
        template=action.template,
        variables=payload,
        trigger_data=payload,
        priority=(settings.priority if settings else None) or Priority.NORMAL.value,
        scheduled_for=now + timedelta(minutes=delay),
        max_retries=settings.retry_attempts if settings and settings.retry_attempts is not None else 3,
        retry_delay_minutes=settings.retry_delay_minutes if settings and settings.retry_delay_minutes is not None else 5,
        created_at=now,
    )


class RuleEngine:
    def __init__(self, rule_store: RuleStore, clock: Clock | None = None):
        self.rule_store = rule_store
        self.clock = clock or SystemClock()

    def evaluate(self, business_id, event_type, payload, now: datetime | None = None) -> list[FiredRule]:
        """Run every candidate rule and return the ones that fired."""
        now = now or self.clock.now()
        fired = []

        for rule in self.rule_store.find_active_rules(business_id, event_type):
            if not can_fire(rule, now):
                logger.debug("Rule gated", rule_id=str(rule.id), reason="gate")
                continue

            if not conditions.evaluate(rule.ordered_conditions, payload):
                logger.debug("Rule skipped", rule_id=str(rule.id), reason="conditions")
                continue

            notifications = [build_notification(rule, action, payload, now) for action in rule.ordered_actions]
            rule.record_trigger(success=True, triggered_at=now)
            fired.append(FiredRule(rule=rule, notifications=notifications))

            logger.info(
                "Rule fired",
                rule_id=str(rule.id),
                business_id=str(business_id),
                event_type=event_type,
                notifications=len(notifications),
            )

        return fired

    def trigger(self, business_id, event_type, payload, now: datetime | None = None) -> list[Notification]:
        """Return every notification created for the event (possibly none)."""
        return [
            notification
            for fired in self.evaluate(business_id, event_type, payload, now)
            for notification in fired.notifications
        ]
