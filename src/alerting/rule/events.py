"""Domain events for the Rule aggregate."""

from protean.fields import Boolean, DateTime, Identifier, Integer, String

from alerting.domain import alerting


@alerting.event(part_of="Rule")
class RuleCreated:
    """A notification rule was configured for a business."""

    __version__ = 1

    rule_id: Identifier(required=True)
    business_id: Identifier(required=True)
    franchise_id: Identifier()
    name: String(required=True)
    event_type: String(required=True)
    condition_count: Integer(default=0)
    action_count: Integer(default=0)
    created_at: DateTime(required=True)


@alerting.event(part_of="Rule")
class RuleActivated:
    __version__ = 1

    rule_id: Identifier(required=True)
    business_id: Identifier(required=True)
    activated_at: DateTime(required=True)


@alerting.event(part_of="Rule")
class RuleDeactivated:
    __version__ = 1

    rule_id: Identifier(required=True)
    business_id: Identifier(required=True)
    deactivated_at: DateTime(required=True)


@alerting.event(part_of="Rule")
class RuleSettingsUpdated:
    """Priority, cooldown, frequency or time window changed."""

    __version__ = 1

    rule_id: Identifier(required=True)
    business_id: Identifier(required=True)
    priority: Integer(required=True)
    cooldown_minutes: Integer(required=True)
    frequency: String(required=True)
    window_start: String()
    window_end: String()
    window_timezone: String()
    updated_at: DateTime(required=True)


@alerting.event(part_of="Rule")
class RuleTriggered:
    """A rule fired for an event and its statistics were updated."""

    __version__ = 1

    rule_id: Identifier(required=True)
    business_id: Identifier(required=True)
    event_type: String(required=True)
    success: Boolean(required=True)
    total_triggered: Integer(required=True)
    total_sent: Integer(required=True)
    total_failed: Integer(required=True)
    triggered_at: DateTime(required=True)
