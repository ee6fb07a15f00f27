"""Rule aggregate (CQRS) — when and how a business gets notified about an event.

A rule targets one event type for one business (optionally one franchise).
It carries an ordered list of conditions matched against the event payload,
an ordered list of actions (channel + recipients + delivery settings), gating
settings (active flag, priority, cooldown, time window, frequency), and
trigger statistics that are updated every time the rule fires.
"""

import json
from datetime import UTC, datetime
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from alerting.domain import alerting
from alerting.rule.conditions import SEQUENCE_OPERATORS, Operator
from alerting.rule.events import (
    RuleActivated,
    RuleCreated,
    RuleDeactivated,
    RuleSettingsUpdated,
    RuleTriggered,
)
from alerting.shared.enums import ActionType, EventType, Priority, RecipientType


class Frequency(Enum):
    IMMEDIATE = "immediate"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"


def parse_clock_time(value):
    """Convert "HH:MM" into minutes since midnight.

    Raises ValueError on anything that is not a valid 24-hour clock time.
    """
    parts = value.split(":")
    if len(parts) != 2:
        raise ValueError(value)
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(value)
    return hour * 60 + minute


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@alerting.value_object(part_of="Rule")
class TimeWindow:
    """Daily window, in a named timezone, during which a rule may fire.

    A window whose start is later than its end spans midnight (22:00 → 06:00).
    """

    start = String(required=True, max_length=5)
    end = String(required=True, max_length=5)
    timezone = String(max_length=64, default="UTC")

    @invariant.post
    def bounds_must_be_clock_times(self):
        for label, value in [("start", self.start), ("end", self.end)]:
            try:
                parse_clock_time(value)
            except (AttributeError, TypeError, ValueError):
                raise ValidationError({f"time_window_{label}": [f"Invalid time format: {value}. Use HH:MM"]}) from None

    @invariant.post
    def timezone_must_be_known(self):
        try:
            ZoneInfo(self.timezone or "UTC")
        except (ZoneInfoNotFoundError, ValueError):
            raise ValidationError({"time_window_timezone": [f"Unknown timezone: {self.timezone}"]}) from None

    @property
    def start_minutes(self):
        return parse_clock_time(self.start)

    @property
    def end_minutes(self):
        return parse_clock_time(self.end)


@alerting.value_object(part_of="Rule")
class RuleSettings:
    """Gating configuration. Replaced wholesale on update."""

    is_active = Boolean(default=True)
    priority = Integer(default=0)
    cooldown_minutes = Integer(default=0, min_value=0)
    time_window = ValueObject(TimeWindow)
    frequency = String(choices=Frequency, default=Frequency.IMMEDIATE.value)


@alerting.value_object(part_of="Rule")
class RuleStatistics:
    """Trigger counters for a rule.

    Only ever replaced through ``incremented`` when the rule fires.
    """

    total_triggered = Integer(default=0)
    total_sent = Integer(default=0)
    total_failed = Integer(default=0)
    last_triggered = DateTime()

    def incremented(self, success, triggered_at):
        return RuleStatistics(
            total_triggered=(self.total_triggered or 0) + 1,
            total_sent=(self.total_sent or 0) + (1 if success else 0),
            total_failed=(self.total_failed or 0) + (0 if success else 1),
            last_triggered=triggered_at,
        )


@alerting.value_object(part_of="Rule")
class ActionSettings:
    priority = String(choices=Priority, default=Priority.NORMAL.value)
    delay_minutes = Integer(default=0, min_value=0)
    retry_attempts = Integer(default=3, min_value=0)
    retry_delay_minutes = Integer(default=5, min_value=0)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@alerting.entity(part_of="Rule")
class Condition:
    """A predicate over one payload field.

    ``value`` holds the JSON-encoded comparison value so that numbers,
    strings, booleans, null and lists survive persistence unchanged.
    """

    field = String(required=True, max_length=255)
    operator = String(required=True, choices=Operator)
    value = Text()  # JSON
    position = Integer(default=0)

    @classmethod
    def build(cls, field, operator, value=None, position=0):
        if operator in SEQUENCE_OPERATORS and not isinstance(value, list | tuple):
            raise ValidationError({"value": [f"Operator '{operator}' requires a list of values"]})

        return cls(
            field=field,
            operator=operator,
            value=json.dumps(list(value) if isinstance(value, tuple) else value),
            position=position,
        )

    @property
    def expected(self):
        return json.loads(self.value) if self.value is not None else None


@alerting.entity(part_of="Rule")
class Action:
    """One delivery channel with its recipients and delivery settings."""

    action_type = String(required=True, choices=ActionType)
    template = Text(required=True)
    recipients = Text()  # JSON: list of {"type", "value"}
    settings = ValueObject(ActionSettings)
    position = Integer(default=0)

    @classmethod
    def build(cls, action_type, template, recipients=None, settings=None, position=0):
        recipients = recipients or []
        for recipient in recipients:
            if recipient.get("type") not in {t.value for t in RecipientType}:
                raise ValidationError({"recipients": [f"Unknown recipient type: {recipient.get('type')}"]})
            if not recipient.get("value"):
                raise ValidationError({"recipients": ["Recipient value is required"]})

        return cls(
            action_type=action_type,
            template=template,
            recipients=json.dumps([{"type": r["type"], "value": r["value"]} for r in recipients]),
            settings=ActionSettings(**(settings or {})),
            position=position,
        )

    @property
    def recipient_list(self):
        return json.loads(self.recipients) if self.recipients else []


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@alerting.aggregate
class Rule:
    name = String(required=True, max_length=100)
    description = String(max_length=500)
    business_id = Identifier(required=True)
    franchise_id = Identifier()
    event_type = String(required=True, choices=EventType)
    conditions = HasMany(Condition)
    actions = HasMany(Action)
    settings = ValueObject(RuleSettings)
    statistics = ValueObject(RuleStatistics)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        name,
        business_id,
        event_type,
        conditions=None,
        actions=None,
        franchise_id=None,
        description=None,
        is_active=True,
        priority=0,
        cooldown_minutes=0,
        time_window=None,
        frequency=Frequency.IMMEDIATE.value,
        created_at=None,
    ):
        """Configure a new rule.

        Args:
            conditions: List of dicts with field, operator, value.
            actions: List of dicts with type, template, recipients and an
                optional settings dict (priority, delay_minutes,
                retry_attempts, retry_delay_minutes).
            time_window: Optional dict with start, end and timezone.
        """
        now = created_at or datetime.now(UTC)

        condition_entities = [
            Condition.build(c["field"], c["operator"], c.get("value"), position=index)
            for index, c in enumerate(conditions or [])
        ]
        action_entities = [
            Action.build(
                a["type"],
                a["template"],
                recipients=a.get("recipients"),
                settings=a.get("settings"),
                position=index,
            )
            for index, a in enumerate(actions or [])
        ]

        rule = cls(
            name=name,
            description=description,
            business_id=business_id,
            franchise_id=franchise_id,
            event_type=event_type,
            conditions=condition_entities,
            actions=action_entities,
            settings=RuleSettings(
                is_active=is_active,
                priority=priority,
                cooldown_minutes=cooldown_minutes,
                time_window=TimeWindow(**time_window) if time_window else None,
                frequency=frequency,
            ),
            statistics=RuleStatistics(),
            created_at=now,
            updated_at=now,
        )

        rule.raise_(
            RuleCreated(
                rule_id=str(rule.id),
                business_id=str(business_id),
                franchise_id=str(franchise_id) if franchise_id else None,
                name=name,
                event_type=event_type,
                condition_count=len(condition_entities),
                action_count=len(action_entities),
                created_at=now,
            )
        )

        return rule

    # -------------------------------------------------------------------
    # Ordered views
    # -------------------------------------------------------------------
    @property
    def ordered_conditions(self):
        return sorted(self.conditions, key=lambda c: c.position or 0)

    @property
    def ordered_actions(self):
        return sorted(self.actions, key=lambda a: a.position or 0)

    @property
    def is_active(self):
        return bool(self.settings and self.settings.is_active)

    # -------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------
    def add_condition(self, field, operator, value=None):
        self.add_conditions(Condition.build(field, operator, value, position=len(self.conditions)))
        self.updated_at = datetime.now(UTC)

    def add_action(self, action_type, template, recipients=None, settings=None):
        self.add_actions(
            Action.build(
                action_type,
                template,
                recipients=recipients,
                settings=settings,
                position=len(self.actions),
            )
        )
        self.updated_at = datetime.now(UTC)

    def _replace_settings(self, **changes):
        current = self.settings or RuleSettings()
        values = {
            "is_active": current.is_active,
            "priority": current.priority,
            "cooldown_minutes": current.cooldown_minutes,
            "time_window": current.time_window,
            "frequency": current.frequency,
        }
        values.update(changes)
        self.settings = RuleSettings(**values)

    def activate(self):
        if self.is_active:
            raise ValidationError({"settings": ["Rule is already active"]})

        now = datetime.now(UTC)
        self._replace_settings(is_active=True)
        self.updated_at = now

        self.raise_(
            RuleActivated(
                rule_id=str(self.id),
                business_id=str(self.business_id),
                activated_at=now,
            )
        )

    def deactivate(self):
        if not self.is_active:
            raise ValidationError({"settings": ["Rule is already inactive"]})

        now = datetime.now(UTC)
        self._replace_settings(is_active=False)
        self.updated_at = now

        self.raise_(
            RuleDeactivated(
                rule_id=str(self.id),
                business_id=str(self.business_id),
                deactivated_at=now,
            )
        )

    def update_settings(self, priority=None, cooldown_minutes=None, frequency=None):
        """Change priority, cooldown or frequency. Pass None to keep unchanged."""
        if priority is None and cooldown_minutes is None and frequency is None:
            raise ValidationError({"settings": ["At least one setting must be provided"]})

        changes = {}
        if priority is not None:
            changes["priority"] = priority
        if cooldown_minutes is not None:
            changes["cooldown_minutes"] = cooldown_minutes
        if frequency is not None:
            changes["frequency"] = frequency

        self._replace_settings(**changes)
        self._settings_updated()

    def set_time_window(self, start, end, timezone="UTC"):
        """Restrict firing to a daily window. Both start and end required."""
        if not start or not end:
            raise ValidationError({"time_window": ["Both start and end times are required"]})

        self._replace_settings(time_window=TimeWindow(start=start, end=end, timezone=timezone or "UTC"))
        self._settings_updated()

    def clear_time_window(self):
        self._replace_settings(time_window=None)
        self._settings_updated()

    def _settings_updated(self):
        now = datetime.now(UTC)
        self.updated_at = now
        window = self.settings.time_window

        self.raise_(
            RuleSettingsUpdated(
                rule_id=str(self.id),
                business_id=str(self.business_id),
                priority=self.settings.priority,
                cooldown_minutes=self.settings.cooldown_minutes,
                frequency=self.settings.frequency,
                window_start=window.start if window else None,
                window_end=window.end if window else None,
                window_timezone=window.timezone if window else None,
                updated_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------
    def record_trigger(self, success=True, triggered_at=None):
        """Count a firing of this rule. Called by the engine once per fire."""
        now = triggered_at or datetime.now(UTC)
        self.statistics = (self.statistics or RuleStatistics()).incremented(success, now)
        self.updated_at = now

        self.raise_(
            RuleTriggered(
                rule_id=str(self.id),
                business_id=str(self.business_id),
                event_type=self.event_type,
                success=success,
                total_triggered=self.statistics.total_triggered,
                total_sent=self.statistics.total_sent,
                total_failed=self.statistics.total_failed,
                triggered_at=now,
            )
        )
