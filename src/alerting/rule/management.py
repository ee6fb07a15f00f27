"""Rule management commands + handlers — configure, toggle and tune notification rules."""

import json

from protean.exceptions import ValidationError
from protean.fields import Boolean, Identifier, Integer, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from alerting.domain import alerting
from alerting.rule.rule import Frequency, Rule
from alerting.shared.enums import EventType


def _decode(value, field):
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        raise ValidationError({field: [f"Invalid JSON: {exc.msg}"]}) from None


@alerting.command(part_of="Rule")
class CreateRule:
    name: String(required=True, max_length=100)
    description: String(max_length=500)
    business_id: Identifier(required=True)
    franchise_id: Identifier()
    event_type: String(required=True, choices=EventType)
    conditions: Text()  # JSON: list of {field, operator, value}
    actions: Text()  # JSON: list of {type, template, recipients, settings}
    is_active: Boolean(default=True)
    priority: Integer(default=0)
    cooldown_minutes: Integer(default=0, min_value=0)
    time_window: Text()  # JSON: {start, end, timezone}
    frequency: String(choices=Frequency, default=Frequency.IMMEDIATE.value)


@alerting.command(part_of="Rule")
class ActivateRule:
    rule_id: Identifier(required=True)


@alerting.command(part_of="Rule")
class DeactivateRule:
    rule_id: Identifier(required=True)


@alerting.command(part_of="Rule")
class UpdateRuleSettings:
    """Change priority, cooldown or frequency; omitted values are kept."""

    rule_id: Identifier(required=True)
    priority: Integer()
    cooldown_minutes: Integer(min_value=0)
    frequency: String(choices=Frequency)


@alerting.command(part_of="Rule")
class SetRuleTimeWindow:
    rule_id: Identifier(required=True)
    start: String(required=True, max_length=5)
    end: String(required=True, max_length=5)
    timezone: String(max_length=64, default="UTC")


@alerting.command(part_of="Rule")
class ClearRuleTimeWindow:
    rule_id: Identifier(required=True)


@alerting.command_handler(part_of=Rule)
class ManageRulesHandler:
    @handle(CreateRule)
    def create_rule(self, command: CreateRule):
        rule = Rule.create(
            name=command.name,
            description=command.description,
            business_id=command.business_id,
            franchise_id=command.franchise_id,
            event_type=command.event_type,
            conditions=_decode(command.conditions, "conditions") or [],
            actions=_decode(command.actions, "actions") or [],
            is_active=command.is_active if command.is_active is not None else True,
            priority=command.priority or 0,
            cooldown_minutes=command.cooldown_minutes or 0,
            time_window=_decode(command.time_window, "time_window"),
            frequency=command.frequency or Frequency.IMMEDIATE.value,
        )
        current_domain.repository_for(Rule).add(rule)
        return str(rule.id)

    @handle(ActivateRule)
    def activate_rule(self, command: ActivateRule):
        repo = current_domain.repository_for(Rule)
        rule = repo.get(command.rule_id)
        rule.activate()
        repo.add(rule)

    @handle(DeactivateRule)
    def deactivate_rule(self, command: DeactivateRule):
        repo = current_domain.repository_for(Rule)
        rule = repo.get(command.rule_id)
        rule.deactivate()
        repo.add(rule)

    @handle(UpdateRuleSettings)
    def update_settings(self, command: UpdateRuleSettings):
        repo = current_domain.repository_for(Rule)
        rule = repo.get(command.rule_id)
        rule.update_settings(
            priority=command.priority,
            cooldown_minutes=command.cooldown_minutes,
            frequency=command.frequency,
        )
        repo.add(rule)

    @handle(SetRuleTimeWindow)
    def set_time_window(self, command: SetRuleTimeWindow):
        repo = current_domain.repository_for(Rule)
        rule = repo.get(command.rule_id)
        rule.set_time_window(command.start, command.end, command.timezone)
        repo.add(rule)

    @handle(ClearRuleTimeWindow)
    def clear_time_window(self, command: ClearRuleTimeWindow):
        repo = current_domain.repository_for(Rule)
        rule = repo.get(command.rule_id)
        rule.clear_time_window()
        repo.add(rule)
