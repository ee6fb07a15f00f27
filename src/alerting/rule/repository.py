"""Repository for the Rule aggregate."""

from datetime import UTC, datetime

from alerting.domain import alerting
from alerting.rule.rule import Rule
from alerting.shared.timeutils import as_utc

_EPOCH = datetime.min.replace(tzinfo=UTC)


def _created(rule):
    return as_utc(rule.created_at) if rule.created_at else _EPOCH


def _priority(rule):
    return (rule.settings.priority or 0) if rule.settings else 0


def _by_priority_then_newest(rules):
    # Two stable sorts: newest first, then highest priority first
    ordered = sorted(rules, key=_created, reverse=True)
    return sorted(ordered, key=_priority, reverse=True)


@alerting.repository(part_of=Rule)
class RuleRepository:
    def _matching(self, **criteria) -> list[Rule]:
        # Protean caps a query at 100 rows unless the limit is lifted
        return self._dao.query.filter(**criteria).limit(None).all().items

    def find_active_rules(self, business_id: str, event_type: str) -> list[Rule]:
        """Active rules for a business and event type, highest priority and newest first."""
        rules = self._matching(business_id=str(business_id), event_type=event_type, settings_is_active=True)
        return _by_priority_then_newest(rules)

    def find_for_business(
        self,
        business_id: str,
        franchise_id: str | None = None,
        event_type: str | None = None,
        is_active: bool | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Rule]:
        criteria = {"business_id": str(business_id)}
        if franchise_id:
            criteria["franchise_id"] = str(franchise_id)
        if event_type:
            criteria["event_type"] = event_type
        if is_active is not None:
            criteria["settings_is_active"] = is_active

        return _by_priority_then_newest(self._matching(**criteria))[offset : offset + limit]
