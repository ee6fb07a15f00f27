"""Collaborator ports the rule engine depends on."""

from abc import ABC, abstractmethod
from datetime import UTC, datetime


class RuleStore(ABC):
    """Source of candidate rules for an incoming event."""

    @abstractmethod
    def find_active_rules(self, business_id: str, event_type: str) -> list:
        """Return active rules for the business and event type.

        Ordered by descending priority, then descending creation time. The
        engine evaluates them in exactly this order.
        """
        ...


class NotificationSink(ABC):
    """Destination for notifications created when rules fire."""

    @abstractmethod
    def save(self, notification) -> None: ...


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime: ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(UTC)


class FixedClock(Clock):
    """Clock pinned to a moment, advanced explicitly (useful for testing)."""

    def __init__(self, moment: datetime):
        self.moment = moment

    def now(self) -> datetime:
        return self.moment

    def advance(self, delta) -> None:
        self.moment = self.moment + delta
