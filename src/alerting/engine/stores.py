"""Repository-backed implementations of the engine's ports."""

from protean.utils.globals import current_domain

from alerting.engine.ports import NotificationSink, RuleStore
from alerting.notification.notification import Notification
from alerting.rule.rule import Rule


class RepositoryRuleStore(RuleStore):
    def __init__(self, repository=None):
        self.repository = repository or current_domain.repository_for(Rule)

    def find_active_rules(self, business_id, event_type):
        return self.repository.find_active_rules(business_id, event_type)


class RepositoryNotificationSink(NotificationSink):
    def __init__(self, repository=None):
        self.repository = repository or current_domain.repository_for(Notification)

    def save(self, notification):
        self.repository.add(notification)
