"""Enumerations shared by the Rule and Notification aggregates."""

from enum import Enum


class EventType(Enum):
    FORM_SUBMITTED = "form_submitted"
    RATING_LOW = "rating_low"
    RATING_HIGH = "rating_high"
    COMPLAINT = "complaint"
    COMPLIMENT = "compliment"
    STAFF_MENTIONED = "staff_mentioned"
    CUSTOM = "custom"


class Priority(Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class ActionType(Enum):
    EMAIL = "email"
    SMS = "sms"
    SLACK = "slack"
    WEBHOOK = "webhook"
    PUSH = "push"


class RecipientType(Enum):
    EMAIL = "email"
    PHONE = "phone"
    SLACK_USER = "slack_user"
    WEBHOOK_URL = "webhook_url"


# Higher rank dispatches first
PRIORITY_RANK = {
    Priority.LOW.value: 0,
    Priority.NORMAL.value: 1,
    Priority.HIGH.value: 2,
    Priority.URGENT.value: 3,
}
