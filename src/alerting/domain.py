"""Alerting bounded context — rule evaluation and notification delivery lifecycle.

Decides, for each incoming business event, which notification rules fire,
expands fired rules into per-action notifications, and tracks each
notification's per-recipient delivery state through success, failure, or
exhausted retries. Transport delivery happens outside this context; delivery
workers report outcomes back through commands.
"""

from protean.domain import Domain

from alerting.utils.logging import configure_logging, get_logger

configure_logging(log_file_prefix="alerting")

logger = get_logger(__name__)

# Domain Composition Root
alerting = Domain(name="alerting")
