"""Gate checks — whether a rule is eligible to fire at a given moment.

Three gates, evaluated in order and short-circuiting on the first failure:
the active flag, the daily time window, and the cooldown since the rule last
fired. A rejected gate is a normal negative decision, not an error.
"""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from alerting.shared.timeutils import as_utc

logger = structlog.get_logger(__name__)


def is_in_time_window(time_window, now: datetime) -> bool:
    """Check ``now`` against a daily window in the window's own timezone.

    Both boundaries are inclusive. A window whose start is after its end spans
    midnight. No window (or a window missing a bound) always passes.
    """
    if time_window is None or not time_window.start or not time_window.end:
        return True

    try:
        zone = ZoneInfo(time_window.timezone or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time window timezone, gate closed", timezone=time_window.timezone)
        return False

    local = as_utc(now).astimezone(zone)
    current = local.hour * 60 + local.minute
    start = time_window.start_minutes
    end = time_window.end_minutes

    if start <= end:
        return start <= current <= end
    return current >= start or current <= end


def is_cooling_down(cooldown_minutes: int | None, last_triggered: datetime | None, now: datetime) -> bool:
    """True while less than ``cooldown_minutes`` have passed since the last trigger."""
    if not cooldown_minutes or cooldown_minutes <= 0 or last_triggered is None:
        return False

    elapsed = as_utc(now) - as_utc(last_triggered)
    return elapsed < timedelta(minutes=cooldown_minutes)


def can_fire(rule, now: datetime) -> bool:
    settings = rule.settings
    if settings is None or not settings.is_active:
        return False

    if not is_in_time_window(settings.time_window, now):
        return False

    last_triggered = rule.statistics.last_triggered if rule.statistics else None
    return not is_cooling_down(settings.cooldown_minutes, last_triggered, now)
