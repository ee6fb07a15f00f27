"""Repository for the Notification aggregate — delivery and retry work queues."""

from datetime import datetime, timedelta

from alerting.domain import alerting
from alerting.notification.notification import (
    DeliveryStatus,
    Notification,
    NotificationStatus,
)
from alerting.shared.enums import PRIORITY_RANK
from alerting.shared.timeutils import as_utc


def _in_range(moment, start, end):
    if start is None or end is None:
        return True
    if moment is None:
        return False
    return as_utc(start) <= as_utc(moment) <= as_utc(end)


@alerting.repository(part_of=Notification)
class NotificationRepository:
    def _matching(self, **criteria) -> list[Notification]:
        # Protean caps a query at 100 rows unless the limit is lifted
        return self._dao.query.filter(**criteria).limit(None).all().items

    def due_for_delivery(self, as_of: datetime, limit: int = 100) -> list[Notification]:
        """Pending notifications scheduled at or before ``as_of``.

        Most urgent first, then earliest scheduled.
        """
        as_of = as_utc(as_of)
        pending = self._matching(status=NotificationStatus.PENDING.value)
        due = [n for n in pending if n.scheduled_for is None or as_utc(n.scheduled_for) <= as_of]
        due.sort(key=lambda n: (-PRIORITY_RANK.get(n.priority, 1), as_utc(n.scheduled_for or as_of)))
        return due[:limit]

    def awaiting_retry(self, as_of: datetime, limit: int = 100) -> list[Notification]:
        """Failed, still-retryable notifications whose retry delay has elapsed.

        Oldest failure first.
        """
        as_of = as_utc(as_of)
        failed = self._matching(status=NotificationStatus.FAILED.value)

        eligible = []
        for notification in failed:
            if not notification.can_retry():
                continue
            failed_at = as_utc(notification.failed_at or as_of)
            if failed_at + timedelta(minutes=notification.retry_delay_minutes or 0) <= as_of:
                eligible.append(notification)

        eligible.sort(key=lambda n: as_utc(n.failed_at or as_of))
        return eligible[:limit]

    def find_for_business(
        self,
        business_id: str,
        franchise_id: str | None = None,
        event_type: str | None = None,
        status: str | None = None,
        priority: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Notification]:
        """Notifications for a business, newest first."""
        criteria = {"business_id": str(business_id)}
        if franchise_id:
            criteria["franchise_id"] = str(franchise_id)
        if event_type:
            criteria["event_type"] = event_type
        if status:
            criteria["status"] = status
        if priority:
            criteria["priority"] = priority

        results = [n for n in self._matching(**criteria) if _in_range(n.created_at, start, end)]
        results.sort(key=lambda n: as_utc(n.created_at), reverse=True)
        return results[offset : offset + limit]

    def stats_for_business(
        self,
        business_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[dict]:
        """Per-status totals: notification count, recipients, successful recipients."""
        stats = {}
        for notification in self._matching(business_id=str(business_id)):
            if not _in_range(notification.created_at, start, end):
                continue

            row = stats.setdefault(
                notification.status,
                {"status": notification.status, "count": 0, "total_recipients": 0, "successful_recipients": 0},
            )
            row["count"] += 1
            row["total_recipients"] += len(notification.recipients)
            row["successful_recipients"] += sum(
                1
                for r in notification.recipients
                if r.status in (DeliveryStatus.SENT.value, DeliveryStatus.DELIVERED.value)
            )

        return sorted(stats.values(), key=lambda row: row["status"])
