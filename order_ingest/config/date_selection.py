"""
Collection date selection with a grace period after midnight.

Platforms keep settling the previous day's orders for a while after the
date changes, so until ``cutoff_hour`` local time the importer keeps
collecting yesterday.
"""

from datetime import date, datetime, timedelta
from typing import Callable
from zoneinfo import ZoneInfo

from order_ingest.observability.logger import get_logger

logger = get_logger(__name__)

DATE_FORMAT = "%Y-%m-%d"


class DateSelector:
    """Picks the date to collect in the configured timezone."""

    def __init__(
        self,
        cutoff_hour: int = 2,
        timezone: str = "Asia/Ho_Chi_Minh",
        clock: Callable[[ZoneInfo], datetime] | None = None,
    ):
        """
        Args:
            cutoff_hour: Hour (0-23) before which yesterday is collected
            timezone: IANA zone name
            clock: Returns "now" in a zone; injectable for tests
        """
        if not 0 <= cutoff_hour <= 23:
            raise ValueError(f"cutoff_hour must be within 0-23, got {cutoff_hour}")
        self.cutoff_hour = cutoff_hour
        self.zone = ZoneInfo(timezone)
        self._clock = clock or (lambda zone: datetime.now(zone))

    def now(self) -> datetime:
        return self._clock(self.zone)

    def in_grace_period(self) -> bool:
        return self.now().hour < self.cutoff_hour

    def collection_date(self) -> str:
        """Date (yyyy-MM-dd) to collect: yesterday during the grace period, today otherwise."""
        now = self.now()
        selected: date = now.date()
        if now.hour < self.cutoff_hour:
            selected = selected - timedelta(days=1)
            logger.info(
                f"Collection date {selected.strftime(DATE_FORMAT)} (grace period)",
                extra={"local_time": now.strftime("%H:%M:%S"), "timezone": str(self.zone)},
            )
        return selected.strftime(DATE_FORMAT)

    def yesterday(self) -> str:
        return (self.now().date() - timedelta(days=1)).strftime(DATE_FORMAT)

    def minutes_until_cutoff(self) -> int:
        now = self.now()
        cutoff = now.replace(hour=self.cutoff_hour, minute=0, second=0, microsecond=0)
        if now >= cutoff:
            cutoff += timedelta(days=1)
        return int((cutoff - now).total_seconds() // 60)
