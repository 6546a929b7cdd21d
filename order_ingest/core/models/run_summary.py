"""
RunSummary: immutable report of one platform pipeline, or of a whole run.

Summaries are combined with ``merge``. The operation is associative and
commutative (apart from the order of ``errors``) and ``RunSummary.empty()``
is its identity, so per-platform results can be folded in any order.
"""

from collections import Counter
from datetime import datetime
from enum import Enum
from functools import reduce
from typing import Iterable

from pydantic import BaseModel, Field

from .error_report import ErrorReport


class RunStatus(str, Enum):
    SKIPPED = "SKIPPED"
    SUCCESS = "SUCCESS"
    IN_PROGRESS = "IN_PROGRESS"
    FAILED = "FAILED"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


# Higher rank wins on merge; FAILED is sticky.
_STATUS_RANK = {
    RunStatus.SKIPPED: 0,
    RunStatus.SUCCESS: 1,
    RunStatus.IN_PROGRESS: 2,
    RunStatus.FAILED: 3,
}


def _sum_counts(left: dict[str, int], right: dict[str, int]) -> dict[str, int]:
    totals = Counter(left)
    totals.update(right)
    return {key: totals[key] for key in sorted(totals)}


def _earliest(left: datetime | None, right: datetime | None) -> datetime | None:
    candidates = [value for value in (left, right) if value is not None]
    return min(candidates) if candidates else None


def _latest(left: datetime | None, right: datetime | None) -> datetime | None:
    candidates = [value for value in (left, right) if value is not None]
    return max(candidates) if candidates else None


class RunSummary(BaseModel):
    """
    Counts, timings and errors of an import run.

    Attributes:
        start_time: Earliest start among merged pipelines
        end_time: Latest end among merged pipelines
        status: Overall status (FAILED is sticky across merges)
        api_calls: Page fetches issued, retries excluded
        db_operations: Upsert statements submitted to the sink
        platform_counts: Valid orders persisted per platform
        table_insert_counts: Rows submitted per table
        errors: ErrorReports in the order they were recorded
        filtered_records: Orders dropped by record validation
        flush_count: Buffer flushes performed
    """

    start_time: datetime | None = None
    end_time: datetime | None = None
    status: RunStatus = RunStatus.SKIPPED
    api_calls: int = Field(0, ge=0)
    db_operations: int = Field(0, ge=0)
    platform_counts: dict[str, int] = Field(default_factory=dict)
    table_insert_counts: dict[str, int] = Field(default_factory=dict)
    errors: tuple[ErrorReport, ...] = ()
    filtered_records: int = Field(0, ge=0)
    flush_count: int = Field(0, ge=0)

    class Config:
        frozen = True

    # ========== constructors ==========

    @classmethod
    def empty(cls) -> "RunSummary":
        """Identity element of ``merge``."""
        return cls()

    @classmethod
    def started(cls, now: datetime | None = None) -> "RunSummary":
        return cls(start_time=now or datetime.utcnow(), status=RunStatus.IN_PROGRESS)

    @classmethod
    def skipped(cls, reason: str, now: datetime | None = None) -> "RunSummary":
        now = now or datetime.utcnow()
        report = ErrorReport(
            entity_type="run",
            platform="all",
            error_code="SKIPPED",
            error_message=reason,
        )
        return cls(start_time=now, end_time=now, status=RunStatus.SKIPPED, errors=(report,))

    # ========== functional updates ==========

    def merge(self, other: "RunSummary") -> "RunSummary":
        """Combine two summaries into a new one; neither input is modified."""
        status = self.status if self.status.rank >= other.status.rank else other.status
        return RunSummary(
            start_time=_earliest(self.start_time, other.start_time),
            end_time=_latest(self.end_time, other.end_time),
            status=status,
            api_calls=self.api_calls + other.api_calls,
            db_operations=self.db_operations + other.db_operations,
            platform_counts=_sum_counts(self.platform_counts, other.platform_counts),
            table_insert_counts=_sum_counts(self.table_insert_counts, other.table_insert_counts),
            errors=self.errors + other.errors,
            filtered_records=self.filtered_records + other.filtered_records,
            flush_count=self.flush_count + other.flush_count,
        )

    def add_counts(
        self,
        api_calls: int = 0,
        db_operations: int = 0,
        filtered_records: int = 0,
        flush_count: int = 0,
        platform_counts: dict[str, int] | None = None,
        table_insert_counts: dict[str, int] | None = None,
    ) -> "RunSummary":
        return self.model_copy(update={
            "api_calls": self.api_calls + api_calls,
            "db_operations": self.db_operations + db_operations,
            "filtered_records": self.filtered_records + filtered_records,
            "flush_count": self.flush_count + flush_count,
            "platform_counts": _sum_counts(self.platform_counts, platform_counts or {}),
            "table_insert_counts": _sum_counts(self.table_insert_counts, table_insert_counts or {}),
        })

    def add_errors(self, reports: Iterable[ErrorReport]) -> "RunSummary":
        return self.model_copy(update={"errors": self.errors + tuple(reports)})

    def mark_success(self, now: datetime | None = None) -> "RunSummary":
        """Close the summary as SUCCESS unless it already failed."""
        status = RunStatus.FAILED if self.status == RunStatus.FAILED else RunStatus.SUCCESS
        return self.model_copy(update={"status": status, "end_time": now or datetime.utcnow()})

    def mark_failed(self, report: ErrorReport, now: datetime | None = None) -> "RunSummary":
        return self.model_copy(update={
            "status": RunStatus.FAILED,
            "end_time": now or datetime.utcnow(),
            "errors": self.errors + (report,),
        })

    # ========== derived values ==========

    @property
    def is_failed(self) -> bool:
        return self.status == RunStatus.FAILED

    @property
    def error_message(self) -> str | None:
        if not self.errors:
            return None
        return "; ".join(report.error_message for report in self.errors)

    @property
    def processing_time_ms(self) -> int:
        if self.start_time is None or self.end_time is None:
            return 0
        return int((self.end_time - self.start_time).total_seconds() * 1000)

    @property
    def duration_formatted(self) -> str:
        seconds = self.processing_time_ms // 1000
        if seconds < 60:
            return f"{seconds}s"
        if seconds < 3600:
            return f"{seconds // 60}m {seconds % 60}s"
        return f"{seconds // 3600}h {(seconds % 3600) // 60}m"

    @property
    def total_records(self) -> int:
        return sum(self.platform_counts.values())

    @property
    def total_inserts(self) -> int:
        return sum(self.table_insert_counts.values())

    def to_report(self) -> dict:
        """JSON-friendly view used by the CLI and logs."""
        return {
            "status": self.status.value,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration": self.duration_formatted,
            "api_calls": self.api_calls,
            "db_operations": self.db_operations,
            "flush_count": self.flush_count,
            "filtered_records": self.filtered_records,
            "total_records": self.total_records,
            "platform_counts": dict(self.platform_counts),
            "table_insert_counts": dict(self.table_insert_counts),
            "errors": [
                {
                    "platform": report.platform,
                    "entity_type": report.entity_type,
                    "entity_id": report.entity_id,
                    "error_code": report.error_code,
                    "error_message": report.error_message,
                }
                for report in self.errors
            ],
        }


def merge(target: RunSummary, source: RunSummary) -> RunSummary:
    """Module-level alias of ``RunSummary.merge``."""
    return target.merge(source)


def merge_all(summaries: Iterable[RunSummary]) -> RunSummary:
    """Fold any number of summaries, starting from the identity."""
    return reduce(merge, summaries, RunSummary.empty())
