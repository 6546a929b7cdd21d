"""
PaginationDriver: pages one platform to exhaustion through the buffer.

State machine:

    FETCHING -> BUFFERING -> FETCHING ...
    BUFFERING -> FLUSHING_FINAL -> DONE
    any fetch or flush failure -> FAILED

The driver is strictly sequential: page N+1 is requested only after the
records of page N are buffered (and flushed if the buffer filled up).
"""

from datetime import datetime
from enum import Enum

from order_ingest.clients import PlatformClient
from order_ingest.core.errors import FlushError
from order_ingest.core.models import ErrorReport, FetchError, RawOrder, RunSummary
from order_ingest.core.rules import RuleEngine
from order_ingest.observability import metrics
from order_ingest.observability.logger import get_logger

from .buffer import Buffer
from .flush import FlushCoordinator

logger = get_logger(__name__)


class DriverState(str, Enum):
    FETCHING = "FETCHING"
    BUFFERING = "BUFFERING"
    FLUSHING_FINAL = "FLUSHING_FINAL"
    DONE = "DONE"
    FAILED = "FAILED"


class PaginationDriver:
    """
    Drives one platform's fetch, validate, buffer and flush loop.

    ``run`` always returns a RunSummary; failures are recorded on it rather
    than raised.
    """

    def __init__(
        self,
        client: PlatformClient,
        coordinator: FlushCoordinator,
        buffer_capacity: int,
        rule_engine: RuleEngine | None = None,
        max_pages: int | None = None,
    ):
        """
        Args:
            client: Platform API client
            coordinator: Flushes full buffers to the warehouse
            buffer_capacity: Valid orders accumulated per flush
            rule_engine: Record-level rules (no filtering when omitted)
            max_pages: Page cap for one run (defaults to the platform config)
        """
        self.client = client
        self.platform = client.platform
        self.page_size = client.config.page_size
        self.coordinator = coordinator
        self.rule_engine = rule_engine
        self.max_pages = max_pages or client.config.max_pages
        self.buffer: Buffer[RawOrder] = Buffer(self.platform, buffer_capacity)
        self.state = DriverState.FETCHING
        self._summary = RunSummary.empty()
        self._persisted = 0

    def run(self, date: str) -> RunSummary:
        """
        Page the platform for one collection date.

        Args:
            date: Collection date (yyyy-MM-dd)

        Returns:
            Summary of this platform's run (SUCCESS or FAILED)
        """
        self._summary = RunSummary.started()
        self._persisted = 0
        self.state = DriverState.FETCHING
        self.buffer.clear()

        logger.info(
            f"Starting {self.platform} import for {date}",
            extra={"platform": self.platform, "date": date, "page_size": self.page_size},
        )

        page = 1
        while True:
            if page > self.max_pages:
                return self._fail(ErrorReport(
                    entity_type="platform",
                    entity_id=str(page),
                    platform=self.platform,
                    error_code="max_pages_exceeded",
                    error_message=f"{self.platform} exceeded the page cap of {self.max_pages}",
                ))

            self.state = DriverState.FETCHING
            result = self.client.fetch_page(date, page, self.page_size)
            self._summary = self._summary.add_counts(api_calls=1)

            if isinstance(result, FetchError):
                return self._fail(ErrorReport(
                    entity_type="page",
                    entity_id=str(result.page_number),
                    platform=self.platform,
                    error_code="fetch_cancelled" if result.cancelled else "fetch_failed",
                    error_message=result.message,
                ))

            self.state = DriverState.BUFFERING
            if result.skipped:
                self._filtered(result.skipped)

            try:
                self._buffer_records(result.records)
            except FlushError as e:
                return self._fail(ErrorReport.from_exception(e, self.platform, "flush"))

            if result.is_last_page(self.page_size):
                logger.info(
                    f"{self.platform} exhausted after page {page}",
                    extra={
                        "platform": self.platform,
                        "page": page,
                        "returned_count": result.returned_count,
                        "has_next": result.declared_has_next,
                    },
                )
                break
            page += 1

        self.state = DriverState.FLUSHING_FINAL
        if self.buffer:
            try:
                self._flush()
            except FlushError as e:
                return self._fail(ErrorReport.from_exception(e, self.platform, "flush"))

        self.state = DriverState.DONE
        summary = self._summary.add_counts(platform_counts={self.platform: self._persisted})
        self._summary = summary.mark_success()
        logger.info(
            f"Completed {self.platform} import",
            extra={
                "platform": self.platform,
                "api_calls": self._summary.api_calls,
                "records": self._persisted,
                "filtered": self._summary.filtered_records,
                "flushes": self._summary.flush_count,
            },
        )
        return self._summary

    # ========== internals ==========

    def _buffer_records(self, records: tuple[RawOrder, ...]) -> None:
        for record in records:
            if self.rule_engine is not None:
                result = self.rule_engine.validate_record(record)
                if not result.passed:
                    self._filtered([ErrorReport(
                        entity_type="order",
                        entity_id=result.record_id,
                        platform=self.platform,
                        error_code=result.failed_rules[0],
                        error_message="; ".join(result.messages),
                    )])
                    continue

            metrics.increment_counter(metrics.records_total, platform=self.platform, status="valid")
            self.buffer.append(record)
            if self.buffer.is_full():
                self._flush()

    def _filtered(self, reports) -> None:
        reports = tuple(reports)
        for report in reports:
            logger.warning(
                f"Skipping {self.platform} order {report.entity_id}: {report.error_message}",
                extra={"platform": self.platform, "order_id": report.entity_id, "rule": report.error_code},
            )
        metrics.increment_counter(metrics.records_total, len(reports), platform=self.platform, status="filtered")
        self._summary = self._summary.add_counts(filtered_records=len(reports)).add_errors(reports)

    def _flush(self) -> None:
        records = self.buffer.drain()
        result = self.coordinator.flush(records)
        self._persisted += result.records
        if result.skipped:
            self._filtered(result.skipped)
        self._summary = self._summary.add_counts(
            db_operations=result.db_operations,
            flush_count=1,
            table_insert_counts=result.table_counts,
        )

    def _fail(self, report: ErrorReport) -> RunSummary:
        discarded = len(self.buffer)
        self.buffer.clear()
        self.state = DriverState.FAILED
        metrics.record_error(self.platform, report.error_code, "pagination")
        logger.error(
            f"{self.platform} import failed: {report.error_message}",
            extra={"platform": self.platform, "discarded_records": discarded, "error_code": report.error_code},
        )
        summary = self._summary.add_counts(platform_counts={self.platform: self._persisted})
        self._summary = summary.mark_failed(report, now=datetime.utcnow())
        return self._summary
