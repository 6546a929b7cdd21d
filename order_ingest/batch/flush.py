"""
FlushCoordinator: classify, map and persist one buffer's orders.
"""

from collections import Counter
from typing import Protocol

from pydantic import BaseModel, Field

from order_ingest.core.classification import StatusClassifier
from order_ingest.core.errors import FlushError, UnmappableOrderError
from order_ingest.core.models import ErrorReport, RawOrder
from order_ingest.mapping import OrderMapper, ProjectionSet
from order_ingest.observability import metrics
from order_ingest.observability.logger import get_logger, log_operation

logger = get_logger(__name__)


class FlushSink(Protocol):
    """Anything that can persist a ProjectionSet atomically."""

    def write_flush(self, projections: ProjectionSet) -> dict[str, int]:
        ...


class FlushResult(BaseModel):
    """
    Outcome of one successful flush.

    Attributes:
        records: Orders written by the flush
        skipped: Orders left out because they could not be mapped
        table_counts: Rows submitted per table
        db_operations: Upsert statements executed (one per non-empty table)
        state_counts: Orders per lifecycle state
        duplicates: Rows dropped because their natural key repeated
    """

    records: int = 0
    skipped: tuple[ErrorReport, ...] = ()
    table_counts: dict[str, int] = Field(default_factory=dict)
    db_operations: int = 0
    state_counts: dict[str, int] = Field(default_factory=dict)
    duplicates: int = 0

    class Config:
        frozen = True


class FlushCoordinator:
    """
    Turns a batch of orders into warehouse rows and writes them in one unit.

    The coordinator holds no records; it is handed the drained buffer.
    """

    def __init__(self, platform: str, sink: FlushSink, mapper: OrderMapper | None = None):
        self.platform = platform
        self.sink = sink
        self.classifier = StatusClassifier(platform)
        self.mapper = mapper or OrderMapper(platform)

    def build_projections(
        self, records: list[RawOrder]
    ) -> tuple[ProjectionSet, Counter, list[ErrorReport]]:
        """
        Classify and map every record, deduplicating rows by natural key.

        An order that cannot be mapped is reported and left out; the rest of
        the batch is unaffected.
        """
        projections = ProjectionSet()
        states: Counter = Counter()
        skipped: list[ErrorReport] = []
        for order in records:
            state, rule = self.classifier.explain(order)
            try:
                rows = self.mapper.map_order(order, state, rule)
            except ValueError as e:
                skipped.append(ErrorReport(
                    entity_type="order",
                    entity_id=order.effective_order_id,
                    platform=self.platform,
                    error_code=e.code if isinstance(e, UnmappableOrderError) else type(e).__name__,
                    error_message=str(e),
                ))
                continue
            states[state.value] += 1
            projections.add_mapped(rows)
        return projections, states, skipped

    def flush(self, records: list[RawOrder]) -> FlushResult:
        """
        Persist a batch.

        Args:
            records: Drained buffer contents

        Returns:
            FlushResult with per-table counts

        Raises:
            FlushError: If the sink fails; nothing was committed
        """
        if not records:
            return FlushResult()

        try:
            with metrics.track_duration(metrics.flush_duration_seconds, platform=self.platform), \
                    log_operation("Flushing buffer", logger=logger, platform=self.platform, records=len(records)):
                projections, states, skipped = self.build_projections(records)
                table_counts = self.sink.write_flush(projections)
        except Exception as e:
            metrics.increment_counter(metrics.flushes_total, platform=self.platform, status="failure")
            metrics.record_error(self.platform, type(e).__name__, "flush")
            raise FlushError(self.platform, len(records), f"{type(e).__name__}: {e}") from e

        metrics.increment_counter(metrics.flushes_total, platform=self.platform, status="success")
        for state, count in states.items():
            metrics.increment_counter(metrics.orders_classified_total, count, platform=self.platform, state=state)
        for table, count in table_counts.items():
            metrics.increment_counter(metrics.rows_upserted_total, count, platform=self.platform, table=table)

        if projections.total_duplicates:
            logger.debug(
                f"Dropped {projections.total_duplicates} duplicate rows",
                extra={"platform": self.platform, "duplicates": projections.duplicates},
            )

        return FlushResult(
            records=len(records) - len(skipped),
            skipped=tuple(skipped),
            table_counts=table_counts,
            db_operations=len(table_counts),
            state_counts=dict(states),
            duplicates=projections.total_duplicates,
        )
