"""
Unit tests for the batch pipeline: Buffer, FlushCoordinator and PaginationDriver.

The platform API is replaced with a scripted fake client and the warehouse
with an in-memory sink.
"""

import math

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from order_ingest.batch import Buffer, DriverState, FlushCoordinator, PaginationDriver
from order_ingest.config import PlatformConfig
from order_ingest.core.errors import FlushError
from order_ingest.core.models import ErrorReport, FetchError, PageResult, RawOrder, RunStatus
from order_ingest.core.rules import RuleEngine, default_rules

from conftest import RecordingSink, build_order_payload


class ScriptedClient:
    """Fake PlatformClient serving pre-built page outcomes in order"""

    def __init__(self, pages, platform="facebook", page_size=100, max_pages=10_000):
        self.platform = platform
        self.config = PlatformConfig(name=platform, page_size=page_size, max_pages=max_pages)
        self.pages = list(pages)
        self.calls: list[int] = []

    def fetch_page(self, date, page, page_size=None, source_filter=None):
        self.calls.append(page)
        if not self.pages:
            return PageResult(records=(), returned_count=0)
        return self.pages.pop(0)


def _orders(count: int, prefix: str = "O") -> tuple[RawOrder, ...]:
    return tuple(RawOrder.model_validate(build_order_payload(f"{prefix}-{i}")) for i in range(count))


def _page(count: int, has_next=None, prefix: str = "O") -> PageResult:
    return PageResult(records=_orders(count, prefix), declared_has_next=has_next, returned_count=count)


def _sized_pages(sizes: list[int]) -> list[PageResult]:
    return [_page(size, prefix=f"P{n}") for n, size in enumerate(sizes)]


def _driver(client, sink, capacity=500, rule_engine=None, max_pages=None):
    coordinator = FlushCoordinator(client.platform, sink)
    return PaginationDriver(client, coordinator, capacity, rule_engine=rule_engine, max_pages=max_pages)


@pytest.mark.unit
class TestBuffer:
    """Tests for Buffer"""

    def test_append_and_drain(self):
        """Test drain returns records in order and empties the buffer"""
        buffer: Buffer[int] = Buffer("shopee", capacity=3)
        buffer.append(1)
        buffer.extend([2, 3, 4])

        assert len(buffer) == 4
        assert buffer.is_full()
        assert buffer.drain() == [1, 2, 3, 4]
        assert len(buffer) == 0
        assert not buffer

    def test_size_may_exceed_capacity(self):
        """Test capacity triggers flushes rather than rejecting records"""
        buffer: Buffer[int] = Buffer("shopee", capacity=2)
        buffer.extend(range(10))
        assert buffer.size() == 10

    def test_capacity_must_be_positive(self):
        """Test a zero capacity is rejected"""
        with pytest.raises(ValueError):
            Buffer("shopee", capacity=0)


@pytest.mark.unit
class TestFlushCoordinator:
    """Tests for FlushCoordinator"""

    def test_flush_maps_every_table(self, recording_sink, make_order):
        """Test one flush hands eleven projections to the sink"""
        coordinator = FlushCoordinator("facebook", recording_sink)

        result = coordinator.flush([make_order("A"), make_order("B", status=3)])

        assert result.records == 2
        assert result.db_operations == 11
        assert result.table_counts["orders"] == 2
        assert result.state_counts == {"ACTIVE": 1, "DELIVERED": 1}
        assert len(recording_sink.flushes) == 1

    def test_shared_dimensions_are_deduplicated(self, recording_sink, make_order):
        """Test rows sharing a natural key are written once, first one wins"""
        coordinator = FlushCoordinator("facebook", recording_sink)

        result = coordinator.flush([make_order("A"), make_order("B"), make_order("A", status=6)])

        projections = recording_sink.flushes[0]
        assert result.table_counts["orders"] == 2
        assert result.table_counts["customers"] == 1
        assert result.table_counts["products"] == 1
        assert projections.rows("orders")[0].lifecycle_state == "ACTIVE"
        assert result.duplicates > 0

    def test_empty_flush_is_a_no_op(self, recording_sink):
        """Test flushing nothing does not reach the sink"""
        result = FlushCoordinator("facebook", recording_sink).flush([])
        assert result.records == 0
        assert recording_sink.flushes == []

    def test_unmappable_order_is_skipped_not_fatal(self, recording_sink, make_order):
        """Test an order without a creation time is reported while the rest are written"""
        coordinator = FlushCoordinator("facebook", recording_sink)
        undated = make_order("BAD", inserted_at=None, raw={"inserted_at": None})

        result = coordinator.flush([make_order("A"), undated, make_order("B")])

        assert result.records == 2
        assert result.table_counts["orders"] == 2
        assert [report.entity_id for report in result.skipped] == ["BAD"]
        assert result.skipped[0].error_code == "creation_date_valid"
        assert len(recording_sink.flushes) == 1

    def test_sink_failure_raises_flush_error(self, failing_sink, make_order):
        """Test a sink exception surfaces as FlushError"""
        coordinator = FlushCoordinator("tiktok", failing_sink)

        with pytest.raises(FlushError) as exc_info:
            coordinator.flush([make_order("A")])

        assert exc_info.value.platform == "tiktok"
        assert exc_info.value.record_count == 1
        assert "connection lost" in str(exc_info.value)


@pytest.mark.unit
class TestPaginationDriver:
    """Tests for PaginationDriver"""

    def test_short_page_ends_pagination(self, recording_sink):
        """Test pages [100, 100, 37] with page size 100 take three calls"""
        client = ScriptedClient(_sized_pages([100, 100, 37]), page_size=100)
        driver = _driver(client, recording_sink, capacity=500)

        summary = driver.run("2025-12-30")

        assert client.calls == [1, 2, 3]
        assert summary.status == RunStatus.SUCCESS
        assert summary.api_calls == 3
        assert summary.platform_counts == {"facebook": 237}
        assert driver.state == DriverState.DONE

    def test_flushes_fire_at_capacity(self, recording_sink):
        """Test capacity 150 over 237 records gives flushes of 150 and 87"""
        client = ScriptedClient(_sized_pages([100, 100, 37]), page_size=100)
        driver = _driver(client, recording_sink, capacity=150)

        summary = driver.run("2025-12-30")

        assert recording_sink.flushed_orders == [150, 87]
        assert summary.flush_count == 2
        assert summary.table_insert_counts["orders"] == 237

    def test_explicit_false_flag_stops_on_full_page(self, recording_sink):
        """Test has_next=False ends pagination even on a full page"""
        client = ScriptedClient([_page(100, has_next=False)], page_size=100)

        _driver(client, recording_sink).run("2025-12-30")

        assert client.calls == [1]

    def test_full_pages_cost_one_extra_empty_call(self, recording_sink):
        """Test an exact multiple of the page size needs one trailing empty page"""
        client = ScriptedClient(_sized_pages([100, 100]), page_size=100)

        summary = _driver(client, recording_sink).run("2025-12-30")

        assert client.calls == [1, 2, 3]
        assert summary.platform_counts == {"facebook": 200}

    def test_fetch_failure_fails_platform_and_discards_buffer(self, recording_sink):
        """Test a FetchError marks the platform FAILED and drops unflushed records"""
        error = FetchError(platform="facebook", page_number=2, attempts=5, message="facebook API call failed")
        client = ScriptedClient([_page(100), error], page_size=100)
        driver = _driver(client, recording_sink, capacity=500)

        summary = driver.run("2025-12-30")

        assert summary.status == RunStatus.FAILED
        assert summary.errors[-1].error_code == "fetch_failed"
        assert summary.errors[-1].entity_id == "2"
        assert recording_sink.flushes == []
        assert len(driver.buffer) == 0
        assert driver.state == DriverState.FAILED

    def test_records_flushed_before_failure_are_counted(self, recording_sink):
        """Test completed flushes survive a later fetch failure"""
        error = FetchError(platform="facebook", page_number=3, attempts=5, message="down")
        client = ScriptedClient([_page(100, prefix="a"), _page(100, prefix="b"), error], page_size=100)

        summary = _driver(client, recording_sink, capacity=150).run("2025-12-30")

        assert summary.status == RunStatus.FAILED
        assert recording_sink.flushed_orders == [150]
        assert summary.platform_counts == {"facebook": 150}

    def test_flush_failure_fails_platform(self, failing_sink):
        """Test a sink failure stops the platform"""
        client = ScriptedClient(_sized_pages([100, 100, 37]), page_size=100)

        summary = _driver(client, failing_sink, capacity=150).run("2025-12-30")

        assert summary.status == RunStatus.FAILED
        assert summary.errors[-1].entity_type == "flush"
        assert summary.errors[-1].error_code == "FlushError"
        assert client.calls == [1, 2]

    def test_page_cap_fails_platform(self, recording_sink):
        """Test max_pages stops a stream that never ends"""
        client = ScriptedClient([_page(10, has_next=True) for _ in range(5)], page_size=10)

        summary = _driver(client, recording_sink, max_pages=3).run("2025-12-30")

        assert summary.status == RunStatus.FAILED
        assert summary.errors[-1].error_code == "max_pages_exceeded"
        assert client.calls == [1, 2, 3]

    def test_invalid_records_are_filtered(self, recording_sink):
        """Test records failing validation are skipped and reported"""
        good = _orders(2)
        no_items = RawOrder.model_validate(build_order_payload("NO-ITEMS", items=[]))
        page = PageResult(records=good + (no_items,), returned_count=3)
        client = ScriptedClient([page], page_size=100)
        engine = RuleEngine(default_rules())

        summary = _driver(client, recording_sink, rule_engine=engine).run("2025-12-30")

        assert summary.status == RunStatus.SUCCESS
        assert summary.filtered_records == 1
        assert summary.platform_counts == {"facebook": 2}
        assert summary.errors[0].entity_id == "NO-ITEMS"
        assert summary.errors[0].error_code == "order_has_valid_items"

    def test_undecodable_records_are_counted_as_filtered(self, recording_sink):
        """Test decode failures reported by the client reach the summary"""
        skipped = (ErrorReport(entity_type="order", entity_id="X", platform="facebook",
                               error_code="decode_error", error_message="Undecodable order"),)
        page = PageResult(records=_orders(1), returned_count=2, skipped=skipped)
        client = ScriptedClient([page], page_size=100)

        summary = _driver(client, recording_sink).run("2025-12-30")

        assert summary.filtered_records == 1
        assert summary.errors[0].error_code == "decode_error"

    def test_unmappable_orders_without_rule_engine_are_filtered(self, recording_sink):
        """Test a record the mapper rejects is counted as filtered and the platform still succeeds"""
        undated = build_order_payload("BAD", inserted_at=None)
        undated["inserted_at"] = None
        page = PageResult(records=_orders(3) + (RawOrder.model_validate(undated),), returned_count=4)
        client = ScriptedClient([page], page_size=100)

        summary = _driver(client, recording_sink).run("2025-12-30")

        assert summary.status == RunStatus.SUCCESS
        assert summary.platform_counts == {"facebook": 3}
        assert summary.filtered_records == 1
        assert summary.errors[0].entity_id == "BAD"
        assert summary.errors[0].error_code == "creation_date_valid"

    def test_empty_platform_succeeds_without_flushing(self, recording_sink):
        """Test a platform with no orders for the date"""
        client = ScriptedClient([_page(0)], page_size=100)

        summary = _driver(client, recording_sink).run("2025-12-30")

        assert summary.status == RunStatus.SUCCESS
        assert summary.flush_count == 0
        assert recording_sink.flushes == []

    @settings(max_examples=30, deadline=None)
    @given(
        sizes=st.lists(st.integers(min_value=1, max_value=20), min_size=1, max_size=6),
        capacity=st.integers(min_value=1, max_value=40),
    )
    def test_property_flush_count_is_ceiling(self, sizes, capacity):
        """Property test: flushes == ceil(valid records / capacity)"""
        page_size = 20
        pages = [_page(size, prefix=f"P{n}") for n, size in enumerate(sizes)]
        # Everything after the first short page is never fetched
        consumed = []
        for size in sizes:
            consumed.append(size)
            if size < page_size:
                break
        sink = RecordingSink()
        client = ScriptedClient(pages, page_size=page_size)

        summary = _driver(client, sink, capacity=capacity).run("2025-12-30")

        total = sum(consumed)
        assert summary.flush_count == math.ceil(total / capacity)
        assert sum(sink.flushed_orders) == total
        assert all(size == capacity for size in sink.flushed_orders[:-1])
