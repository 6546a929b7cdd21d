"""
Unit tests for warehouse upserts.

Statement composition and transaction handling are tested with mocked
cursors; WarehouseSink writes are also tested against PostgreSQL.
"""

from unittest.mock import MagicMock

import psycopg
import pytest

from order_ingest.core.models import LifecycleState
from order_ingest.mapping import TABLES, OrderMapper, ProjectionSet
from order_ingest.mapping.entities import StatusRow
from order_ingest.warehouse import WarehouseSink, build_upsert_query, bulk_upsert


def _projections(*orders, platform="facebook", state=LifecycleState.ACTIVE) -> ProjectionSet:
    mapper = OrderMapper(platform)
    projections = ProjectionSet()
    for order in orders:
        projections.add_mapped(mapper.map_order(order, state))
    return projections


def _status_row(key=1, name="Delivered") -> StatusRow:
    return StatusRow(
        status_key=key,
        platform="facebook",
        platform_status_code="3",
        platform_status_name=name,
        standard_status_code="DELIVERED",
        standard_status_name="Delivered",
        status_category="COMPLETED",
    )


@pytest.mark.unit
class TestBuildUpsertQuery:
    """Tests for build_upsert_query"""

    def test_update_non_key_columns(self):
        """Test conflicting rows overwrite every non-key column"""
        query = build_upsert_query("tbl_status", ["status_key", "platform", "status_category"], ["status_key"])

        assert query.as_string() == (
            'INSERT INTO "tbl_status" ("status_key", "platform", "status_category") '
            'VALUES (%s, %s, %s) ON CONFLICT ("status_key") '
            'DO UPDATE SET "platform" = EXCLUDED."platform", "status_category" = EXCLUDED."status_category"'
        )

    def test_composite_key(self):
        """Test a multi-column conflict target"""
        query = build_upsert_query(
            "tbl_order_item", ["order_id", "sku", "item_sequence", "quantity"], ["order_id", "sku", "item_sequence"]
        )

        text = query.as_string()
        assert 'ON CONFLICT ("order_id", "sku", "item_sequence")' in text
        assert text.endswith('DO UPDATE SET "quantity" = EXCLUDED."quantity"')

    def test_key_only_table_ignores_conflicts(self):
        """Test a table with only key columns uses DO NOTHING"""
        query = build_upsert_query("tbl_link", ["a", "b"], ["a", "b"])
        assert query.as_string().endswith("DO NOTHING")

    @pytest.mark.parametrize("spec", TABLES, ids=lambda spec: spec.name)
    def test_every_table_has_its_key_columns(self, spec):
        """Test natural key columns exist on each row model"""
        assert set(spec.natural_key) <= set(spec.columns)


@pytest.mark.unit
class TestBulkUpsert:
    """Tests for bulk_upsert"""

    def test_executemany_with_row_tuples(self):
        """Test one executemany call with values in column order"""
        cursor = MagicMock()

        written = bulk_upsert(cursor, "tbl_status", [_status_row(1), _status_row(2, "Giao")], ["status_key"])

        assert written == 2
        cursor.executemany.assert_called_once()
        _, params = cursor.executemany.call_args.args
        assert params[0] == (1, "facebook", "3", "Delivered", "DELIVERED", "Delivered", "COMPLETED")
        assert params[1][3] == "Giao"

    def test_no_rows_no_statement(self):
        """Test an empty table is skipped"""
        cursor = MagicMock()
        assert bulk_upsert(cursor, "tbl_status", [], ["status_key"]) == 0
        cursor.executemany.assert_not_called()


def _mock_pool():
    pool = MagicMock()
    conn = pool.get_connection.return_value.__enter__.return_value
    cursor = conn.cursor.return_value.__enter__.return_value
    return pool, conn, cursor


@pytest.mark.unit
class TestWarehouseSinkTransactions:
    """Transaction handling of WarehouseSink with a mocked pool"""

    def test_commit_once_per_flush(self, make_order):
        """Test every table is written then committed once"""
        pool, conn, cursor = _mock_pool()

        counts = WarehouseSink(pool).write_flush(_projections(make_order("A")))

        assert len(counts) == 11
        assert cursor.executemany.call_count == 11
        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()

    def test_tables_written_in_dependency_order(self, make_order):
        """Test parents are written before the rows that reference them"""
        pool, _, cursor = _mock_pool()

        WarehouseSink(pool).write_flush(_projections(make_order("A")))

        written = [call.args[0].as_string() for call in cursor.executemany.call_args_list]
        tables = [text.split('"')[1] for text in written]
        assert tables == [spec.table for spec in TABLES]

    def test_failure_rolls_back_and_reraises(self, make_order):
        """Test a failing statement rolls the whole flush back"""
        pool, conn, cursor = _mock_pool()
        cursor.executemany.side_effect = [None, None, psycopg.errors.NotNullViolation("boom")]

        with pytest.raises(psycopg.Error):
            WarehouseSink(pool).write_flush(_projections(make_order("A")))

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()


@pytest.mark.integration
class TestWarehouseSink:
    """Integration tests for WarehouseSink"""

    def test_flush_writes_every_table(self, pool, make_order):
        """Test one order lands in all eleven tables"""
        sink = WarehouseSink(pool)

        sink.write_flush(_projections(make_order("A")))

        for spec in TABLES:
            assert sink.count_rows(spec.name) == 1, spec.name

    def test_reimport_is_idempotent(self, pool, make_order):
        """Test writing the same orders twice leaves the same rows"""
        sink = WarehouseSink(pool)
        orders = [make_order("A"), make_order("B", customer_id="C-2")]

        sink.write_flush(_projections(*orders))
        first = {spec.name: sink.count_rows(spec.name) for spec in TABLES}
        sink.write_flush(_projections(*orders))
        second = {spec.name: sink.count_rows(spec.name) for spec in TABLES}

        assert first == second
        assert first["orders"] == 2
        assert first["customers"] == 2

    def test_later_import_updates_state(self, pool, make_order):
        """Test a re-import with a new state overwrites the non-key columns"""
        sink = WarehouseSink(pool)
        sink.write_flush(_projections(make_order("A", status=2), state=LifecycleState.ACTIVE))
        sink.write_flush(_projections(make_order("A", status=2), state=LifecycleState.DELIVERED))

        rows = pool.execute_query("SELECT lifecycle_state, is_delivered FROM tbl_order WHERE order_id = %s", ("A",))

        assert rows == [{"lifecycle_state": "DELIVERED", "is_delivered": True}]

    def test_failed_flush_leaves_no_rows(self, pool, make_order):
        """Test a constraint violation rolls back rows already written in the flush"""
        projections = _projections(make_order("A"))
        # An item pointing at an order that is not in the flush breaks the FK
        orphan = projections.rows("order_items")[0].model_copy(update={"order_id": "MISSING"})
        projections.add("order_items", orphan)
        sink = WarehouseSink(pool)

        with pytest.raises(psycopg.errors.ForeignKeyViolation):
            sink.write_flush(projections)

        assert sink.count_rows("customers") == 0
        assert sink.count_rows("orders") == 0
