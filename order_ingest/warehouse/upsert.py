"""
Idempotent upserts into the order warehouse.

Every table is written with INSERT ... ON CONFLICT (natural key) DO UPDATE,
so re-importing the same orders converges to the same rows. A flush writes
all eleven tables on one connection and commits once.
"""

from typing import Sequence

from psycopg import sql
from pydantic import BaseModel

from order_ingest.mapping import TABLES_BY_NAME, ProjectionSet
from order_ingest.observability.logger import get_logger

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)


def build_upsert_query(table: str, columns: Sequence[str], natural_key: Sequence[str]) -> sql.Composed:
    """
    Compose the upsert statement for one table.

    Columns outside the natural key are overwritten with the incoming
    values; a table made only of key columns ignores conflicts.
    """
    updates = [column for column in columns if column not in natural_key]
    insert = sql.SQL("INSERT INTO {table} ({columns}) VALUES ({values}) ON CONFLICT ({key}) ").format(
        table=sql.Identifier(table),
        columns=sql.SQL(", ").join(map(sql.Identifier, columns)),
        values=sql.SQL(", ").join(sql.Placeholder() * len(columns)),
        key=sql.SQL(", ").join(map(sql.Identifier, natural_key)),
    )
    if not updates:
        return insert + sql.SQL("DO NOTHING")
    return insert + sql.SQL("DO UPDATE SET {assignments}").format(
        assignments=sql.SQL(", ").join(
            sql.SQL("{col} = EXCLUDED.{col}").format(col=sql.Identifier(column)) for column in updates
        )
    )


def bulk_upsert(cursor, table: str, rows: Sequence[BaseModel], natural_key: Sequence[str]) -> int:
    """
    Upsert rows into one table with ``executemany``.

    Args:
        cursor: Open psycopg cursor; the caller owns the transaction
        table: Physical table name
        rows: Row models, all of the same type
        natural_key: Conflict target columns

    Returns:
        Number of rows submitted (inserted or updated)
    """
    if not rows:
        return 0

    columns = list(type(rows[0]).model_fields)
    query = build_upsert_query(table, columns, natural_key)
    params = [tuple(getattr(row, column) for column in columns) for row in rows]
    cursor.executemany(query, params)
    return len(rows)


class WarehouseSink:
    """
    Writes flush projections to PostgreSQL.

    All tables of a flush share one transaction: either every table is
    updated or none is.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def write_flush(self, projections: ProjectionSet) -> dict[str, int]:
        """
        Upsert every table of a flush in dependency order and commit once.

        Args:
            projections: Deduplicated rows for the flush

        Returns:
            Rows submitted per logical table name (tables without rows omitted)

        Raises:
            psycopg.Error: On any database failure, after rolling back
        """
        counts: dict[str, int] = {}
        with self.pool.get_connection() as conn:
            try:
                with conn.cursor() as cur:
                    for spec, rows in projections.tables():
                        written = bulk_upsert(cur, spec.table, rows, spec.natural_key)
                        if written:
                            counts[spec.name] = written
                conn.commit()
            except Exception:
                conn.rollback()
                logger.error("Flush transaction rolled back", exc_info=True)
                raise

        logger.debug("Flush committed", extra={"table_counts": counts})
        return counts

    def count_rows(self, table: str) -> int:
        """Row count of a logical table."""
        spec = TABLES_BY_NAME[table]
        query = sql.SQL("SELECT COUNT(*) AS n FROM {table}").format(table=sql.Identifier(spec.table))
        with self.pool.get_cursor() as cur:
            cur.execute(query)
            return cur.fetchone()["n"]
