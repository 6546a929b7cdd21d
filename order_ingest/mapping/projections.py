"""
ProjectionSet: the per-table rows of one flush, deduplicated by natural key.

The first row seen for a natural key is kept; later rows with the same key
are counted as duplicates and dropped, so a single upsert statement never
touches the same row twice.
"""

from pydantic import BaseModel

from .entities import TABLES, TABLES_BY_NAME, TableSpec


class ProjectionSet:
    """Accumulates mapped rows for every warehouse table."""

    def __init__(self):
        self._rows: dict[str, dict[tuple, BaseModel]] = {spec.name: {} for spec in TABLES}
        self.duplicates: dict[str, int] = {spec.name: 0 for spec in TABLES}

    def add(self, table: str, row: BaseModel) -> bool:
        """
        Add one row.

        Returns:
            True if the row was kept, False if its natural key was already present
        """
        spec = TABLES_BY_NAME[table]
        key = tuple(getattr(row, column) for column in spec.natural_key)
        rows = self._rows[table]
        if key in rows:
            self.duplicates[table] += 1
            return False
        rows[key] = row
        return True

    def add_mapped(self, mapped: dict[str, list[BaseModel]]) -> None:
        for table, rows in mapped.items():
            for row in rows:
                self.add(table, row)

    def rows(self, table: str) -> list[BaseModel]:
        return list(self._rows[table].values())

    def tables(self) -> list[tuple[TableSpec, list[BaseModel]]]:
        """Tables with their rows, in write order."""
        return [(spec, self.rows(spec.name)) for spec in TABLES]

    def counts(self) -> dict[str, int]:
        return {spec.name: len(self._rows[spec.name]) for spec in TABLES}

    @property
    def total_duplicates(self) -> int:
        return sum(self.duplicates.values())

    def __len__(self) -> int:
        return sum(len(rows) for rows in self._rows.values())
