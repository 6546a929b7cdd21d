"""
Mapping of classified orders to warehouse rows.
"""

from .dimensions import stable_key, standard_status
from .entities import TABLES, TABLES_BY_NAME, TableSpec
from .order_mapper import OrderMapper
from .projections import ProjectionSet

__all__ = [
    "OrderMapper",
    "ProjectionSet",
    "TABLES",
    "TABLES_BY_NAME",
    "TableSpec",
    "stable_key",
    "standard_status",
]
