"""
Warehouse persistence: connection pool and idempotent upserts.
"""

from .connection import DatabaseConnectionPool, close_pool, get_pool, initialize_pool
from .upsert import WarehouseSink, build_upsert_query, bulk_upsert

__all__ = [
    "DatabaseConnectionPool",
    "WarehouseSink",
    "build_upsert_query",
    "bulk_upsert",
    "close_pool",
    "get_pool",
    "initialize_pool",
]
