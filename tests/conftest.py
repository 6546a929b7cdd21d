"""
Pytest configuration and fixtures for order-ingest tests

This module provides shared fixtures for unit, integration, and E2E tests.
"""
import os
from typing import Callable, Generator

import psycopg
import pytest
from testcontainers.postgres import PostgresContainer

from order_ingest.core.models import RawOrder
from order_ingest.mapping import ProjectionSet


ROOT_DIR = os.path.dirname(os.path.dirname(__file__))


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that run a full import against PostgreSQL"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# ORDER FIXTURES
# =======================

def build_order_payload(
    order_id: str = "ORD-1",
    status: int | None = 1,
    customer_id: str | None = "C-1",
    items: list[dict] | None = None,
    **data_fields,
) -> dict:
    """Wire-shaped order with sane defaults; ``data_fields`` override keys of ``data``."""
    if items is None:
        items = [{
            "id": f"{order_id}-L1",
            "quantity": 1,
            "product_id": "P-1",
            "variation_id": "V-1",
            "variation_info": {"display_id": "SKU-1", "retail_price": 250000, "name": "T-shirt"},
        }]
    data = {
        "id": order_id,
        "cod": 280000,
        "total_price_after_sub_discount": 250000,
        "shipping_fee": 30000,
        "items": items,
        "inserted_at": "2025-12-30T03:15:00Z",
        "shipping_address": {"province_name": "Hà Nội", "district_name": "Cầu Giấy"},
    }
    if customer_id is not None:
        data["customer"] = {"customer_id": customer_id, "name": "Lan", "order_count": 4}
    data.update(data_fields)
    return {
        "order_id": order_id,
        "status": status,
        "inserted_at": "2025-12-30T03:15:00Z",
        "data": data,
    }


@pytest.fixture
def order_payload() -> Callable[..., dict]:
    """Factory for wire-shaped order dicts"""
    return build_order_payload


@pytest.fixture
def make_order() -> Callable[..., RawOrder]:
    """Factory for decoded RawOrder instances"""
    def _make(order_id: str = "ORD-1", **kwargs) -> RawOrder:
        extra = kwargs.pop("raw", {})
        payload = build_order_payload(order_id, **kwargs)
        payload.update(extra)
        return RawOrder.model_validate(payload)
    return _make


class RecordingSink:
    """In-memory flush sink that records every ProjectionSet it receives"""

    def __init__(self, fail_on_call: int | None = None):
        self.flushes: list[ProjectionSet] = []
        self.fail_on_call = fail_on_call
        self.calls = 0

    def write_flush(self, projections: ProjectionSet) -> dict[str, int]:
        self.calls += 1
        if self.fail_on_call is not None and self.calls == self.fail_on_call:
            raise psycopg.OperationalError("connection lost")
        self.flushes.append(projections)
        return {name: count for name, count in projections.counts().items() if count}

    @property
    def flushed_orders(self) -> list[int]:
        return [len(projections.rows("orders")) for projections in self.flushes]


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def failing_sink() -> RecordingSink:
    """Sink whose first flush raises"""
    return RecordingSink(fail_on_call=1)


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance with the warehouse schema loaded
    """
    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_ingest",
        password="test_password",
        dbname="test_orders",
        driver=None,
    ) as postgres:
        init_sql_path = os.path.join(ROOT_DIR, "docker", "init-db.sql")
        with open(init_sql_path, "r") as f:
            init_sql = f.read()

        with psycopg.connect(postgres.get_connection_url()) as conn:
            with conn.cursor() as cur:
                cur.execute(init_sql)
            conn.commit()

        yield postgres


@pytest.fixture(scope="session")
def db_settings(postgres_container) -> dict:
    """Keyword arguments for DatabaseConnectionPool pointing at the container"""
    return {
        "host": postgres_container.get_container_host_ip(),
        "port": int(postgres_container.get_exposed_port(5432)),
        "database": "test_orders",
        "user": "test_ingest",
        "password": "test_password",
    }


@pytest.fixture(scope="function")
def db_connection(postgres_container) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a database connection for a single test

    Yields:
        psycopg Connection object
    """
    with psycopg.connect(postgres_container.get_connection_url()) as conn:
        yield conn
        conn.rollback()


@pytest.fixture(scope="function")
def clean_db(db_connection) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a clean database by truncating all warehouse tables before the test

    Yields:
        psycopg Connection object with clean database
    """
    from order_ingest.mapping import TABLES

    with db_connection.cursor() as cur:
        tables = ", ".join(spec.table for spec in TABLES)
        cur.execute(f"TRUNCATE TABLE {tables} CASCADE")
        db_connection.commit()

    yield db_connection


@pytest.fixture(scope="function")
def pool(db_settings, clean_db):
    """Open warehouse connection pool against a clean database"""
    from order_ingest.warehouse import DatabaseConnectionPool

    db_pool = DatabaseConnectionPool(**db_settings, min_size=1, max_size=3)
    db_pool.open()
    yield db_pool
    db_pool.close()


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture(scope="session")
def test_env_vars():
    """
    Set test environment variables

    This fixture loads test.env and sets environment variables
    """
    from dotenv import load_dotenv

    env_path = os.path.join(ROOT_DIR, "config", "test.env")
    if os.path.exists(env_path):
        load_dotenv(env_path, override=True)
