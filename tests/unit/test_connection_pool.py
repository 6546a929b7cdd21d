"""
Unit tests for database connection pool

Construction is tested without a database; pool operations run against
PostgreSQL in testcontainers.
"""
import pytest

from order_ingest.warehouse.connection import (
    DatabaseConnectionPool,
    close_pool,
    get_pool,
    initialize_pool,
)


@pytest.mark.unit
def test_password_is_required(monkeypatch):
    """Test construction fails without a password"""
    monkeypatch.delenv("DB_PASSWORD", raising=False)

    with pytest.raises(ValueError, match="password"):
        DatabaseConnectionPool(host="db", user="ingest")


@pytest.mark.unit
def test_settings_default_to_environment(monkeypatch):
    """Test DB_* variables fill in missing arguments"""
    monkeypatch.setenv("DB_HOST", "warehouse.internal")
    monkeypatch.setenv("DB_PORT", "6543")
    monkeypatch.setenv("DB_NAME", "orders_dw")
    monkeypatch.setenv("DB_USER", "loader")
    monkeypatch.setenv("DB_PASSWORD", "s3cret")

    pool = DatabaseConnectionPool(timeout=12)

    assert pool.conninfo == (
        "host=warehouse.internal port=6543 dbname=orders_dw user=loader password=s3cret connect_timeout=12"
    )
    assert pool.is_open is False


@pytest.mark.unit
def test_unopened_pool_refuses_connections():
    """Test borrowing before open() raises"""
    pool = DatabaseConnectionPool(password="x")

    with pytest.raises(RuntimeError):
        with pool.get_connection():
            pass
    assert pool.ping() is False


@pytest.mark.unit
def test_get_pool_before_initialization():
    """Test the global pool must be initialized first"""
    close_pool()
    with pytest.raises(RuntimeError):
        get_pool()


@pytest.mark.integration
def test_connection_pool_initialization(db_settings):
    """Test that connection pool initializes correctly"""
    pool = DatabaseConnectionPool(**db_settings, min_size=2, max_size=5)

    pool.open()

    assert pool.is_open
    assert pool._pool.min_size == 2
    assert pool._pool.max_size == 5

    pool.close()
    assert not pool.is_open


@pytest.mark.integration
def test_get_connection(db_settings):
    """Test getting a connection from the pool"""
    with DatabaseConnectionPool(**db_settings) as pool:
        with pool.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1 as test")
                assert cur.fetchone()["test"] == 1


@pytest.mark.integration
def test_execute_query_and_ping(db_settings):
    """Test executing a query using the pool"""
    with DatabaseConnectionPool(**db_settings) as pool:
        result = pool.execute_query("SELECT 42 as answer")
        assert result == [{"answer": 42}]
        assert pool.ping() is True


@pytest.mark.integration
def test_execute_command(pool):
    """Test executing INSERT commands"""
    rowcount = pool.execute_command(
        """
        INSERT INTO tbl_status (
            status_key, platform, platform_status_code, platform_status_name,
            standard_status_code, standard_status_name, status_category
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        """,
        (1, "facebook", "3", "Delivered", "DELIVERED", "Delivered", "COMPLETED"),
    )

    assert rowcount == 1

    result = pool.execute_query("SELECT platform FROM tbl_status WHERE status_key = %s", (1,))
    assert result[0]["platform"] == "facebook"


@pytest.mark.integration
def test_context_manager(db_settings):
    """Test using pool as context manager"""
    with DatabaseConnectionPool(**db_settings) as pool:
        assert pool.execute_query("SELECT 1 as test")[0]["test"] == 1

    # Pool should be closed after context
    with pytest.raises(RuntimeError):
        pool.execute_query("SELECT 1")


@pytest.mark.integration
def test_unreachable_database_fails_after_retries():
    """Test open() gives up with OperationalError"""
    from psycopg import OperationalError

    pool = DatabaseConnectionPool(host="127.0.0.1", port=1, password="x", timeout=1)

    with pytest.raises(OperationalError, match="after 2 attempts"):
        pool.open(max_retries=2, retry_delay=0)
    assert not pool.is_open


@pytest.mark.integration
def test_global_pool_initialization(db_settings):
    """Test global pool initialization and retrieval"""
    pool = initialize_pool(**db_settings)

    assert get_pool() is pool

    close_pool()

    with pytest.raises(RuntimeError):
        get_pool()
