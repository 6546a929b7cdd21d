"""
Unit tests for the generic platform client.

HTTP is replaced with a mocked requests.Session; backoff waits are
intercepted on the client's cancellation event.
"""

import threading
from datetime import datetime
from unittest.mock import MagicMock

import pytest
import requests

from order_ingest.clients import PlatformClient, linear_backoff
from order_ingest.config import DateSelector, PlatformConfig
from order_ingest.core.models import FetchError, PageResult


def _response(body=None, status_code=200, json_error=False):
    response = MagicMock()
    response.status_code = status_code
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} Server Error")
    if json_error:
        response.json.side_effect = ValueError("Expecting value")
    else:
        response.json.return_value = body
    return response


def _envelope(orders, has_next=None, count=None):
    data = {"orders": orders, "count": len(orders) if count is None else count, "page": 1}
    if has_next is not None:
        data["has_next"] = has_next
    return {"status": 200, "message": "ok", "data": data}


@pytest.fixture
def config():
    return PlatformConfig(
        name="facebook",
        base_url="https://api.example.test/orders",
        auth_header_name="X-Api-Key",
        auth_header_value="secret",
        page_size=100,
        max_retries=3,
        base_delay_seconds=2.0,
        connect_timeout_seconds=5,
        timeout_seconds=60,
    )


@pytest.fixture
def session():
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    return session


@pytest.fixture
def client(config, session):
    client = PlatformClient(config, session=session)
    # Record backoff delays instead of sleeping
    client.waits = []

    def fake_wait(delay):
        client.waits.append(delay)
        return client._cancelled.is_set()

    client._cancelled.wait = fake_wait
    return client


@pytest.mark.unit
class TestLinearBackoff:
    """Tests for the backoff schedule"""

    @pytest.mark.parametrize("attempt,expected", [(1, 2.0), (2, 4.0), (3, 6.0), (4, 8.0)])
    def test_delay_is_base_times_attempt(self, attempt, expected):
        """Test delays grow linearly"""
        assert linear_backoff(attempt, 2.0) == expected


@pytest.mark.unit
class TestFetchPage:
    """Tests for PlatformClient.fetch_page"""

    def test_session_carries_auth_header(self, client, session):
        """Test the configured auth header is installed on the session"""
        assert session.headers["X-Api-Key"] == "secret"
        assert session.headers["Accept"] == "application/json"

    def test_successful_page(self, client, session, order_payload):
        """Test a good page decodes orders and pagination hints"""
        session.get.return_value = _response(_envelope([order_payload("A"), order_payload("B")], has_next=True))

        result = client.fetch_page("2025-12-30", 1)

        assert isinstance(result, PageResult)
        assert [order.effective_order_id for order in result.records] == ["A", "B"]
        assert result.declared_has_next is True
        assert result.returned_count == 2
        assert client.waits == []

    def test_request_parameters_and_timeout(self, client, session):
        """Test query parameters and the explicit (connect, read) timeout"""
        session.get.return_value = _response(_envelope([]))

        client.fetch_page("2025-12-30", 3)

        args, kwargs = session.get.call_args
        assert args[0] == "https://api.example.test/orders"
        assert kwargs["params"] == {
            "page": 3,
            "limit": 100,
            "source": "facebook",
            "filter-date": "update",
            "date": "2025-12-30",
        }
        assert kwargs["timeout"] == (5, 60)

    def test_code_field_also_signals_success(self, client, session):
        """Test an envelope with code == 200 and no status is accepted"""
        session.get.return_value = _response({"code": 200, "data": {"orders": []}})
        assert isinstance(client.fetch_page("", 1), PageResult)

    def test_non_boolean_has_next_is_ignored(self, client, session):
        """Test a has_next flag of the wrong type is treated as absent"""
        body = _envelope([])
        body["data"]["has_next"] = "yes"
        session.get.return_value = _response(body)

        assert client.fetch_page("", 1).declared_has_next is None

    def test_undecodable_orders_are_skipped_not_retried(self, client, session, order_payload):
        """Test bad records are reported while the page still succeeds"""
        bad = order_payload("BAD")
        bad["status"] = "not-a-number"
        session.get.return_value = _response(_envelope([order_payload("A"), bad, "junk"]))

        result = client.fetch_page("", 1)

        assert [order.effective_order_id for order in result.records] == ["A"]
        assert result.returned_count == 3
        assert [report.entity_id for report in result.skipped] == ["BAD", "index:2"]
        assert all(report.error_code == "decode_error" for report in result.skipped)
        assert session.get.call_count == 1

    def test_transient_failure_then_success(self, client, session):
        """Test a 5xx is retried after a linear backoff"""
        session.get.side_effect = [
            _response(status_code=503),
            requests.ConnectionError("reset"),
            _response(_envelope([])),
        ]

        result = client.fetch_page("", 1)

        assert isinstance(result, PageResult)
        assert session.get.call_count == 3
        assert client.waits == [2.0, 4.0]

    @pytest.mark.parametrize("response", [
        _response({"status": 500, "message": "internal"}),
        _response(["not", "an", "object"]),
        _response({"status": 200, "data": None}),
        _response({"status": 200, "data": {"orders": "nope"}}),
        _response(json_error=True),
    ])
    def test_bad_envelopes_are_retried_until_exhausted(self, client, session, response):
        """Test failure envelopes and undecodable bodies exhaust the retry budget"""
        session.get.return_value = response

        result = client.fetch_page("", 1)

        assert isinstance(result, FetchError)
        assert result.attempts == 3
        assert result.cancelled is False
        assert "failed after 3 attempts" in result.message
        assert session.get.call_count == 3
        assert client.waits == [2.0, 4.0]

    def test_timeout_is_retried(self, client, session):
        """Test a read timeout counts as a transient failure"""
        session.get.side_effect = requests.Timeout("read timed out")

        result = client.fetch_page("", 7)

        assert isinstance(result, FetchError)
        assert result.page_number == 7
        assert "Timeout" in result.message

    def test_cancel_interrupts_backoff(self, config, session):
        """Test cancel() during a wait stops further attempts"""
        client = PlatformClient(config, session=session)
        session.get.side_effect = requests.ConnectionError("down")

        def wait_and_cancel(delay):
            client.cancel()
            return True

        client._cancelled.wait = wait_and_cancel

        result = client.fetch_page("", 1)

        assert isinstance(result, FetchError)
        assert result.cancelled is True
        assert session.get.call_count == 1

    def test_cancelled_client_makes_no_attempt(self, client, session):
        """Test a cancelled client refuses to call the API"""
        client.cancel()

        result = client.fetch_page("", 1)

        assert result.cancelled is True
        assert result.attempts == 0
        session.get.assert_not_called()

        client.reset()
        assert client.cancelled is False

    def test_real_event_wait_returns_immediately_on_cancel(self, config, session):
        """Test the backoff wait is released by a cancel from another thread"""
        config = config.model_copy(update={"base_delay_seconds": 30.0, "max_retries": 2})
        client = PlatformClient(config, session=session)
        session.get.side_effect = requests.ConnectionError("down")

        timer = threading.Timer(0.05, client.cancel)
        timer.start()
        try:
            result = client.fetch_page("", 1)
        finally:
            timer.cancel()

        assert result.cancelled is True


@pytest.mark.unit
class TestIsAvailable:
    """Tests for PlatformClient.is_available"""

    @pytest.fixture
    def fixed_selector(self):
        return DateSelector(clock=lambda zone: datetime(2025, 12, 31, 9, 0, tzinfo=zone))

    def test_zero_count_is_available(self, config, session, fixed_selector):
        """Test an empty but well-formed response means available"""
        client = PlatformClient(config, session=session, date_selector=fixed_selector)
        session.get.return_value = _response(_envelope([], count=0))

        assert client.is_available() is True

        kwargs = session.get.call_args.kwargs
        assert kwargs["params"]["page"] == 1
        assert kwargs["params"]["limit"] == 1
        assert kwargs["params"]["date"] == "2025-12-30"

    def test_errors_mean_unavailable(self, config, session, fixed_selector):
        """Test transport errors return False after a single attempt"""
        client = PlatformClient(config, session=session, date_selector=fixed_selector)
        session.get.side_effect = requests.ConnectionError("refused")

        assert client.is_available() is False
        assert session.get.call_count == 1

    def test_failure_envelope_means_unavailable(self, config, session, fixed_selector):
        """Test a failure envelope returns False without raising"""
        client = PlatformClient(config, session=session, date_selector=fixed_selector)
        session.get.return_value = _response({"status": 401, "message": "bad key"})

        assert client.is_available() is False
