"""
Generic platform API client.

One class serves every platform; behaviour differences (endpoint, auth
header, page size, retry budget, timeouts) live in PlatformConfig.
Fetches retry with linear backoff, and the wait between attempts can be
interrupted with ``cancel()``.
"""

import threading
from typing import Any

import requests
from pydantic import ValidationError

from order_ingest.config.date_selection import DateSelector
from order_ingest.config.settings import PlatformConfig
from order_ingest.core.errors import InvalidResponseError
from order_ingest.core.models import ErrorReport, FetchError, PageRequest, PageResult, RawOrder
from order_ingest.observability import metrics
from order_ingest.observability.logger import get_logger

logger = get_logger(__name__)

SUCCESS_SENTINEL = 200


def linear_backoff(attempt: int, base_delay: float) -> float:
    """
    Delay before the next attempt.

    Args:
        attempt: Attempt that just failed (1-indexed)
        base_delay: Delay unit in seconds

    Returns:
        ``base_delay * attempt`` seconds
    """
    return base_delay * attempt


class PlatformClient:
    """
    Fetches order pages from one platform API.

    Holds no state between calls other than the HTTP session and the
    cancellation flag.
    """

    def __init__(
        self,
        config: PlatformConfig,
        session: requests.Session | None = None,
        date_selector: DateSelector | None = None,
    ):
        """
        Initialize the client.

        Args:
            config: Platform endpoint, auth and retry settings
            session: HTTP session (a new one is created when omitted)
            date_selector: Used by ``is_available`` to pick "yesterday"
        """
        self.config = config
        self.platform = config.name
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json", **config.auth_headers()})
        self.date_selector = date_selector or DateSelector()
        self._cancelled = threading.Event()

    # ========== cancellation ==========

    def cancel(self) -> None:
        """Abort any pending backoff wait and refuse further attempts."""
        self._cancelled.set()

    def reset(self) -> None:
        self._cancelled.clear()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    # ========== public API ==========

    def fetch_page(
        self,
        date: str,
        page: int,
        page_size: int | None = None,
        source_filter: str | None = None,
    ) -> PageResult | FetchError:
        """
        Fetch one page with bounded retry.

        Args:
            date: Collection date (yyyy-MM-dd) or "" for the platform default
            page: 1-based page number
            page_size: Orders per page (defaults to the platform config)
            source_filter: ``filter-date`` value (defaults to the platform config)

        Returns:
            PageResult on success, FetchError once the retry budget is spent
        """
        request = PageRequest(
            platform=self.platform,
            date=date,
            page_number=page,
            page_size=page_size or self.config.page_size,
            source_filter=source_filter or self.config.filter_date,
        )
        return self._fetch_with_retry(request)

    def is_available(self) -> bool:
        """
        Probe the API with a single page-1, limit-1 request for yesterday.

        Returns:
            True iff a well-formed envelope with a non-negative order count came back
        """
        try:
            request = PageRequest(
                platform=self.platform,
                date=self.date_selector.yesterday(),
                page_number=1,
                page_size=1,
                source_filter=self.config.filter_date,
            )
            data = self._get_envelope_data(request)
            count = data.get("count")
            if count is None:
                orders = data.get("orders")
                count = len(orders) if isinstance(orders, list) else -1
            available = isinstance(count, int) and not isinstance(count, bool) and count >= 0
        except (requests.RequestException, InvalidResponseError, ValueError) as e:
            logger.warning(
                f"{self.platform} API unavailable: {e}",
                extra={"platform": self.platform},
            )
            return False

        logger.info(
            f"{self.platform} API available: {available}",
            extra={"platform": self.platform},
        )
        return available

    def close(self) -> None:
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # ========== internals ==========

    def _fetch_with_retry(self, request: PageRequest) -> PageResult | FetchError:
        max_attempts = self.config.max_retries
        last_error = "no attempt made"

        for attempt in range(1, max_attempts + 1):
            if self.cancelled:
                return self._cancelled_error(request, attempt - 1)

            try:
                result = self._fetch_once(request)
            except (requests.RequestException, InvalidResponseError, ValueError) as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(
                    f"{self.platform} page {request.page_number} attempt "
                    f"{attempt}/{max_attempts} failed: {last_error}",
                    extra={"platform": self.platform, "page": request.page_number, "attempt": attempt},
                )
                if attempt < max_attempts:
                    metrics.increment_counter(metrics.fetch_retries_total, platform=self.platform, status="retry")
                    delay = linear_backoff(attempt, self.config.base_delay_seconds)
                    # Event.wait returns True as soon as cancel() is called
                    if self._cancelled.wait(delay):
                        return self._cancelled_error(request, attempt)
                continue

            metrics.increment_counter(metrics.pages_fetched_total, platform=self.platform, status="success")
            return result

        metrics.increment_counter(metrics.fetch_retries_total, platform=self.platform, status="exhausted")
        metrics.increment_counter(metrics.pages_fetched_total, platform=self.platform, status="failure")
        logger.error(
            f"{self.platform} API call failed after {max_attempts} attempts",
            extra={"platform": self.platform, "page": request.page_number},
        )
        return FetchError(
            platform=self.platform,
            page_number=request.page_number,
            attempts=max_attempts,
            message=f"{self.platform} API call failed after {max_attempts} attempts: {last_error}",
        )

    def _cancelled_error(self, request: PageRequest, attempts: int) -> FetchError:
        metrics.increment_counter(metrics.pages_fetched_total, platform=self.platform, status="cancelled")
        return FetchError(
            platform=self.platform,
            page_number=request.page_number,
            attempts=attempts,
            message=f"{self.platform} fetch of page {request.page_number} cancelled",
            cancelled=True,
        )

    def _get_envelope_data(self, request: PageRequest) -> dict[str, Any]:
        response = self.session.get(
            self.config.base_url,
            params=request.to_params(self.config.source_param),
            timeout=(self.config.connect_timeout_seconds, self.config.timeout_seconds),
        )
        response.raise_for_status()
        body = response.json()

        if not isinstance(body, dict):
            raise InvalidResponseError(f"Expected a JSON object, got {type(body).__name__}")

        status = body.get("status")
        code = body.get("code")
        if status != SUCCESS_SENTINEL and code != SUCCESS_SENTINEL:
            raise InvalidResponseError(
                f"API returned status={status} code={code}: {body.get('message') or 'no message'}"
            )

        data = body.get("data")
        if not isinstance(data, dict):
            raise InvalidResponseError("Response envelope has no 'data' object")
        return data

    def _fetch_once(self, request: PageRequest) -> PageResult:
        data = self._get_envelope_data(request)

        raw_orders = data.get("orders")
        if raw_orders is None:
            raw_orders = []
        if not isinstance(raw_orders, list):
            raise InvalidResponseError("'data.orders' is not a list")

        records: list[RawOrder] = []
        skipped: list[ErrorReport] = []
        for index, raw in enumerate(raw_orders):
            entity_id = raw.get("order_id") if isinstance(raw, dict) else None
            if not isinstance(raw, dict):
                skipped.append(self._decode_report(entity_id, index, f"order is a {type(raw).__name__}"))
                continue
            try:
                records.append(RawOrder.model_validate(raw))
            except ValidationError as e:
                skipped.append(self._decode_report(entity_id, index, str(e)))

        has_next = data.get("has_next")
        total_pages = data.get("total_pages")
        return PageResult(
            records=tuple(records),
            declared_has_next=has_next if isinstance(has_next, bool) else None,
            returned_count=len(raw_orders),
            total_pages=total_pages if isinstance(total_pages, int) and not isinstance(total_pages, bool) else None,
            skipped=tuple(skipped),
        )

    def _decode_report(self, entity_id: Any, index: int, message: str) -> ErrorReport:
        return ErrorReport(
            entity_type="order",
            entity_id=str(entity_id) if entity_id is not None else f"index:{index}",
            platform=self.platform,
            error_code="decode_error",
            error_message=f"Undecodable order: {message}",
        )
