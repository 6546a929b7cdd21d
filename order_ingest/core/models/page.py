"""
Page request/response models exchanged between the pagination driver
and the platform client.
"""

import re

from pydantic import BaseModel, Field, field_validator

from .error_report import ErrorReport
from .raw_order import RawOrder

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class PageRequest(BaseModel):
    """
    Parameters of one page fetch. Immutable, built per call.

    Attributes:
        platform: Platform name
        date: Collection date (yyyy-MM-dd) or "" for the platform default
        page_number: 1-based page index
        page_size: Requested number of orders per page
        source_filter: Value sent as the ``filter-date`` parameter
    """

    platform: str
    date: str = ""
    page_number: int = Field(..., ge=1)
    page_size: int = Field(..., gt=0)
    source_filter: str = "update"

    class Config:
        frozen = True

    @field_validator("date")
    @classmethod
    def check_date_format(cls, v: str) -> str:
        if v and not _DATE_PATTERN.match(v):
            raise ValueError(f"date must be yyyy-MM-dd or empty, got {v!r}")
        return v

    def to_params(self, source: str) -> dict[str, str | int]:
        """Query parameters for the platform HTTP endpoint."""
        params: dict[str, str | int] = {
            "page": self.page_number,
            "limit": self.page_size,
            "source": source,
            "filter-date": self.source_filter,
        }
        if self.date:
            params["date"] = self.date
        return params


class PageResult(BaseModel):
    """
    One successfully fetched page. Never mutated.

    Attributes:
        records: Decoded orders, in API order
        declared_has_next: Explicit "more pages" flag, None when the API omitted it
        returned_count: Number of raw orders on the page, before any were dropped
        total_pages: Page count reported by the API, if any
        skipped: Orders on the page that could not be decoded
    """

    records: tuple[RawOrder, ...] = ()
    declared_has_next: bool | None = None
    returned_count: int = Field(0, ge=0)
    total_pages: int | None = None
    skipped: tuple[ErrorReport, ...] = ()

    class Config:
        frozen = True

    def is_last_page(self, page_size: int) -> bool:
        """True when either the explicit flag or a short page says the stream is exhausted."""
        return self.declared_has_next is False or self.returned_count < page_size


class FetchError(BaseModel):
    """Terminal outcome of a page fetch whose retry budget ran out (or was cancelled)."""

    platform: str
    page_number: int
    attempts: int
    message: str
    cancelled: bool = False

    class Config:
        frozen = True
