"""
ErrorReport model describing one failure surfaced by a run.
"""

import traceback
from datetime import datetime

from pydantic import BaseModel, Field


class ErrorReport(BaseModel):
    """
    A single failure, at record, platform or flush granularity.

    Attributes:
        timestamp: When the error was observed
        entity_type: What failed ("order", "page", "platform", "flush")
        entity_id: Identifier of the failing entity (order id, page number)
        platform: Platform the entity belongs to
        error_code: Short machine-readable code (rule name, exception type)
        error_message: Human-readable message
        stack_trace: Formatted traceback, when an exception was involved
    """

    timestamp: datetime = Field(default_factory=datetime.utcnow)
    entity_type: str
    entity_id: str | None = None
    platform: str
    error_code: str
    error_message: str
    stack_trace: str | None = None

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "entity_type": "order",
                "entity_id": "SP-2291",
                "platform": "shopee",
                "error_code": "order_has_items",
                "error_message": "Order has no items",
            }
        }

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        platform: str,
        entity_type: str,
        entity_id: str | None = None,
    ) -> "ErrorReport":
        """Build a report carrying the exception type and traceback."""
        return cls(
            entity_type=entity_type,
            entity_id=entity_id,
            platform=platform,
            error_code=type(exc).__name__,
            error_message=str(exc) or type(exc).__name__,
            stack_trace="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        )
