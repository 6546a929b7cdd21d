"""
Core data models for the order importer.

All models use Pydantic for runtime validation and type safety.
"""

from .error_report import ErrorReport
from .lifecycle import LifecycleState
from .page import FetchError, PageRequest, PageResult
from .raw_order import RawOrder, parse_timestamp
from .run_summary import RunStatus, RunSummary, merge, merge_all
from .validation_result import ValidationResult

__all__ = [
    "ErrorReport",
    "FetchError",
    "LifecycleState",
    "PageRequest",
    "PageResult",
    "RawOrder",
    "RunStatus",
    "RunSummary",
    "ValidationResult",
    "merge",
    "merge_all",
    "parse_timestamp",
]
