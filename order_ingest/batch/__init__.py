"""
Batch import pipeline: buffering, flushing, pagination and orchestration.
"""

from .buffer import Buffer
from .flush import FlushCoordinator, FlushResult
from .orchestrator import Orchestrator, load_rule_engine
from .pagination import DriverState, PaginationDriver

__all__ = [
    "Buffer",
    "DriverState",
    "FlushCoordinator",
    "FlushResult",
    "Orchestrator",
    "PaginationDriver",
    "load_rule_engine",
]
