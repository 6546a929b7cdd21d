"""
Canonical order lifecycle states.
"""

from enum import Enum


class LifecycleState(str, Enum):
    """Outcome of an order as computed by the status classifier."""

    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    RETURNING_PRE_DELIVERY = "RETURNING_PRE_DELIVERY"
    RETURNED_POST_DELIVERY = "RETURNED_POST_DELIVERY"
    DELIVERED = "DELIVERED"

    @property
    def is_return(self) -> bool:
        return self in (LifecycleState.RETURNING_PRE_DELIVERY, LifecycleState.RETURNED_POST_DELIVERY)
