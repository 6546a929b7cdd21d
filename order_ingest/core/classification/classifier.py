"""
StatusClassifier: maps one order's raw signals to a LifecycleState.

The classification is a pure function of the order and the platform name;
it reads no clock and no external state, and never raises.
"""

from order_ingest.core.models import LifecycleState, RawOrder

from .precedence import PrecedenceTable, Verdict, table_for


def _resolve(verdict: Verdict, order: RawOrder, table: PrecedenceTable) -> LifecycleState:
    if verdict is Verdict.RETURNED:
        # Delivery evidence rules out a pre-delivery return
        if table.delivery_evidence(order):
            return LifecycleState.RETURNED_POST_DELIVERY
        return LifecycleState.RETURNING_PRE_DELIVERY
    if verdict is Verdict.CANCELLED:
        return LifecycleState.CANCELLED
    if verdict is Verdict.DELIVERED:
        return LifecycleState.DELIVERED
    return LifecycleState.ACTIVE


def explain(order: RawOrder | None, platform: str) -> tuple[LifecycleState, str | None]:
    """
    Classify an order and report which precedence rule decided it.

    Args:
        order: Decoded order
        platform: Platform the order was fetched from

    Returns:
        (state, rule name), where the rule name is None for the ACTIVE default
    """
    if order is None:
        return LifecycleState.ACTIVE, None

    table = table_for(platform)
    for rule in table.rules:
        if rule.predicate(order):
            return _resolve(rule.verdict, order, table), rule.name
    return LifecycleState.ACTIVE, None


def classify(order: RawOrder | None, platform: str) -> LifecycleState:
    """Lifecycle state of an order; ACTIVE when no signal is present."""
    state, _ = explain(order, platform)
    return state


class StatusClassifier:
    """Platform-bound wrapper used by the flush coordinator."""

    def __init__(self, platform: str):
        self.platform = platform
        self.table = table_for(platform)

    def classify(self, order: RawOrder) -> LifecycleState:
        return classify(order, self.platform)

    def explain(self, order: RawOrder) -> tuple[LifecycleState, str | None]:
        return explain(order, self.platform)
