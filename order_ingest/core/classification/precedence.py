"""
Per-platform precedence tables for lifecycle classification.

A table is an ordered tuple of (name, predicate, verdict) rules; the first
rule whose predicate holds decides the verdict. Return rules always come
before cancellation rules, so an order resolved as returned is never
checked for cancellation.
"""

from dataclasses import dataclass
from enum import Enum

from . import signals
from .signals import Predicate


class Verdict(str, Enum):
    RETURNED = "RETURNED"
    CANCELLED = "CANCELLED"
    DELIVERED = "DELIVERED"
    ACTIVE = "ACTIVE"


@dataclass(frozen=True)
class PrecedenceRule:
    """One named predicate -> verdict pair."""

    name: str
    predicate: Predicate
    verdict: Verdict


@dataclass(frozen=True)
class PrecedenceTable:
    """
    Ordered rules for one platform plus the predicate deciding whether a
    returned order had already been delivered.
    """

    platform: str
    rules: tuple[PrecedenceRule, ...]
    delivery_evidence: Predicate = signals.has_tracking_delivery_evidence

    def rule_names(self) -> list[str]:
        return [rule.name for rule in self.rules]


def _rule(name: str, predicate: Predicate, verdict: Verdict) -> PrecedenceRule:
    return PrecedenceRule(name=name, predicate=predicate, verdict=verdict)


# Shared building blocks, in precedence order
ITEM_RETURN_QUANTITY = _rule("item_return_quantity", signals.has_item_return_quantity, Verdict.RETURNED)
RETURN_STATUS_CODE = _rule(
    "return_status_code", signals.status_in(*signals.RETURN_STATUS_CODES), Verdict.RETURNED
)
RETURN_PARTNER_STATUS = _rule(
    "return_partner_status", signals.partner_status_is("returning", "returned"), Verdict.RETURNED
)
PARTNER_IS_RETURNED = _rule("partner_is_returned", signals.partner_is_returned, Verdict.RETURNED)

CANCELLED_STATUS_CODE = _rule(
    "cancelled_status_code", signals.status_in(signals.CANCELLED_STATUS_CODE), Verdict.CANCELLED
)
CANCELLED_PARTNER_STATUS = _rule(
    "cancelled_partner_status", signals.partner_status_is("cancelled"), Verdict.CANCELLED
)

DELIVERED_STATUS_CODE = _rule(
    "delivered_status_code", signals.status_in(signals.DELIVERED_STATUS_CODE), Verdict.DELIVERED
)
DELIVERED_PARTNER_STATUS = _rule(
    "delivered_partner_status", signals.has_delivered_partner_status, Verdict.DELIVERED
)
DELIVERED_TRACKING_TEXT = _rule(
    "delivered_tracking_text", signals.has_delivered_tracking_text, Verdict.DELIVERED
)


FACEBOOK_TABLE = PrecedenceTable(
    platform="facebook",
    rules=(
        ITEM_RETURN_QUANTITY,
        RETURN_STATUS_CODE,
        RETURN_PARTNER_STATUS,
        PARTNER_IS_RETURNED,
        _rule("cancelled_after_shipment", signals.cancelled_after_shipment, Verdict.RETURNED),
        CANCELLED_STATUS_CODE,
        CANCELLED_PARTNER_STATUS,
        DELIVERED_STATUS_CODE,
        DELIVERED_PARTNER_STATUS,
        DELIVERED_TRACKING_TEXT,
    ),
)

TIKTOK_TABLE = PrecedenceTable(
    platform="tiktok",
    rules=(
        ITEM_RETURN_QUANTITY,
        RETURN_STATUS_CODE,
        RETURN_PARTNER_STATUS,
        PARTNER_IS_RETURNED,
        _rule("refund_return_type", signals.tiktok_refund_is_return, Verdict.RETURNED),
        CANCELLED_STATUS_CODE,
        CANCELLED_PARTNER_STATUS,
        # A refund still in flight holds the order open even if the carrier delivered
        _rule("refund_not_delivered", signals.tiktok_refund_undelivered, Verdict.ACTIVE),
        DELIVERED_STATUS_CODE,
        DELIVERED_PARTNER_STATUS,
        DELIVERED_TRACKING_TEXT,
    ),
)

SHOPEE_TABLE = PrecedenceTable(
    platform="shopee",
    rules=(
        ITEM_RETURN_QUANTITY,
        RETURN_STATUS_CODE,
        _rule("returned_partner_status", signals.partner_status_is("returned"), Verdict.RETURNED),
        PARTNER_IS_RETURNED,
        _rule("returned_to_sender", signals.shopee_returned_to_sender, Verdict.RETURNED),
        CANCELLED_STATUS_CODE,
        _rule("cancelled_before_shipment", signals.shopee_cancelled_before_shipment, Verdict.CANCELLED),
        _rule("ever_delivered", signals.shopee_ever_delivered, Verdict.DELIVERED),
        DELIVERED_STATUS_CODE,
        DELIVERED_PARTNER_STATUS,
    ),
    delivery_evidence=signals.shopee_delivery_evidence,
)

GENERIC_TABLE = PrecedenceTable(
    platform="generic",
    rules=(
        ITEM_RETURN_QUANTITY,
        RETURN_STATUS_CODE,
        RETURN_PARTNER_STATUS,
        PARTNER_IS_RETURNED,
        CANCELLED_STATUS_CODE,
        DELIVERED_STATUS_CODE,
        DELIVERED_PARTNER_STATUS,
        DELIVERED_TRACKING_TEXT,
    ),
)

PRECEDENCE_TABLES: dict[str, PrecedenceTable] = {
    table.platform: table for table in (FACEBOOK_TABLE, TIKTOK_TABLE, SHOPEE_TABLE)
}


def table_for(platform: str | None) -> PrecedenceTable:
    """Precedence table for a platform name (case-insensitive), generic when unknown."""
    return PRECEDENCE_TABLES.get((platform or "").lower(), GENERIC_TABLE)
