"""
Signal predicates over a RawOrder.

Each predicate answers one yes/no question about an order and treats
absent or malformed data as "signal absent". None of them raise.
"""

import re
from typing import Callable, Iterable

from order_ingest.core.models import RawOrder

Predicate = Callable[[RawOrder], bool]

RETURN_STATUS_CODES = (4, 5)
DELIVERED_STATUS_CODE = 3
CANCELLED_STATUS_CODE = 6

DELIVERED_TEXT_MARKERS = (
    "delivered",
    "giao hàng thành công",
)

NEGATED_DELIVERY_MARKERS = ("not", "never", "failed", "fail", "unable", "cannot", "undeliverable", "không", "chưa")


def _word_pattern(words: Iterable[str]) -> re.Pattern:
    """Case-insensitive match of any of ``words`` not glued to other letters."""
    alternatives = "|".join(re.escape(word) for word in words)
    return re.compile(rf"(?<![^\W\d_])(?:{alternatives})(?![^\W\d_])", re.IGNORECASE)


DELIVERED_TEXT_PATTERN = _word_pattern(DELIVERED_TEXT_MARKERS)
NEGATED_DELIVERY_PATTERN = _word_pattern(NEGATED_DELIVERY_MARKERS)


def _text(value) -> str:
    return "" if value is None else str(value)


def _upper(value) -> str:
    return _text(value).upper()


# =======================
# FACTORIES
# =======================

def status_in(*codes: int) -> Predicate:
    """Order's numeric status is one of ``codes``."""
    def predicate(order: RawOrder) -> bool:
        return order.status in codes
    predicate.__name__ = f"status_in_{'_'.join(str(code) for code in codes)}"
    return predicate


def partner_status_is(*names: str, include_partner_payload: bool = True) -> Predicate:
    """A tracking entry (or the logistics partner payload) reports one of ``names``."""
    wanted = {name.lower() for name in names}

    def predicate(order: RawOrder) -> bool:
        for entry in order.tracking_histories:
            if entry.partner_status and entry.partner_status.lower() in wanted:
                return True
        partner = order.partner
        if include_partner_payload and partner is not None and partner.partner_status:
            return partner.partner_status.lower() in wanted
        return False
    return predicate


def tracking_text_contains(markers: Iterable[str], negations: Iterable[str] = ()) -> Predicate:
    """
    A tracking entry's free-text status mentions one of ``markers`` as a word.

    Entries that also mention one of ``negations`` ("not delivered",
    "failed") do not count.
    """
    wanted = _word_pattern(markers)
    negated = _word_pattern(negations) if negations else None

    def predicate(order: RawOrder) -> bool:
        for entry in order.tracking_histories:
            text = _text(entry.status)
            if wanted.search(text) and not (negated and negated.search(text)):
                return True
        return False
    return predicate


def mentions_delivery(value) -> bool:
    """Free text reporting a completed delivery; "Undelivered" and "not delivered" do not."""
    text = _text(value)
    return bool(DELIVERED_TEXT_PATTERN.search(text)) and not NEGATED_DELIVERY_PATTERN.search(text)


# =======================
# COMMON SIGNALS
# =======================

def has_item_return_quantity(order: RawOrder) -> bool:
    for item in order.items:
        if (item.return_quantity or 0) > 0 or (item.returning_quantity or 0) > 0:
            return True
    return False


def partner_is_returned(order: RawOrder) -> bool:
    partner = order.partner
    return partner is not None and partner.is_returned is True


has_delivered_partner_status = partner_status_is("delivered", include_partner_payload=False)
has_delivered_tracking_text = tracking_text_contains(DELIVERED_TEXT_MARKERS, NEGATED_DELIVERY_MARKERS)


def has_tracking_delivery_evidence(order: RawOrder) -> bool:
    """Any tracking entry proves the parcel reached the buyer."""
    return has_delivered_partner_status(order) or has_delivered_tracking_text(order)


# =======================
# FACEBOOK
# =======================

def cancelled_after_shipment(order: RawOrder) -> bool:
    """Audit trail moves the numeric/text status from shipped or in-transit to cancelled."""
    for entry in order.histories:
        change = entry.status
        if change is None or change.new is None or change.old is None:
            continue
        new_value = _upper(change.new)
        old_value = _upper(change.old)
        is_cancelled = "CANCEL" in new_value or "6" in new_value
        was_shipped = any(marker in old_value for marker in ("SHIPPED", "IN_TRANSIT", "2", "8"))
        if is_cancelled and was_shipped:
            return True
    return False


# =======================
# SHOPEE
# =======================

def shopee_returned_to_sender(order: RawOrder) -> bool:
    """SHIPPED -> CANCELLED in the marketplace status, combined with a return fee or a negative COD."""
    shipped_to_cancelled = False
    return_fee = False
    negative_cod = False

    for entry in order.histories:
        change = entry.shopee_status
        if change is not None and _upper(change.new) == "CANCELLED" and _upper(change.old) == "SHIPPED":
            shipped_to_cancelled = True
        if entry.return_fee is not None and entry.return_fee.new is True:
            return_fee = True
        if entry.cod is not None and isinstance(entry.cod.new, (int, float)) \
                and not isinstance(entry.cod.new, bool) and entry.cod.new < 0:
            negative_cod = True

    return shipped_to_cancelled and (return_fee or negative_cod)


def shopee_cancelled_before_shipment(order: RawOrder) -> bool:
    for entry in order.histories:
        change = entry.shopee_status
        if change is None or _upper(change.new) != "CANCELLED":
            continue
        old_value = _upper(change.old)
        if not ("SHIPPED" in old_value or "IN_TRANSIT" in old_value):
            return True
    return False


def shopee_ever_delivered(order: RawOrder) -> bool:
    """Audit trail shows the order reaching COMPLETED/DELIVERED at some point."""
    for entry in order.histories:
        if entry.shopee_status is not None:
            if _upper(entry.shopee_status.new) in ("COMPLETED", "DELIVERED"):
                return True
            continue
        if entry.status is not None and entry.status.new is not None:
            value = _text(entry.status.new)
            if value == str(DELIVERED_STATUS_CODE) or mentions_delivery(value):
                return True
    return False


def shopee_delivery_evidence(order: RawOrder) -> bool:
    return has_tracking_delivery_evidence(order) or shopee_ever_delivered(order)


# =======================
# TIKTOK
# =======================

def tiktok_refund_is_return(order: RawOrder) -> bool:
    refund = order.return_refund
    if refund is None or not refund.return_type:
        return False
    return_type = refund.return_type.upper()
    return "RETURN" in return_type or "REFUND" in return_type


def tiktok_refund_undelivered(order: RawOrder) -> bool:
    """Refund payload whose return status has not reached a DELIVERED stage."""
    refund = order.return_refund
    if refund is None or refund.return_status is None:
        return False
    return not mentions_delivery(refund.return_status)
