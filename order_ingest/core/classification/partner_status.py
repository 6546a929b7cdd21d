"""
Logistics partner status catalogue.

Maps the free-text partner status reported in tracking histories to a
stable numeric id, a display name and a coarse shipment stage.
"""

from pydantic import BaseModel

from order_ingest.core.models import RawOrder


class PartnerStatus(BaseModel):
    id: int
    name: str
    stage: str

    class Config:
        frozen = True


UNKNOWN = PartnerStatus(id=0, name="unknown", stage="UNKNOWN")

PARTNER_STATUSES: dict[str, PartnerStatus] = {
    status.name: status
    for status in (
        PartnerStatus(id=1, name="pending", stage="PRE_SHIPMENT"),
        PartnerStatus(id=2, name="picking_up", stage="PRE_SHIPMENT"),
        PartnerStatus(id=3, name="picked_up", stage="IN_TRANSIT"),
        PartnerStatus(id=4, name="on_delivery", stage="IN_TRANSIT"),
        PartnerStatus(id=5, name="delivered", stage="DELIVERED"),
        PartnerStatus(id=6, name="undeliverable", stage="RETURN"),
        PartnerStatus(id=7, name="returning", stage="RETURN"),
        PartnerStatus(id=8, name="returned", stage="RETURN"),
        PartnerStatus(id=9, name="cancelled", stage="CANCELLED"),
    )
}


def lookup(name: str | None) -> PartnerStatus:
    if not name:
        return UNKNOWN
    return PARTNER_STATUSES.get(name.strip().lower(), UNKNOWN)


def latest_partner_status(order: RawOrder) -> PartnerStatus:
    """Partner status of the first tracking entry (APIs list the newest event first)."""
    if not order.tracking_histories:
        return UNKNOWN
    return lookup(order.tracking_histories[0].partner_status)
