"""
RawOrder model: the canonical order record decoded from a platform API page.

All three platforms share one wire shape for orders. Nested payloads that
arrive malformed (wrong JSON type, or a leaf value of the wrong type) decode
as absent rather than failing the whole record, so classification can treat
them as missing signals. Epoch timestamps are normalised to ISO-8601 text.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, field_validator


def _dict_or_none(value: Any) -> Any:
    return value if isinstance(value, dict) else None


def _dict_items(value: Any) -> list:
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, dict)]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _text_or_none(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    return str(value) if _is_number(value) else None


def _timestamp_or_none(value: Any) -> str | None:
    """ISO text as-is; epoch seconds (or milliseconds) become ISO-8601 UTC."""
    if isinstance(value, str):
        return value
    if not _is_number(value):
        return None
    seconds = value / 1000 if value > 10_000_000_000 else value
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return None


def _int_or_none(value: Any) -> int | None:
    if _is_number(value):
        return int(value) if float(value).is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _float_or_none(value: Any) -> float | None:
    if _is_number(value):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _bool_or_none(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


class ValueChange(BaseModel):
    """Old/new pair recorded in an audit history entry."""

    old: Any = None
    new: Any = None


class AuditEntry(BaseModel):
    """
    One entry of the order's audit trail ("histories" on the wire).

    Attributes:
        status: Numeric order status change
        shopee_status: Marketplace status text change (Shopee orders)
        cod: Cash-on-delivery amount change
        return_fee: Whether a return fee was applied
        shipping_fee: Shipping fee change
        updated_at: When the change happened
    """

    status: ValueChange | None = None
    shopee_status: ValueChange | None = None
    cod: ValueChange | None = None
    return_fee: ValueChange | None = None
    shipping_fee: ValueChange | None = None
    updated_at: str | None = None

    @field_validator("status", "shopee_status", "cod", "return_fee", "shipping_fee", mode="before")
    @classmethod
    def tolerate_malformed_change(cls, v):
        return _dict_or_none(v)

    @field_validator("updated_at", mode="before")
    @classmethod
    def tolerate_malformed_timestamp(cls, v):
        return _timestamp_or_none(v)


class TrackingEntry(BaseModel):
    """Carrier tracking event."""

    partner_status: str | None = None
    status: str | None = None
    update_at: str | None = None
    tracking_id: str | None = None

    @field_validator("partner_status", "status", "tracking_id", mode="before")
    @classmethod
    def tolerate_malformed_text(cls, v):
        return _text_or_none(v)

    @field_validator("update_at", mode="before")
    @classmethod
    def tolerate_malformed_timestamp(cls, v):
        return _timestamp_or_none(v)


class VariationField(BaseModel):
    name: str | None = None
    value: str | None = None


class VariationInfo(BaseModel):
    name: str | None = None
    display_id: str | None = None
    barcode: str | None = None
    images: list[str] = Field(default_factory=list)
    weight: int | None = None
    retail_price: float | None = None
    product_display_id: str | None = None
    fields: list[VariationField] = Field(default_factory=list)

    @field_validator("fields", mode="before")
    @classmethod
    def tolerate_malformed_fields(cls, v):
        return _dict_items(v)

    @field_validator("images", mode="before")
    @classmethod
    def tolerate_malformed_images(cls, v):
        if not isinstance(v, list):
            return []
        return [image for image in v if isinstance(image, str)]


class OrderItem(BaseModel):
    """
    One order line.

    Attributes:
        id: Platform line/item id
        quantity: Ordered quantity
        product_id: Platform product id
        variation_id: Platform variation id
        total_discount: Discount applied to the line
        return_quantity: Units already returned
        returning_quantity: Units on their way back
        variation_info: Product variation details (sku, price, images)
    """

    id: str | None = None
    quantity: int | None = None
    product_id: str | None = None
    variation_id: str | None = None
    total_discount: float | None = None
    return_quantity: int | None = None
    returning_quantity: int | None = None
    variation_info: VariationInfo | None = None

    @field_validator("id", "product_id", "variation_id", mode="before")
    @classmethod
    def coerce_identifier(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("variation_info", mode="before")
    @classmethod
    def tolerate_malformed_variation(cls, v):
        return _dict_or_none(v)

    @property
    def price(self) -> float:
        if self.variation_info and self.variation_info.retail_price is not None:
            return float(self.variation_info.retail_price)
        return 0.0


class Customer(BaseModel):
    id: str | None = None
    customer_id: str | None = None
    name: str | None = None
    gender: str | None = None
    phone_numbers: list[str] = Field(default_factory=list)
    emails: list[str] = Field(default_factory=list)
    order_count: int | None = None
    purchased_amount: float | None = None
    reward_point: int | None = None
    count_referrals: int | None = None
    is_referrer: bool | None = None
    inserted_at: str | None = None
    last_order_at: str | None = None

    @field_validator("id", "customer_id", mode="before")
    @classmethod
    def coerce_identifier(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("phone_numbers", "emails", mode="before")
    @classmethod
    def tolerate_malformed_contacts(cls, v):
        if not isinstance(v, list):
            return []
        return [entry for entry in v if isinstance(entry, str)]

    @field_validator("name", "gender", mode="before")
    @classmethod
    def tolerate_malformed_text(cls, v):
        return _text_or_none(v)

    @field_validator("inserted_at", "last_order_at", mode="before")
    @classmethod
    def tolerate_malformed_timestamp(cls, v):
        return _timestamp_or_none(v)

    @field_validator("order_count", "reward_point", "count_referrals", mode="before")
    @classmethod
    def tolerate_malformed_count(cls, v):
        return _int_or_none(v)

    @field_validator("purchased_amount", mode="before")
    @classmethod
    def tolerate_malformed_amount(cls, v):
        return _float_or_none(v)

    @field_validator("is_referrer", mode="before")
    @classmethod
    def tolerate_malformed_flag(cls, v):
        return _bool_or_none(v)

    @property
    def effective_id(self) -> str | None:
        return self.customer_id or self.id


class ShippingAddress(BaseModel):
    province_name: str | None = None
    district_name: str | None = None

    @field_validator("province_name", "district_name", mode="before")
    @classmethod
    def tolerate_malformed_text(cls, v):
        return _text_or_none(v)


class Partner(BaseModel):
    """Third-party logistics partner payload."""

    is_returned: bool | None = None
    partner_status: str | None = None

    @field_validator("is_returned", mode="before")
    @classmethod
    def tolerate_malformed_flag(cls, v):
        return _bool_or_none(v)

    @field_validator("partner_status", mode="before")
    @classmethod
    def tolerate_malformed_text(cls, v):
        return _text_or_none(v)


class NamedRef(BaseModel):
    id: str | None = None
    name: str | None = None
    email: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_identifier(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class RefundAmount(BaseModel):
    refund_total: str | None = None

    @field_validator("refund_total", mode="before")
    @classmethod
    def tolerate_malformed_total(cls, v):
        return _text_or_none(v)


class ReturnRefund(BaseModel):
    """TikTok return/refund payload."""

    return_type: str | None = None
    return_status: str | None = None
    update_time: int | None = None
    refund_amount: RefundAmount | None = None

    @field_validator("refund_amount", mode="before")
    @classmethod
    def tolerate_malformed_amount(cls, v):
        return _dict_or_none(v)

    @field_validator("return_type", "return_status", mode="before")
    @classmethod
    def tolerate_malformed_text(cls, v):
        return _text_or_none(v)

    @field_validator("update_time", mode="before")
    @classmethod
    def tolerate_malformed_time(cls, v):
        return _int_or_none(v)


class TikTokData(BaseModel):
    return_refund: ReturnRefund | None = None

    @field_validator("return_refund", mode="before")
    @classmethod
    def tolerate_malformed_refund(cls, v):
        return _dict_or_none(v)


class OrderData(BaseModel):
    """Body of an order as reported by the platform ("data" on the wire)."""

    id: str | None = None
    cod: float | None = None
    tax: float | None = None
    cash: float | None = None
    total_price_after_sub_discount: float | None = None
    total_discount: float | None = None
    shipping_fee: float | None = None
    items: list[OrderItem] = Field(default_factory=list)
    tags: list[NamedRef] = Field(default_factory=list)
    customer: Customer | None = None
    inserted_at: str | None = None
    updated_at: str | None = None
    bill_phone_number: str | None = None
    shipping_address: ShippingAddress | None = None
    ad_id: str | None = None
    status_name: str | None = None
    sub_status: int | None = None
    tracking_histories: list[TrackingEntry] = Field(default_factory=list)
    page: NamedRef | None = None
    histories: list[AuditEntry] = Field(default_factory=list)
    partner: Partner | None = None
    assigning_seller: NamedRef | None = None

    @field_validator("id", "ad_id", mode="before")
    @classmethod
    def coerce_identifier(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("tracking_histories", "histories", "tags", mode="before")
    @classmethod
    def tolerate_malformed_lists(cls, v):
        return _dict_items(v)

    @field_validator(
        "customer", "shipping_address", "page", "partner", "assigning_seller", mode="before"
    )
    @classmethod
    def tolerate_malformed_objects(cls, v):
        return _dict_or_none(v)


class RawOrder(BaseModel):
    """
    Canonical order record consumed by the classifier and the mapper.

    Owned by the platform pipeline that fetched it; never shared across
    platforms.

    Attributes:
        order_id: Top-level order id (the body id wins when present)
        status: Platform numeric order status
        source: Platform name reported by the API
        inserted_at: When the order was created (ISO-8601)
        tiktok_data: Optional TikTok refund payload
        data: Order body with financials, items, histories
    """

    order_id: str | None = None
    status: int | None = None
    source: str | None = None
    inserted_at: str | None = None
    tiktok_data: TikTokData | None = None
    data: OrderData = Field(default_factory=OrderData)

    @field_validator("order_id", mode="before")
    @classmethod
    def coerce_order_id(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("tiktok_data", mode="before")
    @classmethod
    def tolerate_malformed_tiktok_data(cls, v):
        return _dict_or_none(v)

    @field_validator("data", mode="before")
    @classmethod
    def tolerate_missing_data(cls, v):
        return v if isinstance(v, dict) else {}

    class Config:
        json_schema_extra = {
            "example": {
                "order_id": "FB-100234",
                "status": 3,
                "source": "facebook",
                "inserted_at": "2025-12-30T08:15:00Z",
                "data": {
                    "id": "FB-100234",
                    "cod": 350000,
                    "total_price_after_sub_discount": 350000,
                    "shipping_fee": 30000,
                    "customer": {"customer_id": "C-77", "name": "Lan"},
                    "items": [{"id": "501", "quantity": 1,
                               "variation_info": {"display_id": "TSHIRT-M", "retail_price": 350000}}],
                    "tracking_histories": [{"partner_status": "delivered",
                                            "status": "Giao hàng thành công"}],
                },
            }
        }

    # ========== flattened accessors ==========

    @property
    def effective_order_id(self) -> str | None:
        return self.data.id or self.order_id

    @property
    def items(self) -> list[OrderItem]:
        return self.data.items

    @property
    def tracking_histories(self) -> list[TrackingEntry]:
        return self.data.tracking_histories

    @property
    def histories(self) -> list[AuditEntry]:
        return self.data.histories

    @property
    def partner(self) -> Partner | None:
        return self.data.partner

    @property
    def return_refund(self) -> ReturnRefund | None:
        return self.tiktok_data.return_refund if self.tiktok_data else None

    @property
    def is_cod(self) -> bool:
        return self.data.cod is not None and self.data.cod > 0

    @property
    def created_at(self) -> datetime | None:
        """Creation timestamp, preferring the top-level value."""
        for raw in (self.inserted_at, self.data.inserted_at, self.data.updated_at):
            parsed = parse_timestamp(raw)
            if parsed is not None:
                return parsed
        return None


def parse_timestamp(raw: str | None) -> datetime | None:
    """Parse the ISO-8601 and "yyyy-MM-dd HH:mm:ss" forms the platforms emit."""
    if not raw or not isinstance(raw, str):
        return None
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.strptime(text, "%Y-%m-%d %H:%M:%S")
    except ValueError:
        return None
