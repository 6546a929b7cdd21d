"""
Row models for the eleven warehouse tables, plus the table registry
(table name, row model, natural key) the flush path writes through.
"""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel


class CustomerRow(BaseModel):
    customer_id: str
    customer_key: int
    platform_customer_id: str
    customer_name: str | None = None
    gender: str | None = None
    phone: str | None = None
    email: str | None = None
    customer_segment: str
    customer_tier: str
    acquisition_channel: str
    preferred_platform: str
    first_order_date: datetime | None = None
    last_order_date: datetime | None = None
    total_orders: int = 0
    total_spent: float = 0.0
    average_order_value: float = 0.0
    loyalty_points: int = 0
    referral_count: int = 0
    is_referrer: bool = False


class OrderRow(BaseModel):
    order_id: str
    customer_id: str
    platform: str
    shop_id: str | None = None
    item_quantity: int
    total_items_in_order: int
    gross_revenue: float
    net_revenue: float
    shipping_fee: float
    tax_amount: float
    discount_amount: float
    cod_amount: float
    is_cod: bool
    is_delivered: bool
    is_cancelled: bool
    is_returned: bool
    lifecycle_state: str
    classification_rule: str | None = None
    latest_status: int | None = None
    seller_id: str
    seller_name: str
    seller_email: str
    is_refunded: bool
    refund_amount: float | None = None
    is_exchanged: bool
    ad_revenue: float
    organic_revenue: float
    created_at: datetime
    order_dt: str


class OrderItemRow(BaseModel):
    order_id: str
    sku: str
    item_sequence: int
    platform_product_id: str
    quantity: int
    unit_price: float
    total_price: float
    item_discount: float
    return_quantity: int


class ProductRow(BaseModel):
    sku: str
    platform_product_id: str
    product_id: str | None = None
    variation_id: str | None = None
    barcode: str
    product_name: str
    color: str
    size: str
    weight_gram: int
    retail_price: float
    price_range: str
    primary_image_url: str
    image_count: int


class GeographyRow(BaseModel):
    order_id: str
    geography_key: int
    country_code: str
    country_name: str
    province_name: str
    district_name: str
    is_urban: bool
    is_metropolitan: bool
    economic_tier: str
    shipping_zone: str
    standard_delivery_days: int


class PaymentRow(BaseModel):
    order_id: str
    payment_key: int
    payment_method: str
    payment_category: str
    payment_provider: str
    is_cod: bool
    is_prepaid: bool


class ShippingRow(BaseModel):
    order_id: str
    shipping_key: int
    provider_id: str
    provider_name: str
    service_type: str
    base_fee: float
    supports_cod: bool
    coverage_province: str


class ProcessingDateRow(BaseModel):
    order_id: str
    date_key: int
    full_date: str
    day_of_week: int
    day_of_week_name: str
    day_of_month: int
    day_of_year: int
    week_of_year: int
    month_of_year: int
    month_name: str
    quarter_of_year: int
    quarter_name: str
    year: int
    is_weekend: bool
    is_business_day: bool
    hour_of_day: int
    is_peak_hour: bool


class StatusRow(BaseModel):
    status_key: int
    platform: str
    platform_status_code: str
    platform_status_name: str
    standard_status_code: str
    standard_status_name: str
    status_category: str


class OrderStatusRow(BaseModel):
    status_key: int
    order_id: str
    sub_status_id: str
    partner_status_id: int
    transition_date_key: int
    transition_timestamp: datetime
    transition_reason: str
    changed_by: str
    history_key: int


class OrderStatusDetailRow(BaseModel):
    status_key: int
    order_id: str
    lifecycle_state: str
    is_active_order: bool
    is_completed_order: bool
    is_revenue_recognized: bool
    is_refundable: bool
    is_cancellable: bool
    is_trackable: bool
    customer_description: str


@dataclass(frozen=True)
class TableSpec:
    """Warehouse table: logical name, physical name, row model and natural key."""

    name: str
    table: str
    model: type[BaseModel]
    natural_key: tuple[str, ...]

    @property
    def columns(self) -> list[str]:
        return list(self.model.model_fields)


# Write order within a flush transaction: dimensions before facts
TABLES: tuple[TableSpec, ...] = (
    TableSpec("customers", "tbl_customer", CustomerRow, ("customer_id",)),
    TableSpec("products", "tbl_product", ProductRow, ("sku", "platform_product_id")),
    TableSpec("status", "tbl_status", StatusRow, ("status_key",)),
    TableSpec("orders", "tbl_order", OrderRow, ("order_id",)),
    TableSpec("geography_info", "tbl_geography_info", GeographyRow, ("order_id",)),
    TableSpec("payment_info", "tbl_payment_info", PaymentRow, ("order_id",)),
    TableSpec("shipping_info", "tbl_shipping_info", ShippingRow, ("order_id",)),
    TableSpec("processing_date_info", "tbl_processing_date_info", ProcessingDateRow, ("order_id",)),
    TableSpec("order_items", "tbl_order_item", OrderItemRow, ("order_id", "sku", "item_sequence")),
    TableSpec("order_status", "tbl_order_status", OrderStatusRow, ("status_key", "order_id")),
    TableSpec("order_status_detail", "tbl_order_status_detail", OrderStatusDetailRow, ("status_key", "order_id")),
)

TABLES_BY_NAME: dict[str, TableSpec] = {spec.name: spec for spec in TABLES}
