"""
OrderMapper: turns one classified order into its warehouse rows.

Every order yields one row for each of the eleven tables, except
``order_items`` and ``products`` which get one row per line item.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from order_ingest.core.classification import latest_partner_status
from order_ingest.core.errors import UnmappableOrderError
from order_ingest.core.models import LifecycleState, RawOrder, parse_timestamp
from order_ingest.core.models.raw_order import OrderItem

from .dimensions import (
    delivery_days,
    date_key,
    economic_tier,
    is_metro_province,
    is_peak_hour,
    is_urban_province,
    price_range,
    quarter,
    safe_place,
    shipping_zone,
    stable_key,
    standard_status,
    to_local,
)
from .entities import (
    CustomerRow,
    GeographyRow,
    OrderItemRow,
    OrderRow,
    OrderStatusDetailRow,
    OrderStatusRow,
    PaymentRow,
    ProcessingDateRow,
    ProductRow,
    ShippingRow,
    StatusRow,
)

PRODUCT_ID_PREFIXES = {
    "facebook": "FB_",
    "tiktok": "TT_",
    "shopee": "SP_",
}

# platform -> (provider id, provider name)
SHIPPING_PROVIDERS = {
    "facebook": ("GHN", "Giao Hang Nhanh"),
    "tiktok": ("JNT", "J&T Express"),
    "shopee": ("SPX", "Shopee Express"),
}
DEFAULT_SHIPPING_PROVIDER = ("STANDARD", "Standard Delivery")

UNKNOWN = "UNKNOWN"

# state -> (active, completed, revenue recognized, refundable, cancellable, trackable, description)
LIFECYCLE_FLAGS: dict[LifecycleState, tuple[bool, bool, bool, bool, bool, bool, str]] = {
    LifecycleState.ACTIVE: (True, False, False, False, True, True, "Your order is being processed"),
    LifecycleState.DELIVERED: (False, True, True, True, False, False, "Your order has been delivered"),
    LifecycleState.CANCELLED: (False, True, False, False, False, False, "Your order was cancelled"),
    LifecycleState.RETURNING_PRE_DELIVERY: (
        True, False, False, True, False, True, "Your order is being returned to the seller"
    ),
    LifecycleState.RETURNED_POST_DELIVERY: (
        False, True, False, True, False, False, "Your order was returned after delivery"
    ),
}

COLOR_FIELD_NAMES = ("color", "colour", "màu", "màu sắc")
SIZE_FIELD_NAMES = ("size", "kích thước", "kích cỡ")


def _money(value: float | None) -> float:
    return float(value) if value is not None else 0.0


def _customer_segment(order_count: int) -> str:
    if order_count >= 10:
        return "VIP"
    if order_count >= 3:
        return "REGULAR"
    return "NEW"


def _customer_tier(spent: float) -> str:
    if spent >= 10_000_000:
        return "GOLD"
    if spent >= 3_000_000:
        return "SILVER"
    return "BRONZE"


def _parse_refund(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


class OrderMapper:
    """
    Maps orders of one platform to warehouse rows.

    Timestamps are converted into the configured zone before date keys and
    calendar attributes are derived from them.
    """

    def __init__(self, platform: str, timezone: str = "Asia/Ho_Chi_Minh"):
        self.platform = platform
        self.zone = ZoneInfo(timezone)
        self.product_prefix = PRODUCT_ID_PREFIXES.get(platform, f"{platform.upper()}_")

    def map_order(
        self,
        order: RawOrder,
        state: LifecycleState,
        rule: str | None = None,
    ) -> dict[str, list[BaseModel]]:
        """
        Build every row for one order.

        Args:
            order: Validated order
            state: Lifecycle state computed by the classifier
            rule: Name of the precedence rule that decided the state

        Returns:
            Rows keyed by logical table name

        Raises:
            UnmappableOrderError: If the order has no id or no parseable creation time
        """
        order_id = order.effective_order_id
        if not order_id:
            raise UnmappableOrderError(None, "order_id_present", "Order has no id")
        created = order.created_at
        if created is None:
            raise UnmappableOrderError(
                order_id, "creation_date_valid", f"Order {order_id} has no creation timestamp"
            )
        local_created = to_local(created, self.zone)

        customer_id = self.customer_id(order)
        status_row = self._status(order)

        products: list[ProductRow] = []
        items: list[OrderItemRow] = []
        for sequence, item in enumerate(order.items, start=1):
            product = self._product(item)
            products.append(product)
            items.append(self._order_item(order_id, sequence, item, product))

        return {
            "customers": [self._customer(order, customer_id)],
            "products": products,
            "status": [status_row],
            "orders": [self._order(order, order_id, customer_id, state, rule, local_created)],
            "geography_info": [self._geography(order, order_id)],
            "payment_info": [self._payment(order, order_id)],
            "shipping_info": [self._shipping(order, order_id)],
            "processing_date_info": [self._processing_date(order_id, local_created)],
            "order_items": items,
            "order_status": [self._order_status(order, order_id, status_row, rule, local_created)],
            "order_status_detail": [self._order_status_detail(order_id, status_row, state)],
        }

    def customer_id(self, order: RawOrder) -> str:
        """Customer id, or a per-order guest id when the order has no customer."""
        customer = order.data.customer
        if customer is not None and customer.effective_id:
            return customer.effective_id
        return f"GUEST_{order.effective_order_id}"

    # ========== customers & orders ==========

    def _customer(self, order: RawOrder, customer_id: str) -> CustomerRow:
        customer = order.data.customer
        if customer is None:
            return CustomerRow(
                customer_id=customer_id,
                customer_key=stable_key(self.platform, customer_id),
                platform_customer_id=customer_id,
                phone=order.data.bill_phone_number,
                customer_segment="GUEST",
                customer_tier="BRONZE",
                acquisition_channel="ADS" if order.data.ad_id else "ORGANIC",
                preferred_platform=self.platform,
                first_order_date=order.created_at,
                last_order_date=order.created_at,
                total_orders=1,
            )

        total_orders = customer.order_count or 0
        spent = _money(customer.purchased_amount)
        return CustomerRow(
            customer_id=customer_id,
            customer_key=stable_key(self.platform, customer_id),
            platform_customer_id=customer.id or customer_id,
            customer_name=customer.name,
            gender=customer.gender,
            phone=customer.phone_numbers[0] if customer.phone_numbers else order.data.bill_phone_number,
            email=customer.emails[0] if customer.emails else None,
            customer_segment=_customer_segment(total_orders),
            customer_tier=_customer_tier(spent),
            acquisition_channel="ADS" if order.data.ad_id else "ORGANIC",
            preferred_platform=self.platform,
            first_order_date=parse_timestamp(customer.inserted_at),
            last_order_date=parse_timestamp(customer.last_order_at),
            total_orders=total_orders,
            total_spent=spent,
            average_order_value=spent / total_orders if total_orders else 0.0,
            loyalty_points=customer.reward_point or 0,
            referral_count=customer.count_referrals or 0,
            is_referrer=bool(customer.is_referrer),
        )

    def _order(
        self,
        order: RawOrder,
        order_id: str,
        customer_id: str,
        state: LifecycleState,
        rule: str | None,
        local_created: datetime,
    ) -> OrderRow:
        data = order.data
        net = _money(data.total_price_after_sub_discount)
        discount = _money(data.total_discount)
        seller = data.assigning_seller
        refund = order.return_refund
        refund_total = refund.refund_amount.refund_total if refund and refund.refund_amount else None

        return OrderRow(
            order_id=order_id,
            customer_id=customer_id,
            platform=self.platform,
            shop_id=data.page.id if data.page else None,
            item_quantity=sum(item.quantity or 0 for item in order.items),
            total_items_in_order=len(order.items),
            gross_revenue=net + discount,
            net_revenue=net,
            shipping_fee=_money(data.shipping_fee),
            tax_amount=_money(data.tax),
            discount_amount=discount,
            cod_amount=_money(data.cod),
            is_cod=order.is_cod,
            is_delivered=state in (LifecycleState.DELIVERED, LifecycleState.RETURNED_POST_DELIVERY),
            is_cancelled=state == LifecycleState.CANCELLED,
            is_returned=state.is_return,
            lifecycle_state=state.value,
            classification_rule=rule,
            latest_status=order.status,
            seller_id=seller.id if seller and seller.id else UNKNOWN,
            seller_name=seller.name if seller and seller.name else UNKNOWN,
            seller_email=seller.email if seller and seller.email else "",
            is_refunded=state.is_return,
            refund_amount=_parse_refund(refund_total),
            is_exchanged=any("exchange" in (tag.name or "").lower() for tag in data.tags),
            ad_revenue=net if data.ad_id else 0.0,
            organic_revenue=0.0 if data.ad_id else net,
            created_at=local_created,
            order_dt=local_created.strftime("%Y-%m-%d"),
        )

    # ========== items & products ==========

    def _variation_field(self, item: OrderItem, names: tuple[str, ...]) -> str:
        info = item.variation_info
        if info is None:
            return ""
        for field in info.fields:
            if field.name and field.name.strip().lower() in names:
                return field.value or ""
        return ""

    def _product(self, item: OrderItem) -> ProductRow:
        info = item.variation_info
        sku = info.display_id if info and info.display_id else f"SKU_{item.id}"
        price = item.price
        return ProductRow(
            sku=sku,
            platform_product_id=f"{self.product_prefix}{item.product_id or item.id}",
            product_id=item.product_id,
            variation_id=item.variation_id,
            barcode=info.barcode or "" if info else "",
            product_name=info.name or sku if info else sku,
            color=self._variation_field(item, COLOR_FIELD_NAMES),
            size=self._variation_field(item, SIZE_FIELD_NAMES),
            weight_gram=info.weight or 0 if info else 0,
            retail_price=price,
            price_range=price_range(price),
            primary_image_url=info.images[0] if info and info.images else "",
            image_count=len(info.images) if info else 0,
        )

    def _order_item(self, order_id: str, sequence: int, item: OrderItem, product: ProductRow) -> OrderItemRow:
        quantity = item.quantity or 0
        return OrderItemRow(
            order_id=order_id,
            sku=product.sku,
            item_sequence=sequence,
            platform_product_id=product.platform_product_id,
            quantity=quantity,
            unit_price=product.retail_price,
            total_price=product.retail_price * quantity,
            item_discount=_money(item.total_discount),
            return_quantity=item.return_quantity or 0,
        )

    # ========== per-order dimensions ==========

    def _geography(self, order: RawOrder, order_id: str) -> GeographyRow:
        address = order.data.shipping_address
        province = safe_place(address.province_name if address else None)
        district = safe_place(address.district_name if address else None)
        return GeographyRow(
            order_id=order_id,
            geography_key=stable_key("VN", province, district),
            country_code="VN",
            country_name="Vietnam",
            province_name=province,
            district_name=district,
            is_urban=is_urban_province(province),
            is_metropolitan=is_metro_province(province),
            economic_tier=economic_tier(province),
            shipping_zone=shipping_zone(province),
            standard_delivery_days=delivery_days(province),
        )

    def _payment(self, order: RawOrder, order_id: str) -> PaymentRow:
        if order.is_cod:
            method, category, provider = "COD", "CASH", "CASH_ON_DELIVERY"
        else:
            method, category, provider = "ONLINE", "ONLINE_PAYMENT", f"{self.platform.upper()}_PAY"
        return PaymentRow(
            order_id=order_id,
            payment_key=stable_key(self.platform, method),
            payment_method=method,
            payment_category=category,
            payment_provider=provider,
            is_cod=order.is_cod,
            is_prepaid=not order.is_cod,
        )

    def _shipping(self, order: RawOrder, order_id: str) -> ShippingRow:
        provider_id, provider_name = SHIPPING_PROVIDERS.get(self.platform, DEFAULT_SHIPPING_PROVIDER)
        address = order.data.shipping_address
        return ShippingRow(
            order_id=order_id,
            shipping_key=stable_key(self.platform, provider_id),
            provider_id=provider_id,
            provider_name=provider_name,
            service_type="STANDARD",
            base_fee=_money(order.data.shipping_fee),
            supports_cod=True,
            coverage_province=safe_place(address.province_name if address else None),
        )

    def _processing_date(self, order_id: str, moment: datetime) -> ProcessingDateRow:
        q = quarter(moment)
        return ProcessingDateRow(
            order_id=order_id,
            date_key=date_key(moment),
            full_date=moment.strftime("%Y-%m-%d"),
            day_of_week=moment.isoweekday(),
            day_of_week_name=moment.strftime("%A"),
            day_of_month=moment.day,
            day_of_year=moment.timetuple().tm_yday,
            week_of_year=moment.isocalendar()[1],
            month_of_year=moment.month,
            month_name=moment.strftime("%B"),
            quarter_of_year=q,
            quarter_name=f"Q{q}",
            year=moment.year,
            is_weekend=moment.isoweekday() >= 6,
            is_business_day=moment.isoweekday() < 6,
            hour_of_day=moment.hour,
            is_peak_hour=is_peak_hour(moment),
        )

    # ========== status ==========

    def _status(self, order: RawOrder) -> StatusRow:
        code = order.status
        standard_code, standard_name, category = standard_status(code)
        platform_code = str(code) if code is not None else UNKNOWN
        return StatusRow(
            status_key=stable_key(self.platform, platform_code),
            platform=self.platform,
            platform_status_code=platform_code,
            platform_status_name=order.data.status_name or standard_name,
            standard_status_code=standard_code,
            standard_status_name=standard_name,
            status_category=category,
        )

    def _transition_time(self, order: RawOrder, fallback: datetime) -> datetime:
        # Newest status change in the audit trail, if any
        changes = [
            parse_timestamp(entry.updated_at)
            for entry in order.histories
            if entry.status is not None
        ]
        changes = [to_local(moment, self.zone) for moment in changes if moment is not None]
        return max(changes) if changes else fallback

    def _order_status(
        self,
        order: RawOrder,
        order_id: str,
        status: StatusRow,
        rule: str | None,
        local_created: datetime,
    ) -> OrderStatusRow:
        transition = self._transition_time(order, local_created)
        return OrderStatusRow(
            status_key=status.status_key,
            order_id=order_id,
            sub_status_id=str(order.data.sub_status) if order.data.sub_status is not None else "",
            partner_status_id=latest_partner_status(order).id,
            transition_date_key=date_key(transition),
            transition_timestamp=transition,
            transition_reason=rule or "default",
            changed_by="system",
            history_key=stable_key(order_id, status.platform_status_code, transition.isoformat()),
        )

    def _order_status_detail(
        self,
        order_id: str,
        status: StatusRow,
        state: LifecycleState,
    ) -> OrderStatusDetailRow:
        active, completed, revenue, refundable, cancellable, trackable, description = LIFECYCLE_FLAGS[state]
        return OrderStatusDetailRow(
            status_key=status.status_key,
            order_id=order_id,
            lifecycle_state=state.value,
            is_active_order=active,
            is_completed_order=completed,
            is_revenue_recognized=revenue,
            is_refundable=refundable,
            is_cancellable=cancellable,
            is_trackable=trackable,
            customer_description=description,
        )
