"""
Order-shape validators: line items, customer identity, creation timestamp.
"""

from datetime import datetime
from typing import Any

from .base_validator import BaseValidator, ValidationError


class LineItemsValidator(BaseValidator):
    """
    Checks the order's line items.

    Fails if there are fewer than ``min_items`` lines, or if any line has
    no id, a non-positive quantity, or a negative price.
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.min_items = self.parameters.get("min_items", 1)

    def validate(self, value: Any, record: Any) -> None:
        items = value or []
        if len(items) < self.min_items:
            raise ValidationError("line_items", self.field_name, "Order has no items")

        for index, item in enumerate(items):
            if not item.id:
                raise ValidationError("line_items", f"{self.field_name}[{index}].id", "Item id is missing")
            if item.quantity is None or item.quantity <= 0:
                raise ValidationError(
                    "line_items",
                    f"{self.field_name}[{index}].quantity",
                    f"Item quantity must be positive, got {item.quantity}",
                )
            if item.price < 0:
                raise ValidationError(
                    "line_items",
                    f"{self.field_name}[{index}].price",
                    f"Item price must not be negative, got {item.price}",
                )

    @property
    def rule_type(self) -> str:
        return "line_items"


class CustomerIdentityValidator(BaseValidator):
    """A customer payload, when present, must carry an id. Guest orders have none."""

    def validate(self, value: Any, record: Any) -> None:
        if value is None:
            return
        if not value.effective_id:
            raise ValidationError("customer_identity", self.field_name, "Customer id is missing")

    @property
    def rule_type(self) -> str:
        return "customer_identity"


class TimestampValidator(BaseValidator):
    """The resolved value must be a parsed datetime (unparseable strings resolve to None)."""

    def validate(self, value: Any, record: Any) -> None:
        if not isinstance(value, datetime):
            raise ValidationError(
                "timestamp", self.field_name, "Missing or unparseable creation date"
            )

    @property
    def rule_type(self) -> str:
        return "timestamp"
