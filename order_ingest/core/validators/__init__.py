"""
Record-level validation rules for decoded orders.
"""

from .base_validator import BaseValidator, ValidationError, resolve_field
from .order_validators import CustomerIdentityValidator, LineItemsValidator, TimestampValidator
from .range_validator import RangeValidator
from .required_field_validator import RequiredFieldValidator

__all__ = [
    "BaseValidator",
    "ValidationError",
    "resolve_field",
    "RequiredFieldValidator",
    "RangeValidator",
    "LineItemsValidator",
    "CustomerIdentityValidator",
    "TimestampValidator",
]
