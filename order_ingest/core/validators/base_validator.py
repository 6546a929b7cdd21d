"""
Base validator interface for record-level order rules.

Every validator inspects one field of a RawOrder, addressed by a dotted
attribute path such as ``data.shipping_fee`` or ``effective_order_id``.
"""

from abc import ABC, abstractmethod
from typing import Any

_MISSING = object()


class ValidationError(Exception):
    """Raised when a validation rule fails."""

    def __init__(self, rule_name: str, field_name: str, message: str):
        self.rule_name = rule_name
        self.field_name = field_name
        self.message = message
        super().__init__(f"[{rule_name}] {field_name}: {message}")


def resolve_field(record: Any, path: str) -> Any:
    """
    Follow a dotted attribute path on a model.

    Returns None as soon as an intermediate value is missing.
    """
    value = record
    for part in path.split("."):
        if value is None:
            return None
        if isinstance(value, dict):
            value = value.get(part)
        else:
            value = getattr(value, part, _MISSING)
            if value is _MISSING:
                return None
    return value


class BaseValidator(ABC):
    """
    Abstract base class for all validators.

    Each validator implements a specific rule type
    (required_field, range, line_items, customer_identity, timestamp).
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        """
        Initialize validator.

        Args:
            field_name: Dotted path of the field to validate
            parameters: Rule-specific parameters (e.g., min/max for range)
        """
        self.field_name = field_name
        self.parameters = parameters or {}

    @abstractmethod
    def validate(self, value: Any, record: Any) -> None:
        """
        Validate a value against this rule.

        Args:
            value: The resolved field value
            record: The whole order (for context-dependent checks)

        Raises:
            ValidationError: If validation fails
        """
        pass

    @property
    @abstractmethod
    def rule_type(self) -> str:
        """Return the rule type identifier."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(field={self.field_name}, params={self.parameters})"
