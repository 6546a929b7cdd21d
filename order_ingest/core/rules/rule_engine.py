"""
Rule engine applying record-level validation rules to decoded orders.

Orders failing any error-severity rule are dropped from the page before
they reach the buffer.
"""

from typing import Any

from order_ingest.core.models import RawOrder, ValidationResult
from order_ingest.core.validators import (
    BaseValidator,
    CustomerIdentityValidator,
    LineItemsValidator,
    RangeValidator,
    RequiredFieldValidator,
    TimestampValidator,
    ValidationError,
    resolve_field,
)


class RuleEngine:
    """
    Orchestrates validation rules on orders.

    Rules are applied in configuration order; every rule runs, so a result
    lists all failures of a record rather than the first one.
    """

    VALIDATOR_REGISTRY = {
        "required_field": RequiredFieldValidator,
        "range": RangeValidator,
        "line_items": LineItemsValidator,
        "customer_identity": CustomerIdentityValidator,
        "timestamp": TimestampValidator,
    }

    def __init__(self, rules: list[dict[str, Any]]):
        """
        Initialize the rule engine with validation rules.

        Args:
            rules: List of rule configurations, each containing:
                   - rule_name: str
                   - rule_type: str (a key of VALIDATOR_REGISTRY)
                   - field_name: str (dotted path on RawOrder)
                   - parameters: Dict[str, Any] (optional)
                   - severity: str (error or warning)
                   - enabled: bool (default True)
        """
        self.rules = rules
        self.validators: list[tuple[str, str, BaseValidator]] = []
        self._build_validators()

    def _build_validators(self) -> None:
        for rule in self.rules:
            if not rule.get("enabled", True):
                continue

            rule_name = rule["rule_name"]
            rule_type = rule["rule_type"]
            validator_class = self.VALIDATOR_REGISTRY.get(rule_type)
            if not validator_class:
                raise ValueError(f"Unknown rule type: {rule_type}")

            try:
                validator = validator_class(rule["field_name"], rule.get("parameters", {}))
            except ValueError as e:
                raise ValueError(f"Failed to create validator for rule '{rule_name}': {e}") from e
            self.validators.append((rule_name, rule.get("severity", "error"), validator))

    def validate_record(self, record: RawOrder) -> ValidationResult:
        """
        Validate one order against all rules.

        Args:
            record: The decoded order

        Returns:
            ValidationResult with pass/fail status and failure messages
        """
        passed_rules = []
        failed_rules = []
        messages = []

        for rule_name, severity, validator in self.validators:
            value = resolve_field(record, validator.field_name)
            try:
                validator.validate(value, record)
                passed_rules.append(rule_name)
            except ValidationError as e:
                # Warnings are reported by callers through logs only
                if severity == "error":
                    failed_rules.append(rule_name)
                    messages.append(f"{e.field_name}: {e.message}")

        return ValidationResult(
            record_id=record.effective_order_id,
            passed=not failed_rules,
            passed_rules=passed_rules,
            failed_rules=failed_rules,
            messages=messages,
        )

    def validate_batch(self, records: list[RawOrder]) -> list[ValidationResult]:
        return [self.validate_record(record) for record in records]

    def get_rule_summary(self) -> dict[str, Any]:
        """
        Get summary of loaded rules.

        Returns:
            Dictionary with rule counts and types
        """
        by_type: dict[str, int] = {}
        for _, _, validator in self.validators:
            by_type[validator.rule_type] = by_type.get(validator.rule_type, 0) + 1
        return {"total_rules": len(self.validators), "rules_by_type": by_type}
