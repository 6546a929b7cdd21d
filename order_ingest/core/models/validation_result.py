"""
ValidationResult model representing the outcome of validating one order (ephemeral).
"""

from pydantic import BaseModel, Field, field_validator
from typing import List


class ValidationResult(BaseModel):
    """
    Outcome of running the record rules against an order.

    Attributes:
        record_id: Order that was validated (None when the id itself is missing)
        passed: Overall validation status
        passed_rules: Rules that succeeded
        failed_rules: Rules that failed
        messages: One message per failed rule, same order as failed_rules
    """

    record_id: str | None = None
    passed: bool
    passed_rules: List[str] = Field(default_factory=list)
    failed_rules: List[str] = Field(default_factory=list)
    messages: List[str] = Field(default_factory=list)

    @field_validator('failed_rules')
    @classmethod
    def check_passed_consistency(cls, v, info):
        """Validate that passed=True implies failed_rules is empty."""
        if info.data.get('passed') and len(v) > 0:
            raise ValueError("passed=True but failed_rules is not empty")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "record_id": "TT-58812",
                "passed": False,
                "passed_rules": ["order_id_present", "order_has_items"],
                "failed_rules": ["creation_date_valid"],
                "messages": ["inserted_at: missing or unparseable creation date"],
            }
        }
