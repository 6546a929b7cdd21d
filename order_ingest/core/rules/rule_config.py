"""
Rule configuration management.

Loads order validation rules from YAML, falling back to the built-in
rule set when no file is configured.
"""

from pathlib import Path
from typing import Any

import yaml


# Built-in record-level rules, in YAML form (field path -> rule list)
DEFAULT_RULES: dict[str, list[dict[str, Any]]] = {
    "effective_order_id": [
        {"type": "required_field", "name": "order_id_present"},
    ],
    "data.customer": [
        {"type": "customer_identity", "name": "customer_id_present"},
    ],
    "data.items": [
        {"type": "line_items", "name": "order_has_valid_items"},
    ],
    "data.total_price_after_sub_discount": [
        {"type": "range", "name": "total_not_negative", "params": {"min": 0}},
    ],
    "data.shipping_fee": [
        {"type": "range", "name": "shipping_fee_not_negative", "params": {"min": 0}},
    ],
    "data.cod": [
        {"type": "range", "name": "cod_not_negative", "params": {"min": 0}},
    ],
    "created_at": [
        {"type": "timestamp", "name": "creation_date_valid"},
    ],
}


class RuleConfigLoader:
    """
    Loads validation rules from YAML configuration files.

    Expected YAML format:
    ```yaml
    rules:
      effective_order_id:
        - type: required_field
          name: order_id_present
      data.shipping_fee:
        - type: range
          params:
            min: 0
    ```
    """

    def __init__(self, config_path: str | Path):
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise FileNotFoundError(f"Rule configuration file not found: {config_path}")

    def load_rules(self) -> list[dict[str, Any]]:
        """
        Load and parse validation rules from YAML file.

        Returns:
            List of rule dictionaries suitable for RuleEngine

        Raises:
            ValueError: If YAML is invalid or missing required fields
        """
        with open(self.config_path) as f:
            config = yaml.safe_load(f)

        if not config or "rules" not in config:
            raise ValueError("Configuration file must contain 'rules' section")

        return parse_rules(config["rules"])


def parse_rules(field_rules: dict[str, Any]) -> list[dict[str, Any]]:
    """Flatten a ``field -> [rule, ...]`` mapping into RuleEngine rule dicts."""
    rules = []
    for field_name, field_rule_list in field_rules.items():
        if not isinstance(field_rule_list, list):
            raise ValueError(f"Rules for field '{field_name}' must be a list")

        for idx, rule_def in enumerate(field_rule_list):
            rules.append(_parse_rule(field_name, rule_def, idx))
    return rules


def default_rules() -> list[dict[str, Any]]:
    return parse_rules(DEFAULT_RULES)


def _parse_rule(field_name: str, rule_def: dict[str, Any], idx: int) -> dict[str, Any]:
    if "type" not in rule_def:
        raise ValueError(f"Rule for field '{field_name}' is missing 'type'")

    rule_type = rule_def["type"]
    rule_name = rule_def.get("name", f"{field_name}_{rule_type}_{idx}")

    severity = rule_def.get("severity", "error")
    if severity not in ("error", "warning"):
        raise ValueError(f"Invalid severity '{severity}' for rule '{rule_name}'. Must be 'error' or 'warning'")

    return {
        "rule_name": rule_name,
        "rule_type": rule_type,
        "field_name": field_name,
        "parameters": rule_def.get("params", rule_def.get("parameters", {})),
        "severity": severity,
        "enabled": rule_def.get("enabled", True),
    }
