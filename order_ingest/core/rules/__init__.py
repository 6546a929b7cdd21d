"""
Record validation rule engine and configuration.
"""

from .rule_config import DEFAULT_RULES, RuleConfigLoader, default_rules, parse_rules
from .rule_engine import RuleEngine

__all__ = ["RuleEngine", "RuleConfigLoader", "DEFAULT_RULES", "default_rules", "parse_rules"]
