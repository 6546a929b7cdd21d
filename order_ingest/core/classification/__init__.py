"""
Order lifecycle classification.
"""

from .classifier import StatusClassifier, classify, explain
from .partner_status import PARTNER_STATUSES, PartnerStatus, latest_partner_status, lookup
from .precedence import PRECEDENCE_TABLES, PrecedenceRule, PrecedenceTable, Verdict, table_for

__all__ = [
    "StatusClassifier",
    "classify",
    "explain",
    "PartnerStatus",
    "PARTNER_STATUSES",
    "latest_partner_status",
    "lookup",
    "PrecedenceRule",
    "PrecedenceTable",
    "PRECEDENCE_TABLES",
    "Verdict",
    "table_for",
]
