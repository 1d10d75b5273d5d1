"""
Rule catalog and validator.
"""

from .catalog import DEFAULT_CATALOG, PROTOCOL_VERSION, PROTOCOL_VERSION_DATE, RULE_SETS, RuleCatalog
from .validator import CRITICAL_BLOCK_REASON, HIGH_BLOCK_REASON, Validator, decide_block

__all__ = [
    "CRITICAL_BLOCK_REASON",
    "DEFAULT_CATALOG",
    "HIGH_BLOCK_REASON",
    "PROTOCOL_VERSION",
    "PROTOCOL_VERSION_DATE",
    "RULE_SETS",
    "RuleCatalog",
    "Validator",
    "decide_block",
]
