"""
Protocol-1 governance enforcement core.

Validates sensitive platform actions (disclosure edits, investments,
company suspension, tier promotions) against a versioned catalog of
governance rules, and records every violation for audit and alerting.
"""

from protocol1.core.rules.catalog import PROTOCOL_VERSION, PROTOCOL_VERSION_DATE

__version__ = PROTOCOL_VERSION

__all__ = ["PROTOCOL_VERSION", "PROTOCOL_VERSION_DATE", "__version__"]
