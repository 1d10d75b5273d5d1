"""
Governance validation engine: models, rule catalog, evaluators and validator.
"""
