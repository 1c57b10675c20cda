"""Description classification package."""

from billtally.classification.classifier import (
    CLASSIFICATION_RULES,
    UNKNOWN_PARTY,
    CategoryRule,
    classify,
    extract_party_name,
    match_rule,
)

__all__ = [
    "CLASSIFICATION_RULES",
    "UNKNOWN_PARTY",
    "CategoryRule",
    "classify",
    "extract_party_name",
    "match_rule",
]
