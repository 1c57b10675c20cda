"""
Keyword Classifier

Maps a free-text description (bill description, vendor name or bank
statement narration) to exactly one LedgerCategory.

DESIGN DECISION: Classification is an ordered table of rules, evaluated
top to bottom. The first rule with a keyword contained in the
lower-cased description wins. Order is significant: "office construction
supplies" is an office expense because the office rule comes first.

The classifier is total. A description no rule matches is OTHER.
"""

from dataclasses import dataclass
from typing import Optional

from billtally.models.ledger import LedgerCategory


UNKNOWN_PARTY = "Unknown Party"


@dataclass(frozen=True)
class CategoryRule:
    """One row of the classification table."""

    category: LedgerCategory
    keywords: tuple[str, ...]

    def matches(self, text: str) -> bool:
        """True if any keyword is a substring of already lower-cased text."""
        return any(keyword in text for keyword in self.keywords)


# Ordering matters: earlier matches win.
# Keywords are lower-case substrings; trailing spaces are deliberate ("ca ").
CLASSIFICATION_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        LedgerCategory.TRAVEL_EXPENSE,
        ("fuel", "petrol", "diesel", "hp", "ioc", "bpcl", "shell", "reliance"),
    ),
    CategoryRule(
        LedgerCategory.OFFICE_EXPENSE,
        ("office", "stationery", "supplies"),
    ),
    CategoryRule(
        LedgerCategory.CONSTRUCTION_EXPENSE,
        ("construction", "cement", "steel", "building", "contractor"),
    ),
    CategoryRule(
        LedgerCategory.MATERIAL_EXPENSE,
        ("material", "hardware", "equipment"),
    ),
    CategoryRule(
        LedgerCategory.RENT_EXPENSE,
        ("rent", "lease"),
    ),
    CategoryRule(
        LedgerCategory.UTILITIES_EXPENSE,
        ("electricity", "water", "gas", "utility", "mseb", "bses"),
    ),
    CategoryRule(
        LedgerCategory.PROFESSIONAL_FEES,
        ("professional", "consultant", "legal", "audit", "ca ", "advocate"),
    ),
    CategoryRule(
        LedgerCategory.SALARY_EXPENSE,
        ("salary", "wages", "payroll"),
    ),
    CategoryRule(
        LedgerCategory.SALES_INCOME,
        ("sale", "invoice", "receipt", "payment received"),
    ),
    CategoryRule(
        LedgerCategory.SERVICE_INCOME,
        ("service", "consulting", "fees received"),
    ),
    CategoryRule(
        LedgerCategory.BANK,
        ("cash withdrawal", "atm", "transfer"),
    ),
)


def match_rule(description: Optional[str]) -> Optional[CategoryRule]:
    """
    Return the first rule matching the description, or None.

    Useful when a caller needs to explain a classification.
    """
    text = (description or "").lower()
    for rule in CLASSIFICATION_RULES:
        if rule.matches(text):
            return rule
    return None


def classify(description: Optional[str]) -> LedgerCategory:
    """Classify a description into the chart of accounts."""
    rule = match_rule(description)
    return rule.category if rule else LedgerCategory.OTHER


def extract_party_name(description: Optional[str]) -> str:
    """
    Guess the counterparty from a statement narration.

    Takes the first two whitespace-separated words, e.g.
    "HP PETROL PUMP MUMBAI" -> "HP PETROL". No normalization of case,
    punctuation or legal suffixes is attempted.
    """
    words = (description or "").split()
    return " ".join(words[:2]) or UNKNOWN_PARTY
