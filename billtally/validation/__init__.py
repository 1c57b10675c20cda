"""Source document and posting validation."""

from billtally.validation.validator import LedgerValidator

__all__ = ["LedgerValidator"]
