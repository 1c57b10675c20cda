"""
Bill Tally - Source Package

Double-entry ledger derivation for small-business bookkeeping:
bills and bank statement lines become balanced ledger postings.

DESIGN PRINCIPLES:
1. One source document → one batch of postings
2. Fail visibly, with an error code
3. No silent corrections
4. Every write, and every failed write, is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Bill Tally Team"
