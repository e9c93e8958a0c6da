"""
Account Book - Source Package

Records personal bank and credit-card transactions in a month-sharded
JSON ledger and verifies that credit-card charges are actually debited
from the linked bank account.

DESIGN PRINCIPLES:
1. One partition file per calendar month
2. Every write is all-or-nothing at the file level
3. Reconciliation either fully succeeds or leaves no trace
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Account Book Team"
