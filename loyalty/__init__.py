"""
Loyalty Points Ledger for Fuel Station Customers

This module provides:
- Immutable, date-ordered ledger entries with running balances
- Purchase-derived earnings plus policy-driven synthetic activity
- Reconciliation of each ledger against the customer's points snapshot
- Batch generation with per-customer failure isolation
- Audit-friendly history, stats, and invariant checks
"""

from .models import (
    CustomerStatus,
    EntryType,
    EntrySource,
    Customer,
    Purchase,
    LedgerEntry,
    BatchReport,
)
from .builder import LedgerBuilder
from .reconciler import Reconciler
from .service import LedgerService

__all__ = [
    "CustomerStatus",
    "EntryType",
    "EntrySource",
    "Customer",
    "Purchase",
    "LedgerEntry",
    "BatchReport",
    "LedgerBuilder",
    "Reconciler",
    "LedgerService",
]
