"""
Module 'ledger': encaissements partiels, monnaie rendue, un registre par réservation.
"""

from .ledger import LedgerEntry, TenderResult, PaymentLedger, LedgerRegistry

__all__ = [
    "LedgerEntry",
    "TenderResult",
    "PaymentLedger",
    "LedgerRegistry",
]
