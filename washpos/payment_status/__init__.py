"""
Module 'payment_status': état de paiement à trois valeurs (unpaid/partial/paid),
lecture des marqueurs historiques et réconciliation dans la réservation.
"""

from .markers import (
    PaymentStatus,
    project_from_annotation,
    annotate,
    clean_conflicting_markers,
    initial_annotation,
    append_status_line,
    last_recorded_state,
)
from .projector import (
    PaymentStatusProjector,
    ReconcileResult,
    project,
    durable_status,
    status_from_ledger,
)

__all__ = [
    # markers
    "PaymentStatus",
    "project_from_annotation",
    "annotate",
    "clean_conflicting_markers",
    "initial_annotation",
    "append_status_line",
    "last_recorded_state",
    # projector
    "PaymentStatusProjector",
    "ReconcileResult",
    "project",
    "durable_status",
    "status_from_ledger",
]
