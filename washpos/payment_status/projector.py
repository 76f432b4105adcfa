"""
Projection et réconciliation de l'état de paiement d'une réservation.
- Lecture: champ structuré payment_status, sinon marqueurs des notes, fusionnés avec le registre.
- Écriture: champ structuré + annotation historique, une transaction à la première bascule en 'paid'.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from washpos.bookings import repository as bookings_repo
from washpos.bookings.models import Booking, TransactionRecord
from washpos.ledger import PaymentLedger
from washpos.utils.money import ZERO
from .markers import PaymentStatus, annotate, project_from_annotation

logger = logging.getLogger(__name__)


def status_from_ledger(ledger: Optional[PaymentLedger]) -> PaymentStatus:
    if ledger is None:
        return PaymentStatus.UNPAID
    if ledger.target > ZERO and ledger.paid >= ledger.target:
        return PaymentStatus.PAID
    if ledger.paid > ZERO:
        return PaymentStatus.PARTIAL
    return PaymentStatus.UNPAID


def durable_status(booking: Union[Booking, Dict[str, Any], None]) -> Optional[PaymentStatus]:
    """État tel qu'enregistré: champ structuré prioritaire, sinon notes. None si rien d'exploitable."""
    if booking is None:
        return None
    if isinstance(booking, dict):
        booking = Booking.from_row(booking)
    structured = PaymentStatus.parse(booking.payment_status)
    from_notes = project_from_annotation(booking.notes)
    if structured is None:
        return from_notes
    # Une ligne historique marquée payée par texte reste payée
    if from_notes == PaymentStatus.PAID:
        return PaymentStatus.PAID
    return structured


def project(booking: Union[Booking, Dict[str, Any], None], ledger: Optional[PaymentLedger] = None) -> PaymentStatus:
    """
    Retourne l'état de paiement courant.
    L'enregistrement et le registre sont fusionnés: l'état le plus avancé l'emporte
    (un encaissement pas encore réconcilié compte déjà).
    """
    recorded = durable_status(booking)
    live = status_from_ledger(ledger)
    if recorded is None:
        return live
    return recorded if recorded.rank >= live.rank else live


@dataclass(frozen=True)
class ReconcileResult:
    status: PaymentStatus
    written: bool
    transaction: Optional[TransactionRecord] = None


class PaymentStatusProjector:
    def __init__(self, store=None):
        self.store = store or bookings_repo

    def project_booking(self, booking_id: Any, ledger: Optional[PaymentLedger] = None) -> PaymentStatus:
        if booking_id is None:
            return status_from_ledger(ledger)
        return project(self.store.get_booking(booking_id), ledger)

    def _ensure_transaction(self, booking: Booking, ledger: PaymentLedger, method: str) -> Optional[TransactionRecord]:
        """Crée la TransactionRecord de la réservation si aucune n'existe encore; None sinon."""
        if self.store.find_transaction(booking.id) is not None:
            return None
        transaction = self.store.create_transaction(booking.id, ledger.target, method, customer_id=booking.customer_id)
        logger.info("Réservation %s payée (%s, %s)", booking.id, method, ledger.target)
        return transaction

    def reconcile(self, booking_id: Any, ledger: PaymentLedger, method: str = "cash") -> ReconcileResult:
        """
        Reporte l'état du registre dans la réservation.
        - Réservation déjà payée: pas de réécriture; la transaction manquante (écriture interrompue) est complétée.
        - Bascule en PAID: une seule TransactionRecord par réservation (montant = cible du registre).
        - Échec du store: TransientStoreError propagée, le registre n'est pas modifié.
        """
        booking = self.store.get_booking(booking_id)
        recorded = durable_status(booking)
        if recorded == PaymentStatus.PAID:
            transaction = self._ensure_transaction(booking, ledger, method) if ledger.is_settled else None
            return ReconcileResult(status=PaymentStatus.PAID, written=transaction is not None, transaction=transaction)

        status = project(booking, ledger)
        if recorded is not None and status == recorded and status != PaymentStatus.PARTIAL:
            return ReconcileResult(status=status, written=False)

        now = datetime.now(timezone.utc)
        amount = ledger.target if status == PaymentStatus.PAID else ledger.paid
        notes = annotate(booking.notes, status, method=method, amount=amount, at=now)
        self.store.update_booking_payment(booking_id, status.value, notes, now.isoformat())

        transaction = None
        if status == PaymentStatus.PAID:
            transaction = self._ensure_transaction(booking, ledger, method)
        return ReconcileResult(status=status, written=True, transaction=transaction)
