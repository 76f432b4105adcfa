"""
Registre des encaissements d'une réservation.
- Accumule les paiements contre un montant cible (le total du panier).
- Le surplus éventuel est rendu en monnaie, jamais conservé comme solde.
- Ne touche jamais à l'état de la réservation: il ne renvoie que des nombres.
"""
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from washpos.errors import ValidationError
from washpos.utils.money import ZERO, format_amount, to_decimal


@dataclass(frozen=True)
class LedgerEntry:
    amount: Decimal
    applied: Decimal
    change: Decimal
    method: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount": format_amount(self.amount),
            "applied": format_amount(self.applied),
            "change": format_amount(self.change),
            "method": self.method,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class TenderResult:
    accepted: bool
    new_paid: Decimal
    new_remaining: Decimal
    change: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accepted": self.accepted,
            "paid": format_amount(self.new_paid),
            "remaining": format_amount(self.new_remaining),
            "change": format_amount(self.change),
        }


class PaymentLedger:
    def __init__(self, target: Any = ZERO, paid: Any = ZERO):
        self._lock = threading.Lock()
        self._target = to_decimal(target, field="target")
        # Reprise d'une session transférée: montant déjà encaissé
        self._paid = min(to_decimal(paid, field="paid"), self._target) if self._target > ZERO else ZERO
        self._entries: List[LedgerEntry] = []

    @property
    def target(self) -> Decimal:
        return self._target

    @property
    def paid(self) -> Decimal:
        return self._paid

    @property
    def remaining(self) -> Decimal:
        return max(ZERO, self._target - self._paid)

    @property
    def is_settled(self) -> bool:
        return self._target > ZERO and self.remaining == ZERO

    @property
    def entries(self) -> Tuple[LedgerEntry, ...]:
        return tuple(self._entries)

    def record_payment(self, target: Any, tendered: Any, method: str = "cash") -> TenderResult:
        """
        Enregistre un paiement.
        - tendered <= 0 ou non numérique -> ValidationError (rien n'est enregistré)
        - tendered < reste: paid += tendered, monnaie 0
        - tendered >= reste: paid = cible, monnaie = tendered - reste
        - registre déjà soldé -> ValidationError('already_paid')
        """
        amount = to_decimal(tendered, field="tendered")
        if amount <= ZERO:
            raise ValidationError("Le montant encaissé doit être positif", code="invalid_tendered")
        goal = to_decimal(target, field="target")
        if goal <= ZERO:
            raise ValidationError("Aucun montant à encaisser", code="invalid_target")

        with self._lock:
            if self._paid == ZERO and not self._entries:
                self._target = goal
            elif goal != self._target:
                raise ValidationError("Cible différente du total en cours", code="target_mismatch")
            if self.is_settled:
                raise ValidationError("Réservation déjà payée", code="already_paid")

            remaining_before = self._target - self._paid
            if amount < remaining_before:
                applied, change = amount, ZERO
                self._paid = self._paid + amount
            else:
                applied, change = remaining_before, amount - remaining_before
                self._paid = self._target

            self._entries.append(LedgerEntry(
                amount=amount,
                applied=applied,
                change=change,
                method=(method or "cash").strip().lower(),
                timestamp=datetime.now(timezone.utc),
            ))
            return TenderResult(accepted=True, new_paid=self._paid, new_remaining=self.remaining, change=change)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": format_amount(self._target),
            "paid": format_amount(self._paid),
            "remaining": format_amount(self.remaining),
            "settled": self.is_settled,
            "entries": [e.to_dict() for e in self._entries],
        }


class LedgerRegistry:
    """
    Un seul registre par référence de réservation: deux encaissements
    sur la même réservation passent par le même verrou.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._ledgers: Dict[str, PaymentLedger] = {}

    def get(self, booking_ref: Any, target: Any = ZERO, paid: Any = ZERO) -> PaymentLedger:
        key = str(booking_ref)
        with self._lock:
            ledger = self._ledgers.get(key)
            if ledger is None:
                ledger = PaymentLedger(target=target, paid=paid)
                self._ledgers[key] = ledger
            return ledger

    def attach(self, booking_ref: Any, ledger: PaymentLedger) -> PaymentLedger:
        """Rattache un registre existant (créé avant la réservation) à sa référence."""
        key = str(booking_ref)
        with self._lock:
            current = self._ledgers.get(key)
            if current is not None and current is not ledger:
                return current
            self._ledgers[key] = ledger
            return ledger

    def drop(self, booking_ref: Any) -> Optional[PaymentLedger]:
        with self._lock:
            return self._ledgers.pop(str(booking_ref), None)
