"""
Machine à états du lavage (non démarré -> en cours -> terminé -> récupéré, ou annulé).
- Chaque transition est écrite dans la réservation avant de modifier l'état mémoire.
- Écriture en échec: l'état reste inchangé et TransientStoreError est levée.
- finish() consulte l'état de paiement et demande une décision si le paiement est incomplet.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Any, List, Optional, Union

from washpos.bookings import repository as bookings_repo
from washpos.bookings import service as bookings_service
from washpos.bookings.models import Customer
from washpos.errors import InvalidTransitionError, PosError, TransientStoreError, ValidationError
from washpos.ledger import PaymentLedger
from washpos.payment_status import PaymentStatus, PaymentStatusProjector, append_status_line, initial_annotation
from washpos.utils.money import ZERO, to_decimal
from .states import TRANSITIONS, FinishDecision, FinishOutcome, LifecycleState, assert_transition

logger = logging.getLogger(__name__)


def _store_call(fn, *args, **kwargs):
    """Appel BookingStore: toute erreur hors taxonomie devient TransientStoreError."""
    try:
        return fn(*args, **kwargs)
    except PosError:
        raise
    except Exception as e:
        logger.exception("BookingStore call failed: %s", getattr(fn, "__name__", fn))
        raise TransientStoreError(f"BookingStore indisponible: {e}")


class BookingLifecycle:
    def __init__(
        self,
        store=None,
        projector: Optional[PaymentStatusProjector] = None,
        ledger: Optional[PaymentLedger] = None,
        booking_id: Any = None,
        state: LifecycleState = LifecycleState.UNSTARTED,
    ):
        self.store = store or bookings_repo
        self.projector = projector or PaymentStatusProjector(self.store)
        self.ledger = ledger
        self.booking_id = booking_id
        self.state = LifecycleState(state)
        self._lock = threading.RLock()

    def valid_actions(self) -> List[str]:
        return [action for action, (sources, _) in TRANSITIONS.items() if self.state in sources]

    def _write_state(self, target: LifecycleState) -> None:
        now = datetime.now(timezone.utc)
        booking = _store_call(self.store.get_booking, self.booking_id)
        state_id = _store_call(self.store.lookup_state_id, target.store_name)
        notes = append_status_line(booking.notes, target.store_name, now)
        _store_call(self.store.update_booking_state, self.booking_id, state_id, notes, now.isoformat())
        logger.info("Réservation %s: %s -> %s", self.booking_id, self.state.value, target.value)
        self.state = target

    def _create_booking(self, customer: Optional[Customer], license_plate: Optional[str], total: Any, cart_size: int, model: Optional[str]) -> None:
        if customer is None:
            raise ValidationError("Client requis pour démarrer le lavage", code="customer_required")
        if not (license_plate or "").strip():
            raise ValidationError("Plaque requise pour démarrer le lavage", code="plate_required")
        parties = _store_call(bookings_service.ensure_parties, customer, license_plate, model, store=self.store)
        state_id = _store_call(self.store.lookup_state_id, LifecycleState.UNSTARTED.store_name)
        self.booking_id = _store_call(
            self.store.create_booking,
            parties.customer.id,
            parties.vehicle.id,
            state_id,
            to_decimal(total if total is not None else ZERO, field="total"),
            initial_annotation(cart_size),
        )
        logger.info("Réservation %s créée (client=%s, véhicule=%s)", self.booking_id, parties.customer.id, parties.vehicle.id)

    def start(
        self,
        customer: Optional[Customer] = None,
        license_plate: Optional[str] = None,
        total: Any = None,
        cart_size: int = 0,
        model: Optional[str] = None,
    ) -> LifecycleState:
        """
        Démarre le lavage. Crée la réservation si elle n'existe pas encore.
        Déjà en cours: aucun effet, aucune seconde réservation.
        """
        with self._lock:
            if self.state == LifecycleState.IN_PROGRESS:
                return self.state
            assert_transition(self.state, "start")
            if self.booking_id is None:
                self._create_booking(customer, license_plate, total, cart_size, model)
            # La réservation créée est conservée même si l'écriture d'état échoue
            self._write_state(LifecycleState.IN_PROGRESS)
            return self.state

    def payment_status(self) -> PaymentStatus:
        return _store_call(self.projector.project_booking, self.booking_id, self.ledger)

    def finish(self, decision: Union[FinishDecision, str, None] = None) -> FinishOutcome:
        """
        Termine le lavage.
        - Paiement complet: transition directe.
        - Sinon, sans décision: retourne requires_decision=True, aucune écriture.
        - PAY_FIRST: reste en cours, collect_payment=True. CANCEL_FINISH: aucun changement.
        - FINISH_AND_DEFER: transition, le paiement reste dû.
        """
        with self._lock:
            assert_transition(self.state, "finish")
            status = self.payment_status()
            if status != PaymentStatus.PAID:
                if decision is None:
                    return FinishOutcome(state=self.state, payment_status=status.value, advanced=False, requires_decision=True)
                try:
                    choice = FinishDecision(decision)
                except ValueError:
                    raise ValidationError(f"Décision inconnue: {decision}", code="invalid_decision")
                if choice == FinishDecision.PAY_FIRST:
                    return FinishOutcome(state=self.state, payment_status=status.value, advanced=False, collect_payment=True)
                if choice == FinishDecision.CANCEL_FINISH:
                    return FinishOutcome(state=self.state, payment_status=status.value, advanced=False)
            self._write_state(LifecycleState.FINISHED)
            return FinishOutcome(state=self.state, payment_status=status.value, advanced=True)

    def collect(self) -> LifecycleState:
        with self._lock:
            assert_transition(self.state, "collect")
            self._write_state(LifecycleState.COLLECTED)
            return self.state

    def cancel(self) -> LifecycleState:
        """Annule depuis tout état non terminal. Déjà annulé: aucun effet."""
        with self._lock:
            if self.state == LifecycleState.CANCELLED:
                return self.state
            if self.state == LifecycleState.COLLECTED:
                raise InvalidTransitionError("Lavage déjà récupéré, annulation impossible")
            assert_transition(self.state, "cancel")
            if self.booking_id is None:
                # Rien n'a encore été enregistré
                self.state = LifecycleState.CANCELLED
                return self.state
            self._write_state(LifecycleState.CANCELLED)
            return self.state
