"""
Orchestration d'un poste de caisse: panier, client, encaissements, cycle de vie, transfert de session.
Un poste = une session; les mutations d'un même poste sont sérialisées.
"""
import logging
import threading
from typing import Any, Dict, Optional

from washpos.bookings import repository as bookings_repo
from washpos.bookings.models import Customer
from washpos.bookings.service import validate_customer
from washpos.errors import TransientStoreError, ValidationError
from washpos.handoff import SessionSnapshot
from washpos.ledger import LedgerRegistry, PaymentLedger, TenderResult
from washpos.lifecycle import BookingLifecycle, FinishOutcome, LifecycleState
from washpos.payment_status import PaymentStatus, PaymentStatusProjector, ReconcileResult, status_from_ledger
from washpos.pricing import Cart, Totals, cart_from_items, compute_totals
from washpos.utils.money import ZERO

logger = logging.getLogger(__name__)


class Station:
    def __init__(self, station_id: str, store=None, ledgers: Optional[LedgerRegistry] = None):
        self.station_id = station_id
        self.store = store or bookings_repo
        self.ledgers = ledgers or LedgerRegistry()
        self.projector = PaymentStatusProjector(self.store)
        self._lock = threading.RLock()
        self._reset()

    def _reset(self) -> None:
        self.cart = Cart()
        self.customer: Optional[Customer] = None
        self.license_plate = ""
        self.model: Optional[str] = None
        self.ledger = PaymentLedger()
        self.lifecycle = BookingLifecycle(store=self.store, projector=self.projector, ledger=self.ledger)
        self.pending_reconcile = False
        self.view_only = False
        self.last_method = "cash"

    @property
    def booking_id(self):
        return self.lifecycle.booking_id

    @property
    def vip(self) -> bool:
        return bool(self.customer and self.customer.vip)

    # Panier

    def _ensure_cart_editable(self) -> None:
        if self.view_only:
            raise ValidationError("Session en lecture seule", code="view_only")
        if self.ledger.paid > ZERO:
            raise ValidationError("Paiement commencé: panier figé", code="cart_locked")

    def add_line(self, service_id: Any, unit_price: Any, quantity: Any = 1, name: Optional[str] = None):
        with self._lock:
            self._ensure_cart_editable()
            return self.cart.add_line(service_id, unit_price, quantity, name)

    def update_line(self, service_id: str, quantity: Any):
        with self._lock:
            self._ensure_cart_editable()
            return self.cart.update_quantity(service_id, quantity)

    def remove_line(self, service_id: str) -> bool:
        with self._lock:
            self._ensure_cart_editable()
            return self.cart.remove_line(service_id)

    def clear_cart(self) -> None:
        with self._lock:
            self._ensure_cart_editable()
            self.cart.clear()

    def set_customer(self, name: str, phone: str, email: Optional[str] = None, vip: bool = False,
                     license_plate: Optional[str] = None, model: Optional[str] = None) -> Customer:
        with self._lock:
            customer = validate_customer(name, phone, email, vip)
            if self.customer is not None and self.customer.id is not None and self.customer.phone == customer.phone:
                customer.id = self.customer.id
            self.customer = customer
            if license_plate is not None:
                self.license_plate = license_plate.strip()
            if model is not None:
                self.model = model.strip() or None
            return customer

    def totals(self) -> Totals:
        return compute_totals(self.cart, self.vip)

    # Paiement

    def _try_reconcile(self, method: str) -> Optional[ReconcileResult]:
        try:
            result = self.projector.reconcile(self.booking_id, self.ledger, method)
        except TransientStoreError:
            self.pending_reconcile = True
            logger.warning("Réconciliation en attente pour la réservation %s", self.booking_id)
            return None
        self.pending_reconcile = False
        return result

    def tender(self, amount: Any, method: str = "cash") -> Dict[str, Any]:
        """
        Encaisse un montant contre le total courant.
        L'encaissement est acquis même si la réservation ne peut pas être mise à jour
        (pending_reconcile=True, à rejouer via reconcile()).
        """
        with self._lock:
            if self.view_only:
                raise ValidationError("Session en lecture seule", code="view_only")
            if self.cart.is_empty() and self.ledger.target == ZERO:
                raise ValidationError("Panier vide", code="empty_cart")
            target = self.ledger.target if self.ledger.entries or self.ledger.paid > ZERO else self.totals().total
            result: TenderResult = self.ledger.record_payment(target, amount, method)
            self.last_method = method
            if self.booking_id is not None:
                self._try_reconcile(method)
            else:
                self.pending_reconcile = True
            payload = result.to_dict()
            payload["payment_status"] = self.payment_status().value
            payload["pending_reconcile"] = self.pending_reconcile
            return payload

    def reconcile(self) -> ReconcileResult:
        with self._lock:
            if self.booking_id is None:
                raise ValidationError("Aucune réservation à réconcilier", code="no_booking")
            result = self.projector.reconcile(self.booking_id, self.ledger, self.last_method)
            self.pending_reconcile = False
            return result

    def payment_status(self) -> PaymentStatus:
        return status_from_ledger(self.ledger)

    # Cycle de vie

    def start(self) -> LifecycleState:
        with self._lock:
            if self.cart.is_empty():
                raise ValidationError("Panier vide", code="empty_cart")
            state = self.lifecycle.start(
                customer=self.customer,
                license_plate=self.license_plate,
                total=self.totals().total,
                cart_size=self.cart.item_count,
                model=self.model,
            )
            self.ledger = self.ledgers.attach(self.booking_id, self.ledger)
            self.lifecycle.ledger = self.ledger
            if self.pending_reconcile and self.ledger.paid > ZERO:
                self._try_reconcile(self.last_method)
            return state

    def finish(self, decision=None) -> FinishOutcome:
        with self._lock:
            return self.lifecycle.finish(decision)

    def _close_sale(self) -> None:
        """Vente close (remise ou annulation): registre libéré, poste prêt pour la vente suivante."""
        if self.booking_id is not None:
            self.ledgers.drop(self.booking_id)
        self._reset()

    def collect(self) -> LifecycleState:
        with self._lock:
            state = self.lifecycle.collect()
            self._close_sale()
            return state

    def cancel(self) -> LifecycleState:
        with self._lock:
            state = self.lifecycle.cancel()
            self._close_sale()
            return state

    # Transfert de session

    def export_snapshot(self, from_payment: bool = False) -> SessionSnapshot:
        with self._lock:
            total = self.ledger.target if self.ledger.target > ZERO else self.totals().total
            return SessionSnapshot(
                cart=self.cart.to_list(),
                customer_info=self.customer.to_dict() if self.customer else {},
                booking_reference=self.booking_id,
                license_plate=self.license_plate,
                status=self.lifecycle.state.value,
                total=total,
                paid_amount=self.ledger.paid,
                view_only=self.view_only,
                from_payment=from_payment,
            )

    def restore_snapshot(self, snapshot: SessionSnapshot) -> None:
        """Remplace la session du poste par l'instantané (session vide => poste réinitialisé)."""
        with self._lock:
            self._reset()
            if snapshot.is_empty:
                return
            self.cart = cart_from_items(snapshot.cart)
            info = snapshot.customer_info or {}
            if info.get("name") or info.get("phone"):
                self.customer = Customer(
                    id=info.get("id"),
                    name=info.get("name") or "",
                    phone=info.get("phone") or "",
                    email=info.get("email") or None,
                    vip=bool(info.get("isVip")),
                )
            self.license_plate = snapshot.license_plate
            total = snapshot.total if snapshot.total is not None else self.totals().total
            if snapshot.booking_reference is not None:
                self.ledger = self.ledgers.get(snapshot.booking_reference, total, snapshot.paid_amount)
            elif snapshot.paid_amount > ZERO:
                self.ledger = PaymentLedger(target=total, paid=snapshot.paid_amount)
                self.pending_reconcile = True
            state = LifecycleState.from_store_name(snapshot.status) or LifecycleState.UNSTARTED
            self.lifecycle = BookingLifecycle(
                store=self.store,
                projector=self.projector,
                ledger=self.ledger,
                booking_id=snapshot.booking_reference,
                state=state,
            )
            self.view_only = snapshot.view_only

    def summary(self) -> Dict[str, Any]:
        totals = self.totals()
        return {
            "station_id": self.station_id,
            "cart": self.cart.to_list(),
            "customer": self.customer.to_dict() if self.customer else None,
            "license_plate": self.license_plate,
            "totals": totals.to_dict(),
            "ledger": self.ledger.to_dict(),
            "payment_status": self.payment_status().value,
            "booking_id": self.booking_id,
            "state": self.lifecycle.state.value,
            "valid_actions": self.lifecycle.valid_actions(),
            "pending_reconcile": self.pending_reconcile,
            "view_only": self.view_only,
        }


class StationRegistry:
    def __init__(self, store=None):
        self.store = store or bookings_repo
        self.ledgers = LedgerRegistry()
        self._lock = threading.Lock()
        self._stations: Dict[str, Station] = {}

    def get(self, station_id: str) -> Station:
        key = str(station_id)
        with self._lock:
            station = self._stations.get(key)
            if station is None:
                station = Station(key, store=self.store, ledgers=self.ledgers)
                self._stations[key] = station
            return station
