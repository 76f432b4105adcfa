import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator

from washpos.handoff import HandoffStore, get_handoff_store
from washpos.pricing import compute_totals
from washpos.utils.rate_limit import optional_rate_limit
from washpos.utils.validators import validate_name, validate_phone
from .service import Station, StationRegistry

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/pos", tags=["POS API"])

_registry = StationRegistry()

def get_registry() -> StationRegistry:
    return _registry

def get_handoff() -> HandoffStore:
    return get_handoff_store()

def get_station(station_id: str, registry: StationRegistry = Depends(get_registry)) -> Station:
    return registry.get(station_id)

Amount = Union[str, int, float]

class TotalsRequest(BaseModel):
    items: List[Dict[str, Any]] = Field(default_factory=list)
    vip: bool = False

class CartLineRequest(BaseModel):
    service_id: str
    unit_price: Amount
    quantity: int = 1
    name: Optional[str] = None

class QuantityRequest(BaseModel):
    quantity: int

class CustomerRequest(BaseModel):
    name: str
    phone: str
    email: Optional[str] = None
    vip: bool = False
    license_plate: Optional[str] = None
    model: Optional[str] = None
    @field_validator("name")
    def name_required(cls, v: str) -> str:
        return validate_name(v)
    @field_validator("phone")
    def phone_format(cls, v: str) -> str:
        return validate_phone(v)

class TenderRequest(BaseModel):
    amount: Amount
    method: str = "cash"

class FinishRequest(BaseModel):
    decision: Optional[str] = None

class HandoffRequest(BaseModel):
    from_payment: bool = False

# module washpos.pos.views
@router.post("/totals")
def totals(req: TotalsRequest):
    """Calcul sans état: {items, vip} -> {subtotal, discount, tax, total}."""
    return compute_totals(req.items, req.vip).to_dict()

@router.get("/stations/{station_id}")
def station_summary(station: Station = Depends(get_station)):
    return station.summary()

@router.post("/stations/{station_id}/cart/lines")
def add_cart_line(req: CartLineRequest, station: Station = Depends(get_station)):
    line = station.add_line(req.service_id, req.unit_price, req.quantity, req.name)
    return {"line": line.to_dict(), "totals": station.totals().to_dict()}

@router.patch("/stations/{station_id}/cart/lines/{service_id}")
def update_cart_line(service_id: str, req: QuantityRequest, station: Station = Depends(get_station)):
    """Quantité 0: la ligne est retirée du panier."""
    line = station.update_line(service_id, req.quantity)
    return {"line": line.to_dict() if line else None, "totals": station.totals().to_dict()}

@router.delete("/stations/{station_id}/cart/lines/{service_id}")
def remove_cart_line(service_id: str, station: Station = Depends(get_station)):
    removed = station.remove_line(service_id)
    return {"removed": removed, "totals": station.totals().to_dict()}

@router.delete("/stations/{station_id}/cart")
def clear_cart(station: Station = Depends(get_station)):
    station.clear_cart()
    return {"cart": [], "totals": station.totals().to_dict()}

@router.post("/stations/{station_id}/customer")
def set_customer(req: CustomerRequest, station: Station = Depends(get_station)):
    customer = station.set_customer(req.name, req.phone, req.email, req.vip, req.license_plate, req.model)
    return {"customer": customer.to_dict(), "license_plate": station.license_plate, "totals": station.totals().to_dict()}

@router.get("/stations/{station_id}/totals")
def station_totals(station: Station = Depends(get_station)):
    return station.totals().to_dict()

@router.post(
    "/stations/{station_id}/payments/tender",
    dependencies=[Depends(optional_rate_limit(times=30, seconds=60))],
)
def tender(req: TenderRequest, station: Station = Depends(get_station)):
    """
    Encaisse un montant.
    - Réponse: {accepted, paid, remaining, change, payment_status, pending_reconcile}
    - 400 si montant <= 0, panier vide, session en lecture seule ou déjà payée
    """
    return station.tender(req.amount, req.method)

@router.post("/stations/{station_id}/payments/reconcile")
def reconcile(station: Station = Depends(get_station)):
    result = station.reconcile()
    return {
        "payment_status": result.status.value,
        "written": result.written,
        "transaction": result.transaction.to_dict() if result.transaction else None,
    }

@router.post("/stations/{station_id}/lifecycle/start")
def lifecycle_start(station: Station = Depends(get_station)):
    state = station.start()
    return {"state": state.value, "booking_id": station.booking_id, "pending_reconcile": station.pending_reconcile}

@router.post("/stations/{station_id}/lifecycle/finish")
def lifecycle_finish(req: Optional[FinishRequest] = None, station: Station = Depends(get_station)):
    """
    Sans décision et paiement incomplet: requires_decision=true, rien n'est écrit.
    Décisions: pay_first | finish_and_defer | cancel_finish.
    """
    outcome = station.finish(req.decision if req else None)
    return outcome.to_dict()

@router.post("/stations/{station_id}/lifecycle/collect")
def lifecycle_collect(station: Station = Depends(get_station)):
    """Remise du véhicule: la vente est close et le poste repart sur une session vide."""
    booking_id = station.booking_id
    state = station.collect()
    return {"state": state.value, "booking_id": booking_id}

@router.post("/stations/{station_id}/lifecycle/cancel")
def lifecycle_cancel(station: Station = Depends(get_station)):
    booking_id = station.booking_id
    state = station.cancel()
    return {"state": state.value, "booking_id": booking_id}

@router.post("/stations/{station_id}/handoff")
def issue_handoff(req: Optional[HandoffRequest] = None, station: Station = Depends(get_station),
                  store: HandoffStore = Depends(get_handoff)):
    snapshot = station.export_snapshot(from_payment=bool(req and req.from_payment))
    token = store.issue(snapshot)
    return {"token": token, "ttl_seconds": store.ttl_seconds}

@router.post("/stations/{station_id}/handoff/{token}/redeem")
def redeem_handoff(token: str, station: Station = Depends(get_station),
                   store: HandoffStore = Depends(get_handoff)):
    """Jeton à usage unique: une seconde utilisation restaure une session vide."""
    snapshot = store.redeem(token)
    station.restore_snapshot(snapshot)
    return {"restored": not snapshot.is_empty, "from_payment": snapshot.from_payment, "station": station.summary()}

@router.post("/stations/{station_id}/session")
def save_session(req: Optional[HandoffRequest] = None, station: Station = Depends(get_station),
                 store: HandoffStore = Depends(get_handoff)):
    store.save(station.station_id, station.export_snapshot(from_payment=bool(req and req.from_payment)))
    return {"saved": True, "ttl_seconds": store.ttl_seconds}

@router.post("/stations/{station_id}/session/resume")
def resume_session(station: Station = Depends(get_station), store: HandoffStore = Depends(get_handoff)):
    """
    Recharge la session persistée du poste.
    from_payment=true uniquement à la première lecture après un retour de l'écran de paiement.
    """
    snapshot = store.resume(station.station_id)
    station.restore_snapshot(snapshot)
    return {"restored": not snapshot.is_empty, "from_payment": snapshot.from_payment, "station": station.summary()}
