"""
Services 'bookings': validation client et résolution client/véhicule avant création.
"""
import logging
from typing import Optional

from washpos import config
from washpos.errors import TransientStoreError, ValidationError
from washpos.utils.validators import validate_name, validate_phone
from . import repository as bookings_repo
from .models import Customer, CreateResult, EntityRef, Parties

logger = logging.getLogger(__name__)

def validate_customer(name: str, phone: str, email: Optional[str] = None, vip: bool = False) -> Customer:
    """
    Nom et téléphone obligatoires, téléphone au format ^[\\d\\s\\-\\+\\(\\)]+$.
    Soulève ValidationError (code invalid_customer) sinon.
    """
    try:
        clean_name = validate_name(name)
        clean_phone = validate_phone(phone)
    except ValueError as e:
        raise ValidationError(str(e), code="invalid_customer")
    return Customer(id=None, name=clean_name, phone=clean_phone, email=(email or "").strip() or None, vip=bool(vip))

def _resolve(result: CreateResult, what: str, parties_warnings: list) -> EntityRef:
    if result.ok and result.id is not None:
        return EntityRef(id=result.id)
    if not config.ALLOW_PLACEHOLDER_ENTITIES:
        raise TransientStoreError(f"Création {what} impossible: {result.error or 'erreur inconnue'}")
    logger.warning("Création %s en échec (%s), repli sur l'id %s", what, result.error, config.PLACEHOLDER_ENTITY_ID)
    parties_warnings.append(f"{what}_placeholder")
    return EntityRef(id=config.PLACEHOLDER_ENTITY_ID, placeholder=True)

def ensure_parties(customer: Customer, license_plate: str, model: Optional[str] = None, store=None) -> Parties:
    """
    Résout (ou crée) le client et le véhicule d'une future réservation.
    Ordre: véhicule connu par plaque -> client connu par téléphone -> création.
    Une création en échec retombe sur l'id de repli si la politique l'autorise,
    sinon TransientStoreError.
    """
    store = store or bookings_repo
    warnings: list = []

    vehicle = store.find_vehicle_by_plate(license_plate) if license_plate else None
    if vehicle and vehicle.id is not None and vehicle.customer_id is not None:
        return Parties(customer=EntityRef(id=vehicle.customer_id), vehicle=EntityRef(id=vehicle.id), warnings=warnings)

    if customer.id is not None:
        customer_ref = EntityRef(id=customer.id)
    else:
        known = store.find_customer_by_phone(customer.phone)
        if known and known.id is not None:
            customer_ref = EntityRef(id=known.id)
        else:
            created = store.create_customer(customer.name, customer.phone, customer.email, customer.vip)
            customer_ref = _resolve(created, "customer", warnings)

    if vehicle and vehicle.id is not None:
        vehicle_ref = EntityRef(id=vehicle.id)
    elif license_plate:
        created = store.create_vehicle(license_plate, customer_ref.id, model)
        vehicle_ref = _resolve(created, "vehicle", warnings)
    else:
        vehicle_ref = _resolve(CreateResult(ok=False, error="plaque manquante"), "vehicle", warnings)

    return Parties(customer=customer_ref, vehicle=vehicle_ref, warnings=warnings)
