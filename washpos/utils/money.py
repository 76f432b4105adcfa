"""
Montants: conversion tolérante vers Decimal et arrondi monétaire unique.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from washpos.errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0")

def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """
    Convertit str|int|float|Decimal en Decimal.
    - Les floats passent par str() pour éviter les artefacts binaires (0.1 -> 0.1).
    - Soulève ValidationError si la valeur est absente, non numérique ou non finie.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"Montant invalide pour {field}", code=f"invalid_{field}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Montant invalide pour {field}", code=f"invalid_{field}")
    if not amount.is_finite():
        raise ValidationError(f"Montant invalide pour {field}", code=f"invalid_{field}")
    return amount

def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)

def format_amount(amount: Decimal) -> str:
    """Représentation texte stable ('115500.00'), utilisée dans les annotations et le transport."""
    return f"{quantize(amount):.2f}"
