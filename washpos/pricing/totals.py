"""
Calcul des totaux (fonction pure).
total = (sous-total - remise VIP) + taxe, taxe calculée sur le montant remisé.
L'arrondi n'intervient qu'une fois, sur le total final.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional, Union

from washpos.config import VIP_DISCOUNT_RATE, TAX_RATE
from washpos.utils.money import ZERO, quantize
from .cart import Cart, CartLine, cart_from_items


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal

    def to_dict(self) -> Dict[str, str]:
        return {
            "subtotal": str(self.subtotal),
            "discount": str(self.discount),
            "tax": str(self.tax),
            "total": str(self.total),
        }


def _subtotal(cart: Union[Cart, Iterable[Any]]) -> Decimal:
    if isinstance(cart, Cart):
        return cart.subtotal
    lines = list(cart or [])
    if lines and all(isinstance(line, CartLine) for line in lines):
        return sum((line.line_subtotal for line in lines), ZERO)
    return cart_from_items(lines).subtotal


def compute_totals(
    cart: Union[Cart, Iterable[Any]],
    vip: bool = False,
    discount_rate: Optional[Decimal] = None,
    tax_rate: Optional[Decimal] = None,
) -> Totals:
    """
    Retourne Totals(subtotal, discount, tax, total).
    - cart: Cart, liste de CartLine ou liste brute de dicts (validée au passage)
    - vip: applique la remise fidélité sur le sous-total
    Exemple: 105000 sans VIP -> tax 10500, total 115500.
    """
    rate_discount = VIP_DISCOUNT_RATE if discount_rate is None else discount_rate
    rate_tax = TAX_RATE if tax_rate is None else tax_rate

    subtotal = _subtotal(cart)
    discount = subtotal * rate_discount if vip else ZERO
    tax = (subtotal - discount) * rate_tax
    total = quantize((subtotal - discount) + tax)
    return Totals(subtotal=subtotal, discount=discount, tax=tax, total=total)
