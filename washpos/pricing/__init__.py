"""
Module 'pricing' (feature-first): point d'entrée public.
Panier de services et calcul des totaux (remise VIP, taxe).
"""

from .cart import Cart, CartLine, make_line, cart_from_items
from .totals import Totals, compute_totals

__all__ = [
    # cart
    "Cart",
    "CartLine",
    "make_line",
    "cart_from_items",
    # totals
    "Totals",
    "compute_totals",
]
