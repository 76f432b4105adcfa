"""
Logique panier pure (pas de BD, pas de HTTP).
Le panier est une liste ordonnée de lignes de service; chaque mutation valide
ses entrées avant de modifier quoi que ce soit.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Dict, Any, Optional

from washpos.errors import ValidationError
from washpos.utils.money import to_decimal, ZERO

# module washpos.pricing.cart

def _parse_quantity(value: Any, allow_zero: bool = False) -> int:
    """
    Quantité entière stricte: refuse bool, float non entier, texte non numérique.
    """
    if isinstance(value, bool):
        raise ValidationError("Quantité invalide", code="invalid_quantity")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError("Quantité invalide", code="invalid_quantity")
        value = int(value)
    try:
        qty = int(str(value).strip()) if not isinstance(value, int) else value
    except (TypeError, ValueError):
        raise ValidationError("Quantité invalide", code="invalid_quantity")
    minimum = 0 if allow_zero else 1
    if qty < minimum:
        raise ValidationError("Quantité invalide", code="invalid_quantity")
    return qty


@dataclass(frozen=True)
class CartLine:
    service_id: str
    unit_price: Decimal
    quantity: int
    name: str = ""

    @property
    def line_subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service_id": self.service_id,
            "name": self.name,
            "unit_price": str(self.unit_price),
            "quantity": self.quantity,
            "subtotal": str(self.line_subtotal),
        }


def make_line(service_id: Any, unit_price: Any, quantity: Any = 1, name: Optional[str] = None) -> CartLine:
    """
    Construit une ligne validée.
    - service_id non vide, prix >= 0, quantité entière >= 1.
    """
    sid = str(service_id or "").strip()
    if not sid:
        raise ValidationError("Service manquant", code="invalid_service")
    price = to_decimal(unit_price, field="unit_price")
    if price < ZERO:
        raise ValidationError("Prix unitaire négatif", code="invalid_unit_price")
    return CartLine(service_id=sid, unit_price=price, quantity=_parse_quantity(quantity), name=(name or "").strip())


@dataclass
class Cart:
    lines: List[CartLine] = field(default_factory=list)

    @property
    def subtotal(self) -> Decimal:
        return sum((line.line_subtotal for line in self.lines), ZERO)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def is_empty(self) -> bool:
        return not self.lines

    def _index(self, service_id: str) -> Optional[int]:
        for i, line in enumerate(self.lines):
            if line.service_id == service_id:
                return i
        return None

    def add_line(self, service_id: Any, unit_price: Any, quantity: Any = 1, name: Optional[str] = None) -> CartLine:
        """Ajoute un service; s'il est déjà présent, sa quantité est incrémentée."""
        new_line = make_line(service_id, unit_price, quantity, name)
        idx = self._index(new_line.service_id)
        if idx is None:
            self.lines.append(new_line)
            return new_line
        current = self.lines[idx]
        merged = CartLine(
            service_id=current.service_id,
            unit_price=current.unit_price,
            quantity=current.quantity + new_line.quantity,
            name=current.name or new_line.name,
        )
        self.lines[idx] = merged
        return merged

    def update_quantity(self, service_id: str, quantity: Any) -> Optional[CartLine]:
        """Quantité 0 => suppression de la ligne (retourne None)."""
        qty = _parse_quantity(quantity, allow_zero=True)
        idx = self._index(str(service_id))
        if idx is None:
            raise ValidationError("Service absent du panier", code="line_not_found")
        if qty == 0:
            del self.lines[idx]
            return None
        current = self.lines[idx]
        self.lines[idx] = CartLine(service_id=current.service_id, unit_price=current.unit_price, quantity=qty, name=current.name)
        return self.lines[idx]

    def remove_line(self, service_id: str) -> bool:
        idx = self._index(str(service_id))
        if idx is None:
            return False
        del self.lines[idx]
        return True

    def clear(self) -> None:
        self.lines = []

    def to_list(self) -> List[Dict[str, Any]]:
        return [line.to_dict() for line in self.lines]


def cart_from_items(items: List[Dict[str, Any]]) -> Cart:
    """
    Construit un panier depuis une liste brute [{service_id|id, unit_price|price, quantity, name}, ...].
    - Accepte le format historique {service: {id, name, price}, quantity, subtotal}.
    - Soulève ValidationError sur la première ligne invalide (aucun panier partiel).
    """
    cart = Cart()
    for it in items or []:
        if not isinstance(it, dict):
            raise ValidationError("Ligne de panier invalide", code="invalid_line")
        service = it.get("service") if isinstance(it.get("service"), dict) else {}
        service_id = it.get("service_id") or it.get("id") or service.get("id")
        price = it.get("unit_price")
        if price is None:
            price = it.get("price", service.get("price"))
        name = it.get("name") or service.get("name")
        cart.add_line(service_id, price, it.get("quantity", 1), name)
    return cart
