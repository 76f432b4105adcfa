"""
Marqueurs de paiement dans les notes libres d'une réservation.

Les anciennes lignes ne portent l'état de paiement que sous forme de texte:
  "Payment Status: unpaid | Cart items: 3"
  "Payment Status: paid | Payment Method: Cash | Amount Paid: $91.30 | Payment Date: ..."
La détection se fait par sous-chaîne, n'importe où dans le texte.
"""
import enum
import re
from datetime import datetime
from decimal import Decimal
from typing import Optional

from washpos.utils.money import format_amount


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"

    @property
    def rank(self) -> int:
        return _RANK[self]

    @classmethod
    def parse(cls, value) -> Optional["PaymentStatus"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return None


_RANK = {PaymentStatus.UNPAID: 0, PaymentStatus.PARTIAL: 1, PaymentStatus.PAID: 2}

PAID_MARKER = "Payment Status: paid"
PARTIAL_MARKER = "Payment Status: partial"
UNPAID_MARKER = "Payment Status: unpaid"
METHOD_MARKER = "Method:"

# "partial" porte le montant déjà encaissé; jamais de "Method:" (sinon lu comme payé)
_PARTIAL_RE = re.compile(r"Payment Status: partial(?: \| Amount Paid: \$[0-9]+(?:\.[0-9]+)?)?")
_UNPAID_RE = re.compile(r"Payment Status: unpaid")
_STATUS_LINE_RE = re.compile(r"Status updated to (\w+) at ")
_EMPTY_FIELD_RE = re.compile(r"\s*\|\s*\|\s*")


def project_from_annotation(notes: Optional[str]) -> Optional[PaymentStatus]:
    """
    Lit l'état depuis les notes.
    - 'Payment Status: paid' ou un marqueur de méthode -> PAID
    - 'Payment Status: partial' -> PARTIAL
    - 'Payment Status: unpaid' -> UNPAID
    - aucun marqueur -> None (l'appelant décide)
    """
    text = notes or ""
    if PAID_MARKER in text or METHOD_MARKER in text:
        return PaymentStatus.PAID
    if PARTIAL_MARKER in text:
        return PaymentStatus.PARTIAL
    if UNPAID_MARKER in text:
        return PaymentStatus.UNPAID
    return None


def _stamp(at: Optional[datetime]) -> str:
    return (at or datetime.now()).isoformat(timespec="seconds")


def paid_line(method: str, amount: Decimal, at: Optional[datetime] = None) -> str:
    return (
        f"{PAID_MARKER} | Payment Method: {(method or 'cash').capitalize()}"
        f" | Amount Paid: ${format_amount(amount)} | Payment Date: {_stamp(at)}"
    )


def partial_line(amount: Decimal) -> str:
    return f"{PARTIAL_MARKER} | Amount Paid: ${format_amount(amount)}"


def initial_annotation(cart_size: int) -> str:
    return f"{UNPAID_MARKER} | Cart items: {int(cart_size)}"


def annotate(
    notes: Optional[str],
    status: PaymentStatus,
    method: str = "cash",
    amount: Decimal = Decimal("0"),
    at: Optional[datetime] = None,
) -> str:
    """
    Écrit l'état de paiement dans les notes sans jamais laisser deux marqueurs contradictoires.
    - remplace sur place un marqueur unpaid/partial existant
    - sinon ajoute une ligne
    - PAID déjà présent: notes inchangées (la ligne de détail n'est écrite qu'une fois)
    """
    text = notes or ""
    status = PaymentStatus.parse(status) or PaymentStatus.UNPAID
    if project_from_annotation(text) == PaymentStatus.PAID:
        return text

    if status == PaymentStatus.PAID:
        replacement = paid_line(method, amount, at)
    elif status == PaymentStatus.PARTIAL:
        replacement = partial_line(amount)
    else:
        replacement = UNPAID_MARKER

    for pattern in (_PARTIAL_RE, _UNPAID_RE):
        if pattern.search(text):
            # Premier marqueur remplacé, les doublons restants supprimés
            text = pattern.sub(replacement, text, count=1)
            return clean_conflicting_markers(text)

    return f"{text}\n{replacement}" if text else replacement


def clean_conflicting_markers(notes: Optional[str]) -> str:
    """
    Supprime les marqueurs devenus faux (ex: 'unpaid' resté à côté de 'paid').
    Seul le marqueur le plus avancé est conservé, les lignes vides sont retirées.
    """
    text = notes or ""
    current = project_from_annotation(text)
    if current is None:
        return text

    lines = []
    seen_current = False
    for line in text.split("\n"):
        cleaned = line
        if current == PaymentStatus.PAID:
            cleaned = _UNPAID_RE.sub("", _PARTIAL_RE.sub("", cleaned))
        elif current == PaymentStatus.PARTIAL:
            cleaned = _UNPAID_RE.sub("", cleaned)
            if _PARTIAL_RE.search(cleaned):
                if seen_current:
                    cleaned = _PARTIAL_RE.sub("", cleaned)
                seen_current = True
        else:
            if _UNPAID_RE.search(cleaned):
                if seen_current:
                    cleaned = _UNPAID_RE.sub("", cleaned)
                seen_current = True
        cleaned = _EMPTY_FIELD_RE.sub(" | ", cleaned).strip().strip("|").strip()
        if cleaned:
            lines.append(cleaned)
    return "\n".join(lines)


def status_line(state_name: str, at: Optional[datetime] = None) -> str:
    return f"Status updated to {state_name} at {_stamp(at)}"


def append_status_line(notes: Optional[str], state_name: str, at: Optional[datetime] = None) -> str:
    line = status_line(state_name, at)
    return f"{notes}\n{line}" if notes else line


def last_recorded_state(notes: Optional[str]) -> Optional[str]:
    found = _STATUS_LINE_RE.findall(notes or "")
    return found[-1] if found else None
