"""
États du cycle de vie d'un lavage et table des transitions autorisées.
"""
import enum
from dataclasses import dataclass
from typing import Optional

from washpos.errors import InvalidTransitionError


class LifecycleState(str, enum.Enum):
    UNSTARTED = "unstarted"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"
    COLLECTED = "collected"
    CANCELLED = "cancelled"

    @property
    def store_name(self) -> str:
        """Nom de l'état dans la table booking_state."""
        return _STORE_NAMES[self]

    @property
    def is_terminal(self) -> bool:
        return self in (LifecycleState.COLLECTED, LifecycleState.CANCELLED)

    @classmethod
    def from_store_name(cls, name: Optional[str]) -> Optional["LifecycleState"]:
        key = (name or "").strip().lower()
        for state, store_name in _STORE_NAMES.items():
            if store_name == key:
                return state
        try:
            return cls(key)
        except ValueError:
            return None


_STORE_NAMES = {
    LifecycleState.UNSTARTED: "draft",
    LifecycleState.IN_PROGRESS: "in_progress",
    LifecycleState.FINISHED: "departed",
    LifecycleState.COLLECTED: "completed",
    LifecycleState.CANCELLED: "cancelled",
}

# action -> (états de départ, état d'arrivée)
TRANSITIONS = {
    "start": ({LifecycleState.UNSTARTED}, LifecycleState.IN_PROGRESS),
    "finish": ({LifecycleState.IN_PROGRESS}, LifecycleState.FINISHED),
    "collect": ({LifecycleState.FINISHED}, LifecycleState.COLLECTED),
    "cancel": (
        {LifecycleState.UNSTARTED, LifecycleState.IN_PROGRESS, LifecycleState.FINISHED},
        LifecycleState.CANCELLED,
    ),
}


def assert_transition(current: LifecycleState, action: str) -> LifecycleState:
    """Retourne l'état cible ou soulève InvalidTransitionError."""
    if action not in TRANSITIONS:
        raise InvalidTransitionError(f"Action inconnue: {action}", code="unknown_action")
    sources, target = TRANSITIONS[action]
    if current not in sources:
        raise InvalidTransitionError(f"Transition refusée: {current.value} -> {action}")
    return target


class FinishDecision(str, enum.Enum):
    PAY_FIRST = "pay_first"
    FINISH_AND_DEFER = "finish_and_defer"
    CANCEL_FINISH = "cancel_finish"


@dataclass(frozen=True)
class FinishOutcome:
    """
    Réponse de finish():
    - requires_decision: paiement incomplet et aucune décision fournie
    - collect_payment: l'opérateur a choisi d'encaisser d'abord
    - advanced: la transition a eu lieu
    """
    state: LifecycleState
    payment_status: str
    advanced: bool
    requires_decision: bool = False
    collect_payment: bool = False

    def to_dict(self):
        return {
            "state": self.state.value,
            "payment_status": self.payment_status,
            "advanced": self.advanced,
            "requires_decision": self.requires_decision,
            "collect_payment": self.collect_payment,
        }
