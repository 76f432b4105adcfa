"""
Module 'lifecycle': cycle de vie du lavage et garde de paiement à la fin du service.
"""

from .states import LifecycleState, TRANSITIONS, assert_transition, FinishDecision, FinishOutcome
from .machine import BookingLifecycle

__all__ = [
    "LifecycleState",
    "TRANSITIONS",
    "assert_transition",
    "FinishDecision",
    "FinishOutcome",
    "BookingLifecycle",
]
