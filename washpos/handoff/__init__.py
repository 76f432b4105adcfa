"""
Module 'handoff': instantané de session et transport entre contextes d'exécution.
"""

from .snapshot import SessionSnapshot, serialize_session, deserialize_session, read_handoff, to_payload, from_payload
from .store import HandoffStore, get_handoff_store

__all__ = [
    # snapshot
    "SessionSnapshot",
    "serialize_session",
    "deserialize_session",
    "read_handoff",
    "to_payload",
    "from_payload",
    # store
    "HandoffStore",
    "get_handoff_store",
]
