"""
Transport des sessions entre contextes (Redis).
- issue()/redeem(): jeton à usage unique, lecture + suppression dans une même transaction MULTI/EXEC
- save()/resume(): session persistée d'un poste (session:<poste>), fromPayment effacé à la première lecture
"""
import logging
import uuid
from typing import Optional

import redis

from washpos.config import HANDOFF_REDIS_URL, HANDOFF_TTL_SECONDS
from .snapshot import SessionSnapshot, deserialize_session, read_handoff, serialize_session

logger = logging.getLogger(__name__)

KEY_PREFIX = "handoff:"
SESSION_PREFIX = "session:"


class HandoffStore:
    def __init__(self, client, ttl_seconds: int = HANDOFF_TTL_SECONDS):
        self.client = client
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(token: str) -> str:
        return f"{KEY_PREFIX}{token}"

    @staticmethod
    def _session_key(station_id: str) -> str:
        return f"{SESSION_PREFIX}{station_id}"

    def issue(self, snapshot: SessionSnapshot) -> str:
        token = uuid.uuid4().hex
        self.client.set(self._key(token), serialize_session(snapshot), ex=self.ttl_seconds)
        return token

    def redeem(self, token: str) -> SessionSnapshot:
        """Jeton inconnu, expiré ou déjà utilisé -> session vide."""
        if not token:
            return SessionSnapshot()
        pipe = self.client.pipeline(transaction=True)
        pipe.get(self._key(token))
        pipe.delete(self._key(token))
        raw, _ = pipe.execute()
        if raw is None:
            logger.info("Jeton de session %s absent ou déjà consommé", token[:8])
        return deserialize_session(raw)

    def save(self, station_id: str, snapshot: SessionSnapshot) -> None:
        self.client.set(self._session_key(station_id), serialize_session(snapshot), ex=self.ttl_seconds)

    def resume(self, station_id: str) -> SessionSnapshot:
        """
        Relit la session persistée du poste (session vide si absente).
        Le blob reste en place; seul l'indicateur fromPayment est effacé après la première lecture.
        """
        key = self._session_key(station_id)
        raw = self.client.get(key)
        snapshot, after = read_handoff(raw)
        if after is not None and after != raw:
            self.client.set(key, after, keepttl=True)
        return snapshot


_store: Optional[HandoffStore] = None

def get_handoff_store() -> HandoffStore:
    global _store
    if _store is None:
        _store = HandoffStore(redis.from_url(HANDOFF_REDIS_URL, decode_responses=True))
    return _store
