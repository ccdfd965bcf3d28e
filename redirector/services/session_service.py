from __future__ import annotations

import logging
import secrets

from pydantic import ValidationError as PydanticValidationError

from redirector.domain.models import Identity, Session, SessionRecord
from redirector.infra import kv_store, settings
from redirector.infra.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "session:"


class SessionManager:
    def __init__(self, *, store: KeyValueStore | None = None, ttl_seconds: int | None = None) -> None:
        self._store = store or kv_store.get_store()
        self._ttl_seconds = ttl_seconds or settings.get_settings().session_ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    @staticmethod
    def _key(session_id: str) -> str:
        return f"{SESSION_KEY_PREFIX}{session_id}"

    def create(self, identity: Identity) -> str:
        session_id = secrets.token_urlsafe(32)
        record = SessionRecord(email=identity.email, tenant=identity.tenant)
        self._store.put(self._key(session_id), record.model_dump_json(), ttl_seconds=self._ttl_seconds)
        logger.info("session created for %s on tenant %s", identity.email, identity.tenant)
        return session_id

    def resolve(self, session_id: str | None) -> Session | None:
        if not session_id:
            return None
        raw = self._store.get(self._key(session_id))
        if raw is None:
            return None
        try:
            record = SessionRecord.model_validate_json(raw)
        except PydanticValidationError:
            logger.warning("discarding unreadable session record")
            return None
        return Session(
            session_id=session_id,
            email=record.email,
            tenant=record.tenant,
            created_at=record.created_at,
        )

    def revoke(self, session_id: str | None) -> None:
        if not session_id:
            return
        self._store.delete(self._key(session_id))
