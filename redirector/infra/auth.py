from __future__ import annotations

import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from redirector.infra import settings

STATE_ALGORITHM = "HS256"
STATE_EXPIRES_MIN = 10


def new_state_nonce() -> str:
    return secrets.token_urlsafe(16)


def create_state_token(*, return_hint: str | None, nonce: str, expires_minutes: int | None = None) -> str:
    now = datetime.now(UTC)
    expire_delta = timedelta(minutes=expires_minutes or STATE_EXPIRES_MIN)
    payload: dict[str, Any] = {
        "ret": return_hint or "",
        "nonce": nonce,
        "iat": int(now.timestamp()),
        "exp": int((now + expire_delta).timestamp()),
    }
    return jwt.encode(payload, settings.get_settings().state_secret, algorithm=STATE_ALGORITHM)


def decode_state_token(token: str) -> dict[str, Any]:
    decoded = jwt.decode(
        token,
        settings.get_settings().state_secret,
        algorithms=[STATE_ALGORITHM],
    )
    if not isinstance(decoded, dict):
        raise ValueError("Invalid state payload")
    return decoded
