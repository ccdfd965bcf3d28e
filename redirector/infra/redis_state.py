from __future__ import annotations

from functools import lru_cache

from redis import Redis

from redirector.infra import settings


@lru_cache(maxsize=1)
def get_redis() -> Redis:
    return Redis.from_url(
        settings.get_settings().redis_url,
        decode_responses=True,
        socket_timeout=5,
        socket_connect_timeout=5,
    )


def check_redis_ready() -> bool:
    try:
        return bool(get_redis().ping())
    except Exception:
        return False
