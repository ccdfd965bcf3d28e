from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

SESSION_TTL_DEFAULT = 60 * 60 * 24 * 30


def _parse_health_targets(raw: str) -> dict[str, str]:
    targets: dict[str, str] = {}
    for item in raw.split(","):
        name, sep, url = item.strip().partition("=")
        if not sep or not name.strip() or not url.strip():
            continue
        targets[name.strip()] = url.strip()
    return targets


@dataclass(frozen=True)
class Settings:
    redis_url: str = "redis://redis:6379/0"
    store_backend: str = "redis"
    service_domain: str = "localhost"
    default_tenant: str = "admin"
    admin_tenant: str = "admin"
    api_key: str = ""
    auth_mode: str = "single"
    allowed_email: str = ""
    oauth_client_id: str = ""
    oauth_client_secret: str = ""
    oauth_authorize_url: str = GOOGLE_AUTHORIZE_URL
    oauth_token_url: str = GOOGLE_TOKEN_URL
    oauth_userinfo_url: str = GOOGLE_USERINFO_URL
    oauth_redirect_uri: str = ""
    oauth_timeout_seconds: float = 10.0
    state_secret: str = "dev-secret-change-me"
    session_ttl_seconds: int = SESSION_TTL_DEFAULT
    health_targets: dict[str, str] = field(default_factory=dict)
    health_interval_seconds: float = 60.0
    health_timeout_seconds: float = 5.0
    log_level: str = "INFO"

    @property
    def multi_tenant(self) -> bool:
        return self.auth_mode == "multi"

    @property
    def callback_url(self) -> str:
        return self.oauth_redirect_uri or f"https://{self.service_domain}/auth/callback"

    @property
    def cookie_domain(self) -> str:
        return f".{self.service_domain}"


def load_settings() -> Settings:
    default_tenant = os.getenv("DEFAULT_TENANT", "admin")
    return Settings(
        redis_url=os.getenv("REDIS_URL", "redis://redis:6379/0"),
        store_backend=os.getenv("STORE_BACKEND", "redis"),
        service_domain=os.getenv("SERVICE_DOMAIN", "localhost").lower(),
        default_tenant=default_tenant,
        admin_tenant=os.getenv("ADMIN_TENANT", default_tenant),
        api_key=os.getenv("API_KEY", ""),
        auth_mode=os.getenv("AUTH_MODE", "single"),
        allowed_email=os.getenv("ALLOWED_EMAIL", "").lower(),
        oauth_client_id=os.getenv("OAUTH_CLIENT_ID", ""),
        oauth_client_secret=os.getenv("OAUTH_CLIENT_SECRET", ""),
        oauth_authorize_url=os.getenv("OAUTH_AUTHORIZE_URL", GOOGLE_AUTHORIZE_URL),
        oauth_token_url=os.getenv("OAUTH_TOKEN_URL", GOOGLE_TOKEN_URL),
        oauth_userinfo_url=os.getenv("OAUTH_USERINFO_URL", GOOGLE_USERINFO_URL),
        oauth_redirect_uri=os.getenv("OAUTH_REDIRECT_URI", ""),
        oauth_timeout_seconds=float(os.getenv("OAUTH_TIMEOUT_SECONDS", "10")),
        state_secret=os.getenv("STATE_SECRET", "dev-secret-change-me"),
        session_ttl_seconds=int(os.getenv("SESSION_TTL_SECONDS", str(SESSION_TTL_DEFAULT))),
        health_targets=_parse_health_targets(os.getenv("HEALTH_TARGETS", "")),
        health_interval_seconds=float(os.getenv("HEALTH_INTERVAL_SECONDS", "60")),
        health_timeout_seconds=float(os.getenv("HEALTH_TIMEOUT_SECONDS", "5")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
