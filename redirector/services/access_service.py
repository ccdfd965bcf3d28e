from __future__ import annotations

import hmac

from redirector.domain.models import AuthMethod, AuthResult
from redirector.infra import settings
from redirector.infra.settings import Settings
from redirector.services.route_service import RESERVED_TENANTS, is_valid_path
from redirector.services.session_service import SessionManager

SESSION_COOKIE_NAME = "session"
API_KEY_HEADER = "X-API-Key"


class AccessControl:
    def __init__(self, *, sessions: SessionManager | None = None, config: Settings | None = None) -> None:
        self._sessions = sessions or SessionManager()
        self._config = config or settings.get_settings()

    def _api_key_matches(self, api_key: str | None) -> bool:
        expected = self._config.api_key
        if not expected or not api_key:
            return False
        return hmac.compare_digest(api_key.encode(), expected.encode())

    def authenticate(self, session_id: str | None, api_key: str | None) -> AuthResult | None:
        session = self._sessions.resolve(session_id)
        if session is not None:
            return AuthResult(
                tenant=session.tenant,
                method=AuthMethod.SESSION,
                email=session.email,
                session_id=session.session_id,
            )
        if self._api_key_matches(api_key):
            return AuthResult(tenant=self._config.admin_tenant, method=AuthMethod.API_KEY)
        return None

    def authorize_tenant_action(self, auth: AuthResult, target_tenant: str) -> bool:
        if auth.method == AuthMethod.API_KEY:
            return target_tenant == self._config.admin_tenant
        return auth.tenant == target_tenant

    def tenant_for_host(self, host: str | None) -> str:
        """Map ``<tenant>.<service-domain>`` to ``<tenant>``; everything else is the default tenant."""
        domain = self._config.service_domain
        host = (host or "").split(":", 1)[0].strip().lower().rstrip(".")
        suffix = f".{domain}"
        if not host.endswith(suffix):
            return self._config.default_tenant
        label = host[: -len(suffix)]
        if "." in label or label in RESERVED_TENANTS or not is_valid_path(label):
            return self._config.default_tenant
        return label
