from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode, urlsplit

import httpx
import jwt

from redirector.domain.errors import (
    MissingCode,
    NoAccount,
    ProviderError,
    RedirectorError,
    UpstreamError,
    ValidationError,
)
from redirector.domain.models import Identity
from redirector.domain.state_machine import LoginState, can_login_transition
from redirector.infra import kv_store, settings
from redirector.infra.auth import create_state_token, decode_state_token, new_state_nonce
from redirector.infra.kv_store import KeyValueStore
from redirector.infra.settings import Settings
from redirector.services.route_service import is_valid_tenant
from redirector.services.session_service import SessionManager

logger = logging.getLogger(__name__)

EMAIL_KEY_PREFIX = "email:"
LOGIN_NONCE_COOKIE_NAME = "login_nonce"
OAUTH_SCOPE = "openid email profile"


def is_same_site_url(url: str | None, service_domain: str) -> bool:
    """True for absolute https URLs on the service domain or one of its subdomains."""
    if not url:
        return False
    try:
        parsed = urlsplit(url)
        host = parsed.hostname
        port = parsed.port
    except ValueError:
        return False
    if parsed.scheme != "https" or not host or parsed.username or parsed.password:
        return False
    if port not in (None, 443):
        return False
    domain = service_domain.lower()
    return host == domain or host.endswith(f".{domain}")


def _json_object(response: httpx.Response) -> dict[str, Any]:
    payload = response.json()
    if not isinstance(payload, dict):
        raise ProviderError("identity provider returned an unexpected payload")
    return payload


def tenant_host(tenant: str, config: Settings) -> str:
    if tenant == config.default_tenant:
        return config.service_domain
    return f"{tenant}.{config.service_domain}"


@dataclass
class LoginResult:
    identity: Identity
    session_id: str
    redirect_to: str
    max_age: int


class IdentityGateway:
    def __init__(
        self,
        *,
        store: KeyValueStore | None = None,
        sessions: SessionManager | None = None,
        config: Settings | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._store = store or kv_store.get_store()
        self._sessions = sessions or SessionManager(store=self._store)
        self._config = config or settings.get_settings()
        self._transport = transport
        self.state = LoginState.AWAITING_REDIRECT
        self.return_hint: str | None = None
        self.nonce: str | None = None

    def _advance(self, target: LoginState) -> None:
        if not can_login_transition(self.state, target):
            raise ProviderError(f"login flow cannot move from {self.state} to {target}")
        self.state = target

    def _mark_failed(self) -> None:
        if can_login_transition(self.state, LoginState.FAILED):
            self.state = LoginState.FAILED

    def begin_login(self, return_hint: str | None = None) -> str:
        self.nonce = new_state_nonce()
        state_token = create_state_token(return_hint=return_hint, nonce=self.nonce)
        query = urlencode(
            {
                "client_id": self._config.oauth_client_id,
                "redirect_uri": self._config.callback_url,
                "response_type": "code",
                "scope": OAUTH_SCOPE,
                "state": state_token,
                "prompt": "select_account",
            }
        )
        self._advance(LoginState.AWAITING_CALLBACK)
        return f"{self._config.oauth_authorize_url}?{query}"

    def _decode_return_hint(self, state: str | None, nonce: str | None) -> str | None:
        """Verify the signed state and its binding to the browser that began the login."""
        if not state:
            raise ProviderError("login state is missing")
        try:
            claims = decode_state_token(state)
        except jwt.PyJWTError as exc:
            raise ProviderError("invalid login state") from exc
        expected = claims.get("nonce")
        if not nonce or not isinstance(expected, str) or not hmac.compare_digest(expected, nonce):
            raise ProviderError("login state does not belong to this browser")
        hint = claims.get("ret")
        return hint if isinstance(hint, str) and hint else None

    def _exchange_code(self, client: httpx.Client, code: str) -> str:
        response = client.post(
            self._config.oauth_token_url,
            data={
                "code": code,
                "client_id": self._config.oauth_client_id,
                "client_secret": self._config.oauth_client_secret,
                "redirect_uri": self._config.callback_url,
                "grant_type": "authorization_code",
            },
            headers={"Accept": "application/json"},
        )
        if response.status_code != 200:
            raise ProviderError(f"token exchange failed with status {response.status_code}")
        access_token = _json_object(response).get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ProviderError("token exchange returned no access token")
        return access_token

    def _fetch_email(self, client: httpx.Client, access_token: str) -> str:
        response = client.get(
            self._config.oauth_userinfo_url,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if response.status_code != 200:
            raise ProviderError(f"profile fetch failed with status {response.status_code}")
        email = _json_object(response).get("email")
        if not isinstance(email, str) or not email:
            raise ProviderError("profile has no email")
        return email.strip().lower()

    def fetch_identity_email(self, code: str) -> str:
        try:
            with httpx.Client(
                timeout=self._config.oauth_timeout_seconds,
                transport=self._transport,
            ) as client:
                access_token = self._exchange_code(client, code)
                return self._fetch_email(client, access_token)
        except httpx.TimeoutException as exc:
            raise UpstreamError("identity provider timed out") from exc
        except httpx.HTTPError as exc:
            raise UpstreamError("identity provider unreachable") from exc
        except ValueError as exc:
            raise ProviderError("identity provider returned malformed JSON") from exc

    def resolve_tenant(self, email: str) -> str:
        if not self._config.multi_tenant:
            if self._config.allowed_email and email == self._config.allowed_email:
                return self._config.admin_tenant
            raise NoAccount(email)
        tenant = self._store.get(f"{EMAIL_KEY_PREFIX}{email}")
        if not tenant:
            raise NoAccount(email)
        return tenant

    def complete_login(
        self,
        code: str | None,
        state: str | None,
        error: str | None = None,
        *,
        nonce: str | None = None,
    ) -> Identity:
        if self.state == LoginState.AWAITING_REDIRECT:
            self._advance(LoginState.AWAITING_CALLBACK)
        try:
            if error:
                raise ProviderError(f"identity provider returned an error: {error}")
            if not code:
                raise MissingCode("authorization code is missing")
            self.return_hint = self._decode_return_hint(state, nonce)
            email = self.fetch_identity_email(code)
            tenant = self.resolve_tenant(email)
        except RedirectorError as exc:
            logger.warning("login failed: %s", exc)
            self._mark_failed()
            raise
        self._advance(LoginState.RESOLVED)
        return Identity(email=email, tenant=tenant)

    def post_login_location(self, return_hint: str | None, tenant: str) -> str:
        if return_hint and is_same_site_url(return_hint, self._config.service_domain):
            return return_hint
        return f"https://{tenant_host(tenant, self._config)}/admin"

    def login(
        self,
        code: str | None,
        state: str | None,
        error: str | None = None,
        *,
        nonce: str | None = None,
    ) -> LoginResult:
        identity = self.complete_login(code, state, error, nonce=nonce)
        session_id = self._sessions.create(identity)
        return LoginResult(
            identity=identity,
            session_id=session_id,
            redirect_to=self.post_login_location(self.return_hint, identity.tenant),
            max_age=self._sessions.ttl_seconds,
        )

    def link_account(self, email: str, tenant: str) -> Identity:
        email = (email or "").strip().lower()
        tenant = (tenant or "").strip()
        if not email or not tenant:
            raise ValidationError("email and tenant are required")
        if "@" not in email:
            raise ValidationError("email is not valid")
        if not is_valid_tenant(tenant):
            raise ValidationError("tenant must be lowercase [a-z0-9_-]+ and not reserved")
        self._store.put(f"{EMAIL_KEY_PREFIX}{email}", tenant)
        logger.info("linked %s to tenant %s", email, tenant)
        return Identity(email=email, tenant=tenant)

    def unlink_account(self, email: str) -> bool:
        return self._store.delete(f"{EMAIL_KEY_PREFIX}{(email or '').strip().lower()}")
