from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, Request

from redirector.domain.errors import Forbidden, Unauthenticated
from redirector.domain.models import AuthMethod, AuthResult
from redirector.infra.tenant import set_request_context
from redirector.services.access_service import SESSION_COOKIE_NAME, AccessControl
from redirector.services.identity_service import IdentityGateway
from redirector.services.route_service import RouteTable
from redirector.services.session_service import SessionManager


def get_access_control() -> AccessControl:
    return AccessControl()


def get_route_table() -> RouteTable:
    return RouteTable()


def get_session_manager() -> SessionManager:
    return SessionManager()


def get_identity_gateway() -> IdentityGateway:
    return IdentityGateway()


Access = Annotated[AccessControl, Depends(get_access_control)]


def get_host_tenant(request: Request, access: Access) -> str:
    tenant = access.tenant_for_host(request.url.hostname)
    request.state.host_tenant = tenant
    return tenant


HostTenant = Annotated[str, Depends(get_host_tenant)]


def get_optional_auth(
    request: Request,
    access: Access,
    x_api_key: Annotated[str | None, Header()] = None,
) -> AuthResult | None:
    auth = access.authenticate(request.cookies.get(SESSION_COOKIE_NAME), x_api_key)
    request.state.auth = auth
    if auth is not None:
        set_request_context(auth.tenant, auth.actor)
    return auth


def require_auth(
    auth: Annotated[AuthResult | None, Depends(get_optional_auth)],
) -> AuthResult:
    if auth is None:
        raise Unauthenticated("authentication required")
    return auth


def require_tenant_access(
    auth: Annotated[AuthResult, Depends(require_auth)],
    tenant: HostTenant,
    access: Access,
) -> AuthResult:
    if not access.authorize_tenant_action(auth, tenant):
        raise Forbidden(f"not allowed to modify tenant {tenant}")
    return auth


def require_api_key(
    auth: Annotated[AuthResult, Depends(require_auth)],
) -> AuthResult:
    if auth.method != AuthMethod.API_KEY:
        raise Forbidden("API key required")
    return auth
