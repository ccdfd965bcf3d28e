from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import RedirectResponse, Response

from redirector.api.deps import get_identity_gateway, get_optional_auth, get_session_manager, require_auth
from redirector.api.templating import templates
from redirector.domain.errors import NoAccount
from redirector.domain.models import AuthResult, WhoAmIResponse
from redirector.infra import settings
from redirector.infra.audit import set_audit_context
from redirector.infra.auth import STATE_EXPIRES_MIN
from redirector.services.access_service import SESSION_COOKIE_NAME
from redirector.services.identity_service import LOGIN_NONCE_COOKIE_NAME, IdentityGateway
from redirector.services.session_service import SessionManager

router = APIRouter()

Gateway = Annotated[IdentityGateway, Depends(get_identity_gateway)]
Sessions = Annotated[SessionManager, Depends(get_session_manager)]


def _set_session_cookie(response: Response, session_id: str, max_age: int) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_id,
        max_age=max_age,
        path="/",
        domain=settings.get_settings().cookie_domain,
        secure=True,
        httponly=True,
        samesite="lax",
    )


def _clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path="/",
        domain=settings.get_settings().cookie_domain,
        secure=True,
        httponly=True,
        samesite="lax",
    )


def _set_nonce_cookie(response: Response, nonce: str) -> None:
    response.set_cookie(
        key=LOGIN_NONCE_COOKIE_NAME,
        value=nonce,
        max_age=STATE_EXPIRES_MIN * 60,
        path="/auth",
        domain=settings.get_settings().cookie_domain,
        secure=True,
        httponly=True,
        samesite="lax",
    )


def _clear_nonce_cookie(response: Response) -> None:
    response.delete_cookie(
        key=LOGIN_NONCE_COOKIE_NAME,
        path="/auth",
        domain=settings.get_settings().cookie_domain,
        secure=True,
        httponly=True,
        samesite="lax",
    )


@router.get("/login")
def login(gateway: Gateway, return_url: Annotated[str | None, Query(alias="return")] = None) -> Response:
    response = RedirectResponse(gateway.begin_login(return_url), status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    _set_nonce_cookie(response, gateway.nonce or "")
    return response


@router.get("/callback")
def callback(
    request: Request,
    gateway: Gateway,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
) -> Response:
    try:
        result = gateway.login(code, state, error, nonce=request.cookies.get(LOGIN_NONCE_COOKIE_NAME))
    except NoAccount as exc:
        set_audit_context(request, action="auth.login", detail={"result": {"outcome": "no_account"}})
        response = templates.TemplateResponse(
            request=request,
            name="no_account.html",
            context={"email": exc.email, "service_domain": settings.get_settings().service_domain},
            status_code=exc.status_code,
        )
        _clear_nonce_cookie(response)
        return response
    set_audit_context(request, action="auth.login", resource=result.identity.tenant)
    response = RedirectResponse(result.redirect_to, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    _set_session_cookie(response, result.session_id, result.max_age)
    _clear_nonce_cookie(response)
    return response


@router.get("/logout")
def logout(
    request: Request,
    sessions: Sessions,
    auth: Annotated[AuthResult | None, Depends(get_optional_auth)],
) -> Response:
    sessions.revoke(request.cookies.get(SESSION_COOKIE_NAME))
    set_audit_context(request, action="auth.logout", resource=auth.tenant if auth else None)
    response = RedirectResponse("/", status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    _clear_session_cookie(response)
    return response


@router.get("/me", response_model=WhoAmIResponse)
def whoami(auth: Annotated[AuthResult, Depends(require_auth)]) -> WhoAmIResponse:
    return WhoAmIResponse(tenant=auth.tenant, email=auth.email, method=auth.method)
