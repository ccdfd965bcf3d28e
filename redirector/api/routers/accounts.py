from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from redirector.api.deps import get_identity_gateway, require_api_key
from redirector.domain.models import (
    AccountLinkRequest,
    AccountLinkResponse,
    AccountUnlinkResponse,
    AuthResult,
)
from redirector.infra.audit import set_audit_context
from redirector.services.identity_service import IdentityGateway

router = APIRouter()

Admin = Annotated[AuthResult, Depends(require_api_key)]
Gateway = Annotated[IdentityGateway, Depends(get_identity_gateway)]


@router.post("", response_model=AccountLinkResponse)
def link_account(
    payload: AccountLinkRequest,
    request: Request,
    _admin: Admin,
    gateway: Gateway,
) -> AccountLinkResponse:
    identity = gateway.link_account(payload.email, payload.tenant)
    set_audit_context(request, action="account.link", resource=identity.email)
    return AccountLinkResponse(email=identity.email, tenant=identity.tenant)


@router.delete("/{email}", response_model=AccountUnlinkResponse)
def unlink_account(email: str, request: Request, _admin: Admin, gateway: Gateway) -> AccountUnlinkResponse:
    set_audit_context(request, action="account.unlink", resource=email.lower())
    gateway.unlink_account(email)
    return AccountUnlinkResponse(deleted=email.lower())
