from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from redirector.api.deps import HostTenant, get_route_table, require_tenant_access
from redirector.domain.models import (
    AuthResult,
    RouteCreate,
    RouteDeleteResponse,
    RouteListResponse,
    RouteRead,
    RouteWriteResponse,
)
from redirector.infra.audit import set_audit_context
from redirector.services.route_service import RouteTable

router = APIRouter()

Auth = Annotated[AuthResult, Depends(require_tenant_access)]
Table = Annotated[RouteTable, Depends(get_route_table)]


@router.get("", response_model=RouteListResponse)
def list_routes(_auth: Auth, tenant: HostTenant, table: Table) -> RouteListResponse:
    counts = table.view_counts(tenant)
    routes = sorted(table.list(tenant), key=lambda item: item.path)
    return RouteListResponse(
        routes=[
            RouteRead(path=item.path, target=item.target, views=counts.get(item.path, 0))
            for item in routes
        ]
    )


@router.post("", response_model=RouteWriteResponse)
def put_route(
    payload: RouteCreate,
    request: Request,
    _auth: Auth,
    tenant: HostTenant,
    table: Table,
) -> RouteWriteResponse:
    set_audit_context(request, action="route.put", resource=f"{tenant}:{payload.path}")
    route = table.put(tenant, payload.path, payload.target)
    return RouteWriteResponse(path=route.path, target=route.target)


@router.delete("/{path}", response_model=RouteDeleteResponse)
def delete_route(
    path: str,
    request: Request,
    _auth: Auth,
    tenant: HostTenant,
    table: Table,
) -> RouteDeleteResponse:
    set_audit_context(request, action="route.delete", resource=f"{tenant}:{path}")
    existed = table.delete(tenant, path)
    set_audit_context(request, detail={"existed": existed})
    return RouteDeleteResponse(deleted=path.lower())
