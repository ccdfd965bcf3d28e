from __future__ import annotations

from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse, Response

from redirector.api.deps import Access, HostTenant, get_optional_auth, get_route_table
from redirector.api.templating import templates
from redirector.domain.errors import Forbidden
from redirector.domain.models import AuthResult, HealthRecord, RouteRead
from redirector.services.health_service import HealthMonitor
from redirector.services.route_service import RouteTable

router = APIRouter()


def get_health_monitor() -> HealthMonitor:
    return HealthMonitor()


@router.get("/admin")
def admin(
    request: Request,
    tenant: HostTenant,
    access: Access,
    table: Annotated[RouteTable, Depends(get_route_table)],
    auth: Annotated[AuthResult | None, Depends(get_optional_auth)],
) -> Response:
    if auth is None:
        return RedirectResponse(
            f"/auth/login?return={quote(str(request.url), safe='')}",
            status_code=status.HTTP_307_TEMPORARY_REDIRECT,
        )
    if not access.authorize_tenant_action(auth, tenant):
        raise Forbidden(f"not allowed to manage tenant {tenant}")
    counts = table.view_counts(tenant)
    routes = [
        RouteRead(path=item.path, target=item.target, views=counts.get(item.path, 0))
        for item in sorted(table.list(tenant), key=lambda item: item.path)
    ]
    return templates.TemplateResponse(
        request=request,
        name="admin.html",
        context={"tenant": tenant, "routes": routes, "actor": auth.actor},
    )


@router.get("/status", response_model=list[HealthRecord])
def health_status(monitor: Annotated[HealthMonitor, Depends(get_health_monitor)]) -> list[HealthRecord]:
    return monitor.statuses()
