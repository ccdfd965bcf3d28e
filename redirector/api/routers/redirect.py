from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.responses import RedirectResponse, Response

from redirector.api.deps import HostTenant, get_route_table
from redirector.api.templating import templates
from redirector.services.route_service import RouteTable

logger = logging.getLogger(__name__)

router = APIRouter()

Table = Annotated[RouteTable, Depends(get_route_table)]


def record_view(table: RouteTable, tenant: str, route: str) -> None:
    try:
        table.record_view(tenant, route)
    except Exception:
        logger.warning("dropping view count for %s:%s", tenant, route, exc_info=True)


@router.get("/{request_path:path}")
def resolve(
    request_path: str,
    request: Request,
    tenant: HostTenant,
    table: Table,
    background_tasks: BackgroundTasks,
) -> Response:
    resolution = table.resolve(tenant, request_path)
    if resolution.is_landing:
        routes = sorted(table.list(tenant), key=lambda item: item.path)
        return templates.TemplateResponse(
            request=request,
            name="landing.html",
            context={"host": request.url.hostname, "routes": routes},
        )
    background_tasks.add_task(record_view, table, tenant, resolution.route or "")
    return RedirectResponse(resolution.target or "/", status_code=status.HTTP_307_TEMPORARY_REDIRECT)
