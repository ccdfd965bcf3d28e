from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
AUDITED_PATH_PREFIXES = ("/auth/", "/accounts")
AUDIT_CONTEXT_STATE_KEY = "_audit_context"

audit_logger = logging.getLogger("redirector.audit")


def write_audit_log(
    *,
    tenant: str,
    actor: str | None,
    action: str,
    resource: str,
    method: str,
    status_code: int,
    detail: dict[str, Any] | None = None,
) -> None:
    entry = {
        "tenant": tenant,
        "actor": actor,
        "action": action,
        "resource": resource,
        "method": method,
        "status_code": status_code,
        "detail": detail or {},
    }
    audit_logger.info(json.dumps(entry, default=str))


def _deep_merge(base: dict[str, Any], extra: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
            continue
        merged[key] = value
    return merged


def _status_outcome(status_code: int) -> str:
    if status_code >= 500:
        return "error"
    if status_code in {401, 403, 404}:
        return "denied"
    if status_code >= 400:
        return "rejected"
    return "success"


def should_audit_request(method: str, path: str) -> bool:
    if method in WRITE_METHODS:
        return True
    return path.startswith(AUDITED_PATH_PREFIXES)


def set_audit_context(
    request: Request,
    *,
    action: str | None = None,
    resource: str | None = None,
    detail: dict[str, Any] | None = None,
) -> None:
    context_raw = getattr(request.state, AUDIT_CONTEXT_STATE_KEY, {})
    context = dict(context_raw) if isinstance(context_raw, dict) else {}

    if action is not None:
        context["action"] = action
    if resource is not None:
        context["resource"] = resource
    if detail:
        previous_detail = context.get("detail")
        context["detail"] = _deep_merge(previous_detail, detail) if isinstance(previous_detail, dict) else detail

    setattr(request.state, AUDIT_CONTEXT_STATE_KEY, context)


class AuditMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        path = request.url.path
        method = request.method
        context_raw = getattr(request.state, AUDIT_CONTEXT_STATE_KEY, {})
        context = context_raw if isinstance(context_raw, dict) else {}
        if not should_audit_request(method, path) and not context:
            return response

        auth = getattr(request.state, "auth", None)
        tenant = getattr(auth, "tenant", None) or getattr(request.state, "host_tenant", None) or "system"
        actor = getattr(auth, "actor", None)
        raw_action = context.get("action")
        raw_resource = context.get("resource")
        action: str = raw_action if isinstance(raw_action, str) else f"{method}:{path}"
        resource: str = raw_resource if isinstance(raw_resource, str) else path

        base_detail: dict[str, Any] = {
            "who": {
                "tenant": tenant,
                "actor": actor,
            },
            "when": {
                "request_ts": datetime.now(UTC).isoformat(),
            },
            "where": {
                "path": path,
                "host": request.url.hostname,
                "client_ip": request.client.host if request.client is not None else None,
            },
            "what": {
                "action": action,
                "resource": resource,
                "method": method,
            },
            "result": {
                "status_code": response.status_code,
                "outcome": _status_outcome(response.status_code),
            },
        }
        context_detail = context.get("detail")
        detail = _deep_merge(base_detail, context_detail) if isinstance(context_detail, dict) else base_detail

        try:
            write_audit_log(
                tenant=tenant,
                actor=actor,
                action=action,
                resource=resource,
                method=method,
                status_code=response.status_code,
                detail=detail,
            )
        except Exception:
            audit_logger.exception("failed to write audit entry for %s %s", method, path)
        return response
