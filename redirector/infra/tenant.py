from __future__ import annotations

from contextvars import ContextVar

tenant_ctx: ContextVar[str | None] = ContextVar("tenant", default=None)
actor_ctx: ContextVar[str | None] = ContextVar("actor", default=None)


def set_request_context(tenant: str | None, actor: str | None) -> None:
    tenant_ctx.set(tenant)
    actor_ctx.set(actor)


def get_tenant() -> str | None:
    return tenant_ctx.get()


def get_actor() -> str | None:
    return actor_ctx.get()
