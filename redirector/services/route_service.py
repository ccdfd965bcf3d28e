from __future__ import annotations

import logging
import re

from redirector.domain.errors import BadPath, MissingField, NotFoundError
from redirector.domain.models import Resolution, Route
from redirector.infra import kv_store
from redirector.infra.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

PATH_PATTERN = re.compile(r"^[a-z0-9_-]+$", re.IGNORECASE | re.ASCII)
VIEWS_KEY_PREFIX = "views:"
# store key prefixes, plus the host label that always means the default tenant
RESERVED_TENANTS = frozenset({"session", "email", "views", "health", "www"})
# shadowed by API endpoints
RESERVED_PATHS = frozenset({"auth", "routes", "accounts", "admin", "status", "healthz", "readyz"})


def is_valid_path(path: str) -> bool:
    return bool(PATH_PATTERN.fullmatch(path))


def is_valid_tenant(tenant: str) -> bool:
    return is_valid_path(tenant) and tenant.lower() == tenant and tenant not in RESERVED_TENANTS


class RouteTable:
    """Per-tenant path -> target mappings over a shared key-value store.

    Routes live under ``<tenant>:<path>``; the tenant is passed to every call
    and nothing is cached between calls.
    """

    def __init__(self, *, store: KeyValueStore | None = None) -> None:
        self._store = store or kv_store.get_store()

    @staticmethod
    def _prefix(tenant: str) -> str:
        return f"{tenant}:"

    @classmethod
    def _key(cls, tenant: str, path: str) -> str:
        return f"{cls._prefix(tenant)}{path}"

    @staticmethod
    def _views_key(tenant: str, path: str) -> str:
        return f"{VIEWS_KEY_PREFIX}{tenant}:{path}"

    def list(self, tenant: str) -> list[Route]:
        prefix = self._prefix(tenant)
        return [
            Route(path=key[len(prefix):], target=value)
            for key, value in self._store.list_prefix(prefix)
        ]

    def put(self, tenant: str, path: str, target: str) -> Route:
        path = path or ""
        target = target or ""
        if not path.strip() or not target.strip():
            raise MissingField("path and target are required")
        if not is_valid_path(path):
            raise BadPath("path must match [a-z0-9_-]+")
        if path.lower() in RESERVED_PATHS:
            raise BadPath(f"path {path.lower()} is reserved")
        route = Route(path=path.lower(), target=target)
        self._store.put(self._key(tenant, route.path), route.target)
        logger.info("route %s -> %s saved", route.path, route.target)
        return route

    def delete(self, tenant: str, path: str) -> bool:
        key = self._key(tenant, (path or "").lower())
        existed = self._store.delete(key)
        self._store.delete(self._views_key(tenant, (path or "").lower()))
        return existed

    def resolve(self, tenant: str, request_path: str) -> Resolution:
        path = (request_path or "").lstrip("/")
        if not path:
            return Resolution(tenant=tenant)

        route, sep, subpath = path.partition("/")
        target = None
        if is_valid_path(route):
            target = self._store.get(self._key(tenant, route.lower()))
        if target is None:
            available = sorted(item.path for item in self.list(tenant))
            raise NotFoundError(route, available)

        if not sep or not subpath:
            return Resolution(tenant=tenant, route=route.lower(), target=target)
        return Resolution(
            tenant=tenant,
            route=route.lower(),
            target=f"{target.rstrip('/')}/{subpath}",
        )

    def record_view(self, tenant: str, path: str) -> None:
        """Best-effort counter bump; concurrent hits may lose increments."""
        key = self._views_key(tenant, path)
        raw = self._store.get(key)
        try:
            current = int(raw) if raw is not None else 0
        except ValueError:
            current = 0
        self._store.put(key, str(current + 1))

    def view_counts(self, tenant: str) -> dict[str, int]:
        prefix = f"{VIEWS_KEY_PREFIX}{tenant}:"
        counts: dict[str, int] = {}
        for key, value in self._store.list_prefix(prefix):
            try:
                counts[key[len(prefix):]] = int(value)
            except ValueError:
                continue
        return counts
