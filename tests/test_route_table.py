from __future__ import annotations

import pytest

from redirector.domain.errors import BadPath, MissingField, NotFoundError
from redirector.infra.kv_store import MemoryKeyValueStore
from redirector.services.route_service import RouteTable, is_valid_path, is_valid_tenant


@pytest.fixture()
def table() -> RouteTable:
    return RouteTable(store=MemoryKeyValueStore())


def test_routes_are_isolated_between_tenants(table: RouteTable) -> None:
    table.put("alice", "fd", "https://alice.example/frontdoor/")

    assert [item.path for item in table.list("alice")] == ["fd"]
    assert table.list("bob") == []
    with pytest.raises(NotFoundError) as exc_info:
        table.resolve("bob", "fd")
    assert exc_info.value.available == []


def test_tenant_prefix_does_not_leak_into_longer_tenant_names(table: RouteTable) -> None:
    table.put("al", "docs", "https://al.example/")
    table.put("alice", "fd", "https://alice.example/")

    assert [item.path for item in table.list("al")] == ["docs"]


def test_exact_match_returns_target_verbatim(table: RouteTable) -> None:
    table.put("alice", "fd", "https://example.com/x/")

    resolution = table.resolve("alice", "fd")
    assert resolution.route == "fd"
    assert resolution.target == "https://example.com/x/"
    assert table.resolve("alice", "/fd/").target == "https://example.com/x/"


def test_subpath_is_appended_after_collapsing_trailing_slash(table: RouteTable) -> None:
    table.put("alice", "route", "https://x/y/")
    table.put("alice", "bare", "https://x/z")

    assert table.resolve("alice", "route/a/b").target == "https://x/y/a/b"
    assert table.resolve("alice", "/bare/api/v1?").target == "https://x/z/api/v1?"


def test_subpath_is_carried_verbatim(table: RouteTable) -> None:
    table.put("alice", "fd", "https://x/y/")

    assert table.resolve("alice", "fd/../secret/%2e").target == "https://x/y/../secret/%2e"


def test_empty_path_resolves_to_landing_view(table: RouteTable) -> None:
    resolution = table.resolve("alice", "")
    assert resolution.is_landing
    assert resolution.target is None
    assert table.resolve("alice", "/").is_landing


def test_unknown_route_reports_attempted_name_and_available_routes(table: RouteTable) -> None:
    table.put("alice", "fd", "https://x/")
    table.put("alice", "docs", "https://y/")

    with pytest.raises(NotFoundError) as exc_info:
        table.resolve("alice", "missing/deep/path")
    assert exc_info.value.route == "missing"
    assert exc_info.value.available == ["docs", "fd"]
    assert exc_info.value.to_body()["error"] == "Not found: /missing"


def test_paths_are_case_insensitive(table: RouteTable) -> None:
    route = table.put("alice", "Front-Door", "https://x/")

    assert route.path == "front-door"
    assert table.resolve("alice", "FRONT-DOOR").target == "https://x/"


def test_put_overwrites_existing_route(table: RouteTable) -> None:
    table.put("alice", "fd", "https://old/")
    table.put("alice", "fd", "https://new/")

    assert [(item.path, item.target) for item in table.list("alice")] == [("fd", "https://new/")]


@pytest.mark.parametrize("path", ["../etc", "a b", "a/b", "a:b", "ü", " fd ", "fd\n"])
def test_put_rejects_bad_paths(table: RouteTable, path: str) -> None:
    with pytest.raises(BadPath):
        table.put("alice", path, "https://x/")


def test_put_rejects_reserved_paths(table: RouteTable) -> None:
    with pytest.raises(BadPath):
        table.put("alice", "routes", "https://x/")


def test_put_stores_target_verbatim(table: RouteTable) -> None:
    route = table.put("alice", "fd", " https://x/ ")

    assert route.target == " https://x/ "
    assert table.list("alice")[0].target == " https://x/ "


@pytest.mark.parametrize(("path", "target"), [("", "https://x/"), ("fd", ""), ("", ""), ("  ", "https://x/"), ("fd", "  ")])
def test_put_requires_both_fields(table: RouteTable, path: str, target: str) -> None:
    with pytest.raises(MissingField):
        table.put("alice", path, target)


def test_path_syntax_rules() -> None:
    assert is_valid_path("front-door_2")
    assert is_valid_path("FD")
    assert not is_valid_path("")
    assert not is_valid_path("../etc")
    assert not is_valid_path("a b")
    assert not is_valid_path("fd\n")


def test_tenant_name_rules() -> None:
    assert is_valid_tenant("alice")
    assert not is_valid_tenant("Alice")
    assert not is_valid_tenant("session")
    assert not is_valid_tenant("www")
    assert not is_valid_tenant("")


def test_delete_is_idempotent(table: RouteTable) -> None:
    table.put("alice", "fd", "https://x/")

    assert table.delete("alice", "fd") is True
    assert table.delete("alice", "fd") is False
    assert table.delete("alice", "never-existed") is False
    with pytest.raises(NotFoundError):
        table.resolve("alice", "fd")


def test_view_counts_are_tracked_per_tenant(table: RouteTable) -> None:
    table.put("alice", "fd", "https://x/")
    table.record_view("alice", "fd")
    table.record_view("alice", "fd")
    table.record_view("bob", "fd")

    assert table.view_counts("alice") == {"fd": 2}
    assert table.view_counts("bob") == {"fd": 1}

    table.delete("alice", "fd")
    assert table.view_counts("alice") == {}
