"""Tests for the check registry."""

from __future__ import annotations

import pytest

from conftest import make_check
from dbdiag.checks.errors import DuplicateNameError, NotFoundError, RegistryError
from dbdiag.checks.registry import CheckRegistry
from dbdiag.datasource.adapter import Role


@pytest.fixture
def registry() -> CheckRegistry:
    return CheckRegistry([make_check("b"), make_check("a"), make_check("c")])


class TestCheckRegistry:
    def test_list_in_insertion_order(self, registry: CheckRegistry) -> None:
        assert registry.list() == ["b", "a", "c"]
        assert len(registry) == 3

    def test_get_returns_same_object(self, registry: CheckRegistry) -> None:
        first = registry.get("a")
        assert registry.get("a") is first
        assert registry.get("a") is first

    def test_duplicate_rejected(self, registry: CheckRegistry) -> None:
        with pytest.raises(DuplicateNameError):
            registry.register(make_check("a"))
        assert registry.list() == ["b", "a", "c"]

    def test_unknown_name(self, registry: CheckRegistry) -> None:
        with pytest.raises(NotFoundError) as info:
            registry.get("zzz")
        assert info.value.name == "zzz"

    def test_resolve_keeps_request_order(self, registry: CheckRegistry) -> None:
        assert [d.name for d in registry.resolve(["c", "b"])] == ["c", "b"]

    def test_resolve_fails_on_first_unknown(self, registry: CheckRegistry) -> None:
        with pytest.raises(NotFoundError):
            registry.resolve(["a", "missing", "b"])

    def test_sealed_registry_is_read_only(self, registry: CheckRegistry) -> None:
        registry.seal()
        assert registry.sealed
        with pytest.raises(RegistryError):
            registry.register(make_check("d"))
        assert "d" not in registry

    def test_to_dict(self) -> None:
        registry = CheckRegistry([
            make_check("lag", roles=frozenset({Role.REPLICA, Role.PRIMARY})),
        ])
        assert registry.to_dict() == [
            {"name": "lag", "description": "", "roles": ["primary", "replica"]},
        ]
