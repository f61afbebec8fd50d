"""
Tests for the named-component registry.

Covers registration, default rules and resolution order.
"""

import pytest

from bearer.exceptions import NotRegisteredError
from bearer.registry import Registry


class TestRegistration:
    """Tests for register/get/has."""

    def test_get_returns_registered_impl(self):
        registry: Registry[str] = Registry("widget")
        registry.register("a", "impl-a")
        assert registry.get("a") == "impl-a"
        assert registry.has("a")
        assert "a" in registry
        assert len(registry) == 1

    def test_get_unknown_raises_not_registered(self):
        registry: Registry[str] = Registry("widget")
        with pytest.raises(NotRegisteredError) as exc_info:
            registry.get("missing")
        assert exc_info.value.kind == "widget"
        assert exc_info.value.name == "missing"

    def test_names_preserve_registration_order(self):
        registry: Registry[int] = Registry("number")
        for i, name in enumerate(["one", "two", "three"]):
            registry.register(name, i)
        assert registry.names() == ["one", "two", "three"]


class TestDefaults:
    """Tests for the default-selection rule."""

    def test_first_registered_becomes_default(self):
        registry: Registry[str] = Registry("widget")
        registry.register("first", "1")
        registry.register("second", "2")
        assert registry.default() == "1"
        assert registry.default_name == "first"

    def test_promote_first_disabled_leaves_no_default(self):
        registry: Registry[str] = Registry("widget", promote_first=False)
        registry.register("first", "1")
        with pytest.raises(NotRegisteredError) as exc_info:
            registry.default()
        assert exc_info.value.name is None
        assert "No default widget registered" in str(exc_info.value)

    def test_empty_registry_has_no_default(self):
        with pytest.raises(NotRegisteredError):
            Registry("widget").default()

    def test_constructor_default_wins_once_registered(self):
        registry: Registry[str] = Registry("widget", default="second")
        registry.register("first", "1")
        registry.register("second", "2")
        assert registry.default() == "2"

    def test_set_default(self):
        registry: Registry[str] = Registry("widget")
        registry.register("first", "1")
        registry.register("second", "2")
        registry.set_default("second")
        assert registry.default() == "2"

    def test_set_default_unknown_raises(self):
        registry: Registry[str] = Registry("widget")
        with pytest.raises(NotRegisteredError):
            registry.set_default("missing")


class TestResolution:
    """Explicit name -> configured name -> registry default."""

    @pytest.fixture
    def registry(self) -> Registry[str]:
        registry: Registry[str] = Registry("widget")
        registry.register("a", "impl-a")
        registry.register("b", "impl-b")
        registry.register("c", "impl-c")
        return registry

    def test_explicit_name_wins(self, registry: Registry[str]):
        assert registry.resolve("c", configured="b") == "impl-c"

    def test_configured_name_used_without_explicit(self, registry: Registry[str]):
        assert registry.resolve(None, configured="b") == "impl-b"

    def test_registry_default_used_last(self, registry: Registry[str]):
        assert registry.resolve() == "impl-a"

    def test_unknown_explicit_name_raises(self, registry: Registry[str]):
        with pytest.raises(NotRegisteredError):
            registry.resolve("zzz", configured="b")

    def test_unknown_configured_name_raises(self, registry: Registry[str]):
        with pytest.raises(NotRegisteredError):
            registry.resolve(None, configured="zzz")

    def test_resolve_name(self, registry: Registry[str]):
        assert registry.resolve_name(None, configured="b") == "b"
        assert registry.resolve_name() == "a"
