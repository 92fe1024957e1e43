import pytest

from api.v1.core.registries import (
    Registry,
    analyzer_registry,
    provider_registry,
)


def test_registry_basic_operations():
    """Test basic registry register, get, list operations."""
    registry = Registry[str]("Test")

    assert registry.list() == []

    registry.register("test_impl", "test_value")
    assert registry.get("test_impl") == "test_value"
    assert registry.list() == ["test_impl"]

    with pytest.raises(KeyError, match="No test implementation registered"):
        registry.get("nonexistent")


def test_registry_freeze():
    registry = Registry[str]("Test")
    registry.register("a", "1")
    registry.freeze()

    assert registry.is_frozen()
    with pytest.raises(RuntimeError, match="registry is frozen"):
        registry.register("b", "2")
    assert registry.get("a") == "1"


def test_render_providers_registered():
    import api.v1.render.registry_init  # noqa: F401

    assert {"mock", "http"} <= set(provider_registry.list())
    assert provider_registry.get("mock").name == "mock"


def test_story_analyzers_registered():
    import api.v1.publishing.registry_init  # noqa: F401

    assert {"stub", "openai"} <= set(analyzer_registry.list())
