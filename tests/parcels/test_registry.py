"""
Tests for the adapter registry.
"""
import pytest

from src.parcels.adapters.manatee import ManateePaoAdapter
from src.parcels.adapters.sarasota import SarasotaPaoAdapter
from src.parcels.errors import UnknownSourceError
from src.parcels.registry import DEFAULT_SOURCE_KEY, AdapterRegistry, build_default_registry
from tests.parcels.fakes import make_session_manager


@pytest.fixture
def registry():
    manager, _, _ = make_session_manager()
    return build_default_registry(manager)


class TestAdapterRegistry:
    """Tests for AdapterRegistry."""

    def test_default_sources(self, registry):
        """Test that both county adapters are registered."""
        assert registry.list_registered() == ["fl-manatee-pa", "fl-sarasota-pa"]
        assert isinstance(registry.get("fl-manatee-pa"), ManateePaoAdapter)
        assert isinstance(registry.get("fl-sarasota-pa"), SarasotaPaoAdapter)

    def test_adapters_share_session(self, registry):
        """Test that every adapter drives the same browser session."""
        manatee = registry.get("fl-manatee-pa")
        sarasota = registry.get("fl-sarasota-pa")

        assert manatee.scraper.session_manager is sarasota.scraper.session_manager

    def test_lazy_and_cached(self):
        """Test that a factory runs on first access only."""
        calls = []
        registry = AdapterRegistry()
        registry.register("x", lambda: calls.append(1) or object())

        assert calls == []
        first = registry.get("x")
        second = registry.get("x")

        assert first is second
        assert calls == [1]

    def test_reregister_replaces_instance(self):
        """Test that registering a key again drops the cached adapter."""
        registry = AdapterRegistry()
        registry.register("x", lambda: "old")
        registry.get("x")
        registry.register("x", lambda: "new")

        assert registry.get("x") == "new"

    def test_unknown_source(self, registry):
        """Test that an unregistered key raises with the known keys listed."""
        with pytest.raises(UnknownSourceError) as exc_info:
            registry.get("fl-nowhere-pa")

        assert exc_info.value.source_key == "fl-nowhere-pa"
        assert "fl-manatee-pa" in str(exc_info.value)
        assert isinstance(exc_info.value, KeyError)

    def test_list_sources(self, registry):
        """Test source discovery output."""
        sources = registry.list_sources()

        assert [s.key for s in sources] == ["fl-manatee-pa", "fl-sarasota-pa"]
        assert sources[0].display_name == "Manatee County Property Appraiser"
        assert sources[1].config.county_fips == "115"


class TestSourceKeyResolution:
    """Tests for default and explicit source keys."""

    def test_default(self, registry):
        """Test that no key resolves to the default source."""
        assert registry.resolve_source_key(None) == DEFAULT_SOURCE_KEY

    def test_configured_default(self):
        """Test that a registered configured default is used."""
        manager, _, _ = make_session_manager()
        registry = build_default_registry(manager)
        registry._default_source = "fl-sarasota-pa"

        assert registry.resolve_source_key() == "fl-sarasota-pa"

    def test_unregistered_default_falls_back(self):
        """Test that an unknown configured default falls back to Manatee."""
        registry = AdapterRegistry(default_source="fl-nowhere-pa")

        assert registry.default_source_key() == DEFAULT_SOURCE_KEY

    def test_explicit_key(self, registry):
        """Test that a registered key is returned unchanged."""
        assert registry.resolve_source_key("fl-sarasota-pa") == "fl-sarasota-pa"

    def test_explicit_unknown_key(self, registry):
        """Test that an explicit unknown key is an error, not the default."""
        with pytest.raises(UnknownSourceError):
            registry.resolve_source_key("fl-nowhere-pa")
