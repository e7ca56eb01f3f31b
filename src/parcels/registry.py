"""
Adapter Registry

Maps source keys to adapter factories. Adapters are built lazily on first
use and cached, one instance per registry. The registry is an ordinary
object: the API and CLI build one at startup, tests build their own.
"""
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel

from config.settings import settings
from src.parcels.adapters.base import ParcelSourceAdapter
from src.parcels.adapters.manatee import ManateePaoAdapter
from src.parcels.adapters.sarasota import SarasotaPaoAdapter
from src.parcels.browser.session import BrowserSessionManager
from src.parcels.errors import UnknownSourceError
from src.parcels.models.source import SourceConfig
from src.parcels.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_SOURCE_KEY = "fl-manatee-pa"

AdapterFactory = Callable[[], ParcelSourceAdapter]


class SourceInfo(BaseModel):
    key: str
    display_name: str
    config: SourceConfig


class AdapterRegistry:
    """
    Source key -> adapter factory.

    Args:
        default_source: Key used when a request names no source. Falls back
            to ``fl-manatee-pa`` when unset or unregistered.
    """

    def __init__(self, default_source: Optional[str] = None):
        self._factories: Dict[str, AdapterFactory] = {}
        self._instances: Dict[str, ParcelSourceAdapter] = {}
        self._default_source = default_source

    def register(self, key: str, factory: AdapterFactory) -> None:
        if key in self._factories:
            logger.warning("parcel_adapter_reregistered", source_key=key)
            self._instances.pop(key, None)
        self._factories[key] = factory
        logger.debug("parcel_adapter_registered", source_key=key)

    def has(self, key: str) -> bool:
        return key in self._factories

    def get(self, key: str) -> ParcelSourceAdapter:
        """
        Adapter for ``key``, created on first access.

        Raises:
            UnknownSourceError: No factory registered for ``key``
        """
        adapter = self._instances.get(key)
        if adapter is not None:
            return adapter

        factory = self._factories.get(key)
        if factory is None:
            raise UnknownSourceError(key, self.list_registered())

        adapter = factory()
        self._instances[key] = adapter
        logger.info("parcel_adapter_created", source_key=key, adapter=type(adapter).__name__)
        return adapter

    def list_registered(self) -> List[str]:
        return list(self._factories)

    def list_sources(self) -> List[SourceInfo]:
        """Registered sources with their configs, for discovery."""
        sources = []
        for key in self._factories:
            adapter = self.get(key)
            sources.append(SourceInfo(key=adapter.key, display_name=adapter.display_name, config=adapter.config))
        return sources

    def default_source_key(self) -> str:
        configured = self._default_source or settings.parcel_default_source
        if configured and self.has(configured):
            return configured
        return DEFAULT_SOURCE_KEY

    def resolve_source_key(self, key: Optional[str] = None) -> str:
        """
        ``key`` itself when registered, the default when omitted.

        Raises:
            UnknownSourceError: ``key`` was given but is not registered
        """
        if not key:
            return self.default_source_key()
        if not self.has(key):
            raise UnknownSourceError(key, self.list_registered())
        return key


def build_default_registry(session_manager: Optional[BrowserSessionManager] = None) -> AdapterRegistry:
    """Registry with the Manatee and Sarasota PAO adapters sharing one browser session."""
    session_manager = session_manager or BrowserSessionManager()
    registry = AdapterRegistry()
    registry.register(ManateePaoAdapter.key, lambda: ManateePaoAdapter(session_manager))
    registry.register(SarasotaPaoAdapter.key, lambda: SarasotaPaoAdapter(session_manager))
    return registry
