"""Explicit mapping from client types to adapter factories."""

from __future__ import annotations

from typing import Callable

from suasor.clients.base import ClientCapabilities, ClientConfig, ClientConfigurationError, MediaClient
from suasor.clients.emby import EmbyClient
from suasor.clients.jellyfin import JellyfinClient
from suasor.clients.lidarr import LidarrClient
from suasor.clients.plex import PlexClient
from suasor.clients.radarr import RadarrClient
from suasor.clients.sonarr import SonarrClient
from suasor.clients.subsonic import SubsonicClient
from suasor.clients.tmdb import TMDBClient
from suasor.models.client import ClientType

ClientFactory = Callable[[int, ClientConfig], MediaClient]


class ClientRegistry:
    """Builds adapters for configured clients.

    One registry is created at application startup and stored on
    ``app.state``; workers build their own with ``build_client_registry``.
    """

    def __init__(self) -> None:
        self._factories: dict[ClientType, ClientFactory] = {}
        self._capabilities: dict[ClientType, ClientCapabilities] = {}

    def register(
        self,
        client_type: ClientType,
        factory: ClientFactory,
        *,
        capabilities: ClientCapabilities | None = None,
    ) -> None:
        self._factories[client_type] = factory
        declared = capabilities or getattr(factory, "capabilities_template", None)
        if declared is not None:
            self._capabilities[client_type] = declared

    def create(self, client_id: int, client_type: ClientType, config: ClientConfig) -> MediaClient:
        try:
            factory = self._factories[client_type]
        except KeyError as exc:
            raise ClientConfigurationError(f"No adapter registered for {client_type.value}") from exc
        return factory(client_id, config)

    def supported_types(self) -> list[ClientType]:
        return list(self._factories)

    def capabilities_for(self, client_type: ClientType) -> ClientCapabilities:
        if client_type not in self._factories:
            raise ClientConfigurationError(f"No adapter registered for {client_type.value}")
        return self._capabilities.get(client_type, ClientCapabilities())


def build_client_registry() -> ClientRegistry:
    """Return a registry with every built-in adapter."""
    registry = ClientRegistry()
    for adapter in (
        PlexClient,
        JellyfinClient,
        EmbyClient,
        SubsonicClient,
        RadarrClient,
        SonarrClient,
        LidarrClient,
        TMDBClient,
    ):
        registry.register(adapter.client_type, adapter)
    return registry
