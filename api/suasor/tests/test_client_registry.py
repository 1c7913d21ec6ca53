from __future__ import annotations

import pytest

from suasor.clients.base import ClientCapabilities, ClientConfig, ClientConfigurationError
from suasor.clients.jellyfin import JellyfinClient
from suasor.clients.registry import ClientRegistry, build_client_registry
from suasor.models.client import ClientType
from suasor.models.media import MediaType


def test_builtin_registry_covers_every_client_type() -> None:
    registry = build_client_registry()

    assert set(registry.supported_types()) == set(ClientType)


def test_registry_builds_configured_adapter() -> None:
    registry = build_client_registry()

    adapter = registry.create(3, ClientType.JELLYFIN, ClientConfig(base_url="http://jf.local", api_key="k"))

    assert isinstance(adapter, JellyfinClient)
    assert adapter.client_id == 3
    assert adapter.supports(MediaType.EPISODE)


def test_capabilities_are_declared_per_type() -> None:
    registry = build_client_registry()

    subsonic = registry.capabilities_for(ClientType.SUBSONIC)
    radarr = registry.capabilities_for(ClientType.RADARR)
    tmdb = registry.capabilities_for(ClientType.TMDB)

    assert subsonic.media_types() == [MediaType.ARTIST, MediaType.ALBUM, MediaType.TRACK, MediaType.PLAYLIST]
    assert radarr.media_types() == [MediaType.MOVIE]
    assert tmdb.media_types() == []
    assert tmdb.search is True


def test_unregistered_type_raises() -> None:
    registry = ClientRegistry()
    registry.register(ClientType.JELLYFIN, JellyfinClient, capabilities=ClientCapabilities(movies=True))

    assert registry.capabilities_for(ClientType.JELLYFIN).media_types() == [MediaType.MOVIE]
    with pytest.raises(ClientConfigurationError):
        registry.create(1, ClientType.PLEX, ClientConfig(base_url="http://plex.local", token="t"))
    with pytest.raises(ClientConfigurationError):
        registry.capabilities_for(ClientType.PLEX)


def test_adapter_rejects_missing_credentials() -> None:
    registry = build_client_registry()

    with pytest.raises(ClientConfigurationError):
        registry.create(1, ClientType.RADARR, ClientConfig(base_url="http://radarr.local"))
