"""External client adapters and the registry that builds them."""

from suasor.clients.base import (
    ClientCapabilities,
    ClientConfig,
    ClientConfigurationError,
    MediaClient,
    QueryOptions,
    UnsupportedMediaTypeError,
)
from suasor.clients.registry import ClientRegistry, build_client_registry

__all__ = [
    "ClientCapabilities",
    "ClientConfig",
    "ClientConfigurationError",
    "ClientRegistry",
    "MediaClient",
    "QueryOptions",
    "UnsupportedMediaTypeError",
    "build_client_registry",
]
