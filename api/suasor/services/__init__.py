from . import (
    client_service,
    credential_vault,
    media_service,
    reconciliation_service,
    sync_service,
)

__all__ = [
    "client_service",
    "credential_vault",
    "media_service",
    "reconciliation_service",
    "sync_service",
]
