"""Emby adapter; Emby serves the same item API as Jellyfin."""

from __future__ import annotations

from suasor.clients.jellyfin import JellyfinClient
from suasor.models.client import ClientType


class EmbyClient(JellyfinClient):
    client_type = ClientType.EMBY

    def _headers(self) -> dict[str, str]:
        return {"accept": "application/json", "X-Emby-Token": self.config.api_key or ""}
