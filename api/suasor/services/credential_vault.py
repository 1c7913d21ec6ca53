"""Encryption of client credentials stored on ``clients.encrypted_secret``."""

from __future__ import annotations

import base64
import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

from suasor.core.config import settings

logger = logging.getLogger("suasor.services.credential_vault")

SECRET_FIELDS = ("api_key", "username", "password", "token")


def _derive_key(raw_key: str) -> bytes:
    """Derive a Fernet key from a raw secret."""
    digest = hashlib.sha256(raw_key.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class CredentialVault:
    """Fernet-encrypt client secrets so the database never holds them in clear text."""

    def __init__(self, key_material: str | None = None) -> None:
        self._fernet = Fernet(_derive_key(key_material or settings.credential_vault_key or settings.secret_key))

    def encrypt(self, payload: dict[str, Any]) -> str:
        """Encrypt the non-empty secret fields; an empty payload encrypts to ``""``."""
        secrets = {key: payload[key] for key in SECRET_FIELDS if payload.get(key)}
        if not secrets:
            return ""
        encoded = json.dumps(secrets).encode("utf-8")
        return self._fernet.encrypt(encoded).decode("utf-8")

    def decrypt(self, token: str | None) -> dict[str, Any] | None:
        """Decrypt a stored payload, returning None when it cannot be read."""
        if not token:
            return {}
        try:
            plaintext = self._fernet.decrypt(token.encode("utf-8"))
        except InvalidToken:
            logger.warning("Stored client credentials could not be decrypted")
            return None
        try:
            payload = json.loads(plaintext)
        except json.JSONDecodeError:
            return None
        return payload if isinstance(payload, dict) else None

    def health(self) -> dict[str, Any]:
        probe = {"token": datetime.now(timezone.utc).isoformat()}
        healthy = self.decrypt(self.encrypt(probe)) == probe
        return {
            "status": "online" if healthy else "degraded",
            "dedicated_key": bool(settings.credential_vault_key),
        }


credential_vault = CredentialVault()
