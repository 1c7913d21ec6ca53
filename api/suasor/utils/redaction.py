"""Scrub client credentials out of log lines and stored error messages."""

from __future__ import annotations

import re

_URL_USERINFO_RE = re.compile(r"([a-z][a-z0-9+.-]*://)([^@/]+)@", re.IGNORECASE)
# Query and form style: api_key=..., X-Plex-Token=..., and the Subsonic t/s/p params.
_QUERY_SECRET_RE = re.compile(
    r"(?i)(token|secret|password|api_key|apikey|x-plex-token|x-api-key|[?&]t|[?&]s|[?&]p)=([^&\s]+)"
)
# Header style: "X-Emby-Token: ...", "X-Api-Key: ...".
_HEADER_SECRET_RE = re.compile(r"(?i)\b(x-[a-z-]*(?:token|key)\s*:\s*)(\S+)")
# MediaBrowser authorization: Token="...".
_QUOTED_TOKEN_RE = re.compile(r'(?i)(token=")([^"]+)(")')
_BEARER_RE = re.compile(r"(?i)(bearer\s+)([A-Za-z0-9._~-]+)")


def redact_secrets(text: str) -> str:
    """Return ``text`` with credentials replaced by ``***``."""
    if not text:
        return text
    redacted = _URL_USERINFO_RE.sub(r"\1***@", text)
    redacted = _QUOTED_TOKEN_RE.sub(r"\1***\3", redacted)
    redacted = _QUERY_SECRET_RE.sub(r"\1=***", redacted)
    redacted = _HEADER_SECRET_RE.sub(r"\1***", redacted)
    redacted = _BEARER_RE.sub(r"\1***", redacted)
    return redacted
