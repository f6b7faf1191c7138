"""Credential gate — per-session, per-provider OAuth token presence checks."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from urllib.parse import urlencode

from src.bot.errors import MissingCredential
from src.bot.registry import SessionRegistry
from src.config import settings

logger = logging.getLogger(__name__)

GOOGLE_AUTH_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
OUTLOOK_AUTH_ENDPOINT = "https://login.microsoftonline.com/common/oauth2/v2.0/authorize"


class Provider(StrEnum):
    GOOGLE = "google"
    OUTLOOK = "outlook"

    @property
    def label(self) -> str:
        return "Google" if self is Provider.GOOGLE else "Outlook"


_PROVIDER_NAMES = {p.value for p in Provider}


@dataclass(frozen=True)
class OutboundReply:
    """Outbound chat text plus an optional single authorization-link action."""

    text: str
    link_url: str | None = None
    link_label: str | None = None


class CredentialStore:
    """Tokens keyed by (session id, provider).

    Written by the external OAuth callback, either in-process through
    ``set()`` or by writing the JSON token file at *path*
    (``{"<session id>": {"google": "...", "outlook": "..."}}``). The file is
    re-read whenever its mtime changes, so tokens show up on a later turn
    without a restart. The dispatch pipeline only reads.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._tokens: SessionRegistry[dict[Provider, str]] = SessionRegistry(dict)
        self._path = path
        self._mtime: float | None = None

    def _sync_from_disk(self) -> None:
        if self._path is None or not self._path.exists():
            return
        mtime = self._path.stat().st_mtime
        if mtime == self._mtime:
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.exception("Could not read credential file %s", self._path)
            return
        self._mtime = mtime
        if not isinstance(data, dict):
            logger.warning("Credential file %s is not a JSON object", self._path)
            return
        # The file is the source of truth: tokens missing from it are dropped.
        loaded: dict[str, dict[Provider, str]] = {}
        for session_id, tokens in data.items():
            if not isinstance(tokens, dict):
                continue
            for name, token in tokens.items():
                if name in _PROVIDER_NAMES and isinstance(token, str):
                    loaded.setdefault(str(session_id), {})[Provider(name)] = token
        for session_id in self._tokens.keys():
            if session_id not in loaded:
                self._tokens.pop(session_id)
        for session_id, tokens in loaded.items():
            self._tokens.set(session_id, tokens)
        logger.info("Loaded credentials for %d session(s) from %s", len(data), self._path)

    def _save(self) -> None:
        if self._path is None:
            return
        data = {
            sid: {str(p): t for p, t in (self._tokens.get(sid) or {}).items()}
            for sid in self._tokens.keys()
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        self._mtime = self._path.stat().st_mtime

    def get(self, session_id: str, provider: Provider) -> str | None:
        self._sync_from_disk()
        tokens = self._tokens.get(session_id) or {}
        token = tokens.get(Provider(provider))
        if token is None or not token.strip():
            return None
        return token

    def require(self, session_id: str, provider: Provider) -> str:
        """Return the token or raise ``MissingCredential``."""
        token = self.get(session_id, provider)
        if token is None:
            raise MissingCredential(session_id, str(provider))
        return token

    def has(self, session_id: str, provider: Provider) -> bool:
        """True if a non-blank token is on file."""
        return self.get(session_id, provider) is not None

    def set(self, session_id: str, provider: Provider, token: str) -> None:
        self._tokens.get_or_create(session_id)[Provider(provider)] = token
        self._save()
        logger.info("Stored %s credential for session %s", provider, session_id)

    def remove(self, session_id: str, provider: Provider) -> bool:
        tokens = self._tokens.get(session_id)
        if not tokens:
            return False
        removed = tokens.pop(Provider(provider), None) is not None
        if removed:
            self._save()
        return removed

    def sessions_with(self, provider: Provider) -> list[str]:
        """Session ids holding a usable token for *provider*."""
        self._sync_from_disk()
        return [sid for sid in self._tokens.keys() if self.has(sid, provider)]

    def missing(self, session_id: str) -> list[Provider]:
        """Providers the session has not authorized yet."""
        return [p for p in Provider if not self.has(session_id, p)]


def authorization_url(session_id: str, provider: Provider) -> str:
    """Build the provider's consent URL with the session id as ``state``."""
    if Provider(provider) is Provider.OUTLOOK:
        params = {
            "client_id": settings.outlook_client_id,
            "response_type": "code",
            "redirect_uri": settings.outlook_redirect_uri,
            "response_mode": "query",
            "scope": settings.outlook_scope,
            "state": session_id,
        }
        return f"{OUTLOOK_AUTH_ENDPOINT}?{urlencode(params)}"

    params = {
        "response_type": "code",
        "client_id": settings.google_client_id,
        "redirect_uri": settings.google_redirect_uri,
        "scope": settings.google_scope,
        "access_type": "offline",
        "prompt": "consent",
        "state": session_id,
    }
    return f"{GOOGLE_AUTH_ENDPOINT}?{urlencode(params)}"


def authorization_reply(session_id: str, provider: Provider, purpose: str) -> OutboundReply:
    """Reply asking the user to authorize *provider* before *purpose*.

    The URL is part of the text as well as the link action, so transports
    without buttons still show it.
    """
    provider = Provider(provider)
    url = authorization_url(session_id, provider)
    text = f"To {purpose}, please authorize your {provider.label} account first.\n{url}"
    return OutboundReply(text=text, link_url=url, link_label=f"Authorize {provider.label}")
