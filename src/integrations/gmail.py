"""Gmail collaborator: send replies and surface recent inbound messages."""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass
from email.mime.text import MIMEText
from email.utils import parseaddr

from bs4 import BeautifulSoup
from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import HttpError

from src.bot.errors import UpstreamUnavailable
from src.integrations.google_auth import gmail_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InboundEmail:
    id: str
    sender_email: str
    subject: str
    body: str
    internal_date: int


def _extract_headers(msg: dict) -> dict[str, str]:
    """Extract headers from a Gmail message into a flat dict."""
    return {
        h["name"]: h["value"]
        for h in msg.get("payload", {}).get("headers", [])
    }


def _decode(data: str) -> str:
    return base64.urlsafe_b64decode(data).decode("utf-8", errors="replace")


def _extract_body(payload: dict) -> str:
    """Walk MIME parts and extract the best text body."""
    parts = payload.get("parts", [])
    if not parts:
        data = payload.get("body", {}).get("data", "")
        if not data:
            return ""
        text = _decode(data)
        if payload.get("mimeType") == "text/html":
            return BeautifulSoup(text, "html.parser").get_text(separator="\n").strip()
        return text

    # Multi-part: prefer text/plain, fall back to text/html
    plain = ""
    html = ""
    for part in parts:
        mime = part.get("mimeType", "")
        if mime.startswith("multipart/"):
            nested = _extract_body(part)
            if nested:
                return nested
        data = part.get("body", {}).get("data", "")
        if not data:
            continue
        if mime == "text/plain" and not plain:
            plain = _decode(data)
        elif mime == "text/html" and not html:
            html = _decode(data)

    if plain:
        return plain
    if html:
        return BeautifulSoup(html, "html.parser").get_text(separator="\n").strip()
    return ""


def _to_inbound(msg: dict) -> InboundEmail:
    headers = _extract_headers(msg)
    _, sender = parseaddr(headers.get("From", ""))
    return InboundEmail(
        id=msg["id"],
        sender_email=sender,
        subject=headers.get("Subject", ""),
        body=_extract_body(msg.get("payload", {})) or msg.get("snippet", ""),
        internal_date=int(msg.get("internalDate", 0)),
    )


class GmailClient:
    """Thin async wrapper over the Gmail API for one refresh token per call."""

    def _send(self, credential: str, raw: str) -> dict:
        service = gmail_service(credential)
        return service.users().messages().send(userId="me", body={"raw": raw}).execute()

    async def send_email(self, credential: str, to: str, subject: str, body: str) -> str:
        """Send a plain-text email. Returns the Gmail message id."""
        message = MIMEText(body)
        message["to"] = to
        message["subject"] = subject
        raw = base64.urlsafe_b64encode(message.as_bytes()).decode()

        try:
            result = await asyncio.to_thread(self._send, credential, raw)
        except (HttpError, GoogleAuthError) as exc:
            raise UpstreamUnavailable(f"Gmail send failed: {exc}") from exc

        logger.info("Sent email to %s: %s", to, result.get("id"))
        return result.get("id", "")

    def _list_recent(self, credential: str, max_results: int) -> list[InboundEmail]:
        service = gmail_service(credential)
        listing = (
            service.users()
            .messages()
            .list(userId="me", maxResults=max_results, labelIds=["INBOX"])
            .execute()
        )
        emails = []
        for ref in listing.get("messages", []):
            msg = service.users().messages().get(userId="me", id=ref["id"], format="full").execute()
            emails.append(_to_inbound(msg))
        return emails

    async def list_recent(self, credential: str, max_results: int = 10) -> list[InboundEmail]:
        """Most recent inbox messages, newest first as Gmail returns them."""
        try:
            return await asyncio.to_thread(self._list_recent, credential, max_results)
        except (HttpError, GoogleAuthError) as exc:
            raise UpstreamUnavailable(f"Gmail listing failed: {exc}") from exc
