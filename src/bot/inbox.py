"""InboxPoller — feeds new Gmail messages into the router as email-origin messages."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from src.bot.credentials import Provider
from src.bot.messages import Message
from src.config import settings

if TYPE_CHECKING:
    from src.bot.credentials import CredentialStore, OutboundReply
    from src.bot.router import ActionRouter
    from src.integrations.gmail import GmailClient

logger = logging.getLogger(__name__)

SendReply = Callable[[str, "OutboundReply"], Awaitable[None]]


class InboxPoller:
    """Polls Gmail for every session holding a Google credential.

    The first cycle for a session only records the newest message's
    ``internal_date``; later cycles process strictly newer messages,
    oldest first. A failure for one session is logged and never stops
    the loop.

    Args:
        router: Action router that triages each email.
        gmail: Gmail collaborator.
        credentials: Credential store (Google tokens select the sessions).
        send_reply: Delivers an outbound reply to the session's chat.
        interval: Seconds between cycles (default from settings).
    """

    def __init__(
        self,
        router: ActionRouter,
        gmail: GmailClient,
        credentials: CredentialStore,
        send_reply: SendReply,
        interval: float | None = None,
        batch_size: int | None = None,
    ) -> None:
        self._router = router
        self._gmail = gmail
        self._credentials = credentials
        self._send_reply = send_reply
        self._interval = interval if interval is not None else settings.inbox_poll_interval_seconds
        self._batch_size = batch_size or settings.inbox_batch_size
        self._last_seen: dict[str, int] = {}
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("Inbox poller started (interval=%ss)", self._interval)

    async def stop(self) -> None:
        """Cancel the loop. In-flight calls are cancelled best-effort."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Inbox poller stopped")

    async def _loop(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self._interval)

    # -- Polling ---------------------------------------------------------------

    async def poll_once(self) -> int:
        """Run one cycle over all sessions. Returns the number of emails processed."""
        processed = 0
        for session_id in self._credentials.sessions_with(Provider.GOOGLE):
            try:
                processed += await self._poll_session(session_id)
            except Exception:
                logger.exception("Inbox poll failed for session %s", session_id)
        return processed

    async def _poll_session(self, session_id: str) -> int:
        credential = self._credentials.get(session_id, Provider.GOOGLE)
        if credential is None:
            return 0

        if session_id not in self._last_seen:
            latest = await self._gmail.list_recent(credential, max_results=1)
            self._last_seen[session_id] = latest[0].internal_date if latest else 0
            logger.info("Inbox baseline for session %s: %d", session_id, self._last_seen[session_id])
            return 0

        last_seen = self._last_seen[session_id]
        emails = await self._gmail.list_recent(credential, max_results=self._batch_size)
        fresh = sorted(
            (e for e in emails if e.internal_date > last_seen),
            key=lambda e: e.internal_date,
        )

        for email in fresh:
            self._last_seen[session_id] = email.internal_date
            if not email.body.strip():
                continue
            reply = await self._router.handle(
                Message.email(
                    session_id,
                    sender_email=email.sender_email,
                    subject=email.subject,
                    body=email.body,
                )
            )
            if reply is not None:
                await self._send_reply(session_id, reply)
        return len(fresh)
