"""Telegram allowlist — only configured user ids may reach the dispatcher."""

import logging

from telegram import Update

from src.config import settings

logger = logging.getLogger(__name__)

_allowed: frozenset[int] | None = None


def allowed_user_ids() -> frozenset[int]:
    """ALLOWED_USER_IDS, parsed once per process."""
    global _allowed  # noqa: PLW0603
    if _allowed is None:
        _allowed = frozenset(settings.get_allowed_user_ids())
        if not _allowed:
            logger.warning("ALLOWED_USER_IDS is empty; dropping every update")
    return _allowed


def reset_allowed() -> None:
    """Forget the cached allowlist. For tests only."""
    global _allowed  # noqa: PLW0603
    _allowed = None


def is_allowed(update: Update) -> bool:
    """True if the update's sender is on the allowlist.

    Rejected updates get no reply; the sender id is logged at debug level.
    """
    user = update.effective_user
    if user is None:
        return False
    if user.id in allowed_user_ids():
        return True
    logger.debug("Dropping update from unlisted user %s", user.id)
    return False
