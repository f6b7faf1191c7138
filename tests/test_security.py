"""Tests for the Telegram allowlist gate."""

from unittest.mock import MagicMock, patch

import pytest

from src.bot.telegram import security


@pytest.fixture(autouse=True)
def _reset_allowlist():
    security.reset_allowed()
    yield
    security.reset_allowed()


def _update(user_id: int | None) -> MagicMock:
    update = MagicMock()
    if user_id is None:
        update.effective_user = None
    else:
        update.effective_user.id = user_id
    return update


def test_listed_user_is_allowed() -> None:
    with patch.object(security.settings, "allowed_user_ids", "111,222"):
        assert security.is_allowed(_update(222)) is True


def test_unlisted_user_is_rejected() -> None:
    with patch.object(security.settings, "allowed_user_ids", "111"):
        assert security.is_allowed(_update(999)) is False


def test_missing_user_is_rejected() -> None:
    with patch.object(security.settings, "allowed_user_ids", "111"):
        assert security.is_allowed(_update(None)) is False


def test_empty_allowlist_rejects_everyone() -> None:
    with patch.object(security.settings, "allowed_user_ids", ""):
        assert security.is_allowed(_update(111)) is False


def test_allowlist_is_cached_until_reset() -> None:
    with patch.object(security.settings, "allowed_user_ids", "111"):
        assert security.allowed_user_ids() == frozenset({111})
    with patch.object(security.settings, "allowed_user_ids", "222"):
        assert security.allowed_user_ids() == frozenset({111})
        security.reset_allowed()
        assert security.allowed_user_ids() == frozenset({222})
