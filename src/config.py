"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Dispatcher configuration. All values come from environment variables."""

    # Telegram
    telegram_bot_token: str = Field(default="")
    allowed_user_ids: str = Field(default="")

    # Anthropic (intent classification)
    anthropic_api_key: str = Field(default="")
    claude_model: str = Field(default="claude-sonnet-4-5-20250929")
    llm_timeout_seconds: float = Field(default=30.0)
    llm_max_tokens: int = Field(default=1024)

    # OpenAI (voice transcription)
    openai_api_key: str = Field(default="")
    transcription_model: str = Field(default="whisper-1")
    voice_enabled: bool = Field(default=True)

    # Google OAuth / Calendar / Gmail
    google_client_id: str = Field(default="")
    google_client_secret: str = Field(default="")
    google_redirect_uri: str = Field(default="")
    google_scope: str = Field(
        default="https://mail.google.com/ https://www.googleapis.com/auth/calendar.events"
    )
    google_calendar_id: str = Field(default="primary")

    # Per-session OAuth refresh tokens, written by the OAuth callback
    credentials_path: Path = Field(default=Path("auth_tokens/credentials.json"))

    # Outlook (Microsoft identity platform + Graph)
    outlook_client_id: str = Field(default="")
    outlook_client_secret: str = Field(default="")
    outlook_redirect_uri: str = Field(default="")
    outlook_scope: str = Field(default="offline_access Calendars.ReadWrite")

    # Timeouts for calendar / email calls
    http_timeout_seconds: float = Field(default=15.0)

    # Conversation
    conversation_window_size: int = Field(default=10)

    # Email triage
    escalation_enabled: bool = Field(default=True)
    inbox_poll_interval_seconds: float = Field(default=10.0)
    inbox_batch_size: int = Field(default=10)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_file=_env_file(), env_file_encoding="utf-8", extra="forbid"
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def get_allowed_user_ids(self) -> set[int]:
        """Parse ALLOWED_USER_IDS into a set of ints."""
        if not self.allowed_user_ids.strip():
            return set()
        return {int(uid.strip()) for uid in self.allowed_user_ids.split(",") if uid.strip()}


settings = Settings()
