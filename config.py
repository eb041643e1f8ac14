"""Centralized configuration using pydantic-settings."""

from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Chat-completions API used for summarization
    openai_api_key: str = ""
    openai_api_url: str = "https://api.openai.com/v1/chat/completions"
    openai_model: str = "gpt-4o-mini"
    llm_max_tokens: int = 1500
    llm_temperature: float = 0.3
    llm_top_p: float = 1.0
    llm_timeout: int = 45
    llm_max_input_chars: int = 24_000

    # Gmail OAuth2 (token JSON produced by scripts/gmail_auth.py)
    gmail_credentials_json: str = ""
    gmail_token_json: str = ""
    gmail_label: str = "substack"

    # Digest delivery
    digest_recipient: str = ""
    recipient_name: str = ""

    # Run window
    window_hours: int = 24
    max_threads: int = 50
    max_concurrency: int = 1

    # Daily schedule, in local_timezone
    local_timezone: str = "America/New_York"
    generation_hour: int = 8
    generation_minute: int = 0
    scheduler_enabled: bool = True

    # Secret for external cron trigger (e.g. cron-job.org)
    cron_secret: str = ""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()

LOCAL_TZ = ZoneInfo(settings.local_timezone)
