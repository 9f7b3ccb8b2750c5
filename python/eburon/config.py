"""Application settings loaded from environment variables.

Environment Configuration:
    EBURON_ENV: Deployment environment (local | test | staging | prod)

Supabase Configuration (required in all environments):
    SUPABASE_URL: Supabase project URL (e.g., https://xxx.supabase.co)
    SUPABASE_ANON_KEY: Public anon key; row-level security scopes data per user

Gemini Configuration:
    GEMINI_API_KEY: API key for the Generative Language API (required)
    GEMINI_BASE_URL: Override for the API root (tests, proxies)
    CHAT_MODEL / COMPLEX_TASK_MODEL / IMAGE_MODEL / IMAGE_EDIT_MODEL / TTS_MODEL

Persistence Configuration:
    STORAGE_BUCKET: Bucket holding saved images (default: user_images)
    CHAT_HISTORY_TABLE: Table mirroring chat transcripts (default: chat_history)
    IMAGES_TABLE: Table holding image metadata (default: user_images)
    SIGNED_URL_EXPIRY_S: Gallery URL validity in seconds (default: 1 hour)
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Settings are loaded from environment variables.
    Validation rules:
    - SUPABASE_URL, SUPABASE_ANON_KEY and GEMINI_API_KEY are always required
    - THINKING_BUDGET and SIGNED_URL_EXPIRY_S must be >= 1
    """

    eburon_env: Environment = Field(default=Environment.LOCAL, alias="EBURON_ENV")

    # Supabase settings
    supabase_url: str | None = Field(default=None, alias="SUPABASE_URL")
    supabase_anon_key: str | None = Field(default=None, alias="SUPABASE_ANON_KEY")
    storage_bucket: str = Field(default="user_images", alias="STORAGE_BUCKET")
    chat_history_table: str = Field(default="chat_history", alias="CHAT_HISTORY_TABLE")
    images_table: str = Field(default="user_images", alias="IMAGES_TABLE")
    signed_url_expiry_s: int = Field(default=3600, alias="SIGNED_URL_EXPIRY_S")  # 1 hour
    supabase_timeout_s: float = Field(default=30.0, alias="SUPABASE_TIMEOUT_S")

    # Gemini settings
    gemini_api_key: str | None = Field(default=None, alias="GEMINI_API_KEY")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta", alias="GEMINI_BASE_URL"
    )
    gemini_timeout_s: int = Field(default=60, alias="GEMINI_TIMEOUT_S")
    chat_model: str = Field(default="gemini-2.5-flash", alias="CHAT_MODEL")
    complex_task_model: str = Field(default="gemini-2.5-pro", alias="COMPLEX_TASK_MODEL")
    image_model: str = Field(default="imagen-4.0-generate-001", alias="IMAGE_MODEL")
    image_edit_model: str = Field(default="gemini-2.5-flash-image", alias="IMAGE_EDIT_MODEL")
    tts_model: str = Field(default="gemini-2.5-flash-preview-tts", alias="TTS_MODEL")
    tts_voice: str = Field(default="Kore", alias="TTS_VOICE")
    thinking_budget: int = Field(default=32768, alias="THINKING_BUDGET")

    # Optional system instruction source for the chatbot
    knowledge_base_path: str | None = Field(default=None, alias="KNOWLEDGE_BASE_PATH")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure required settings are set and numeric limits are sane."""
        missing = []
        if not self.supabase_url:
            missing.append("SUPABASE_URL")
        if not self.supabase_anon_key:
            missing.append("SUPABASE_ANON_KEY")
        if not self.gemini_api_key:
            missing.append("GEMINI_API_KEY")

        if missing:
            raise ValueError(
                f"Missing required settings: {', '.join(missing)}. "
                "Set these environment variables or add them to .env."
            )

        for name, value in (
            ("THINKING_BUDGET", self.thinking_budget),
            ("SIGNED_URL_EXPIRY_S", self.signed_url_expiry_s),
        ):
            if value < 1:
                raise ValueError(f"{name} must be >= 1 (got {value})")

        return self

    @property
    def normalized_supabase_url(self) -> str:
        """Return Supabase URL with trailing slash stripped."""
        return (self.supabase_url or "").rstrip("/")

    @property
    def is_dev(self) -> bool:
        """Whether console-friendly logging should be used."""
        return self.eburon_env in (Environment.LOCAL, Environment.TEST)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
