# ABOUTME: Application configuration using pydantic-settings
# ABOUTME: Loads credentials and context/chunking knobs from environment variables and .env file

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal, Optional


# Fields rendered as *** in the startup summary
CONFIDENTIAL_FIELDS = frozenset({
    'discord_token',
    'anthropic_api_key',
    'langfuse_secret_key',
})


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Required settings
    discord_token: str
    anthropic_api_key: str

    # Bot behaviour
    chat_model: str = 'claude-sonnet-4-5-20250929'
    system_prompt_file: Optional[str] = None
    owner_user_id: Optional[int] = None  # None means anyone may run /answer
    debug_channel_name: Optional[str] = None
    target_search_limit: int = Field(default=5000, gt=0)
    max_pending_drafts: int = Field(default=100, gt=0)

    # Reference card pack
    llm_pack_dir: Optional[str] = None
    llm_pack_file: str = 'harmony.cards.jsonl'
    llm_pack_url: Optional[str] = None
    rag_top_k: int = Field(default=4, gt=0)

    # Conversation window settings
    group_max_gap_sec: int = Field(default=300, ge=0)
    group_max_duration_sec: int = Field(default=1800, ge=0)
    group_max_interposts: int = Field(default=6, ge=0)
    ctx_prepend_before: int = Field(default=3, ge=0)
    ctx_max_messages: int = Field(default=60, gt=0)
    ctx_max_chars: int = Field(default=12000, gt=0)
    ctx_include_interposts: bool = False
    ctx_page_size: int = Field(default=100, gt=0, le=100)  # Discord caps history pages at 100
    ctx_message_preview_chars: int = Field(default=1200, gt=0)

    # Output chunking
    chunk_max_size: int = Field(default=1900, gt=0, le=2000)

    # Logging
    log_level: str = 'INFO'
    log_format: Literal['text', 'json'] = 'text'

    # Langfuse observability settings (optional)
    langfuse_public_key: Optional[str] = None
    langfuse_secret_key: Optional[str] = None
    langfuse_host: str = "https://us.cloud.langfuse.com"

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    def summary(self) -> str:
        """Render settings as comma-separated name=value pairs with secrets masked."""
        parts = []
        for name, value in self.model_dump().items():
            if name in CONFIDENTIAL_FIELDS:
                rendered = '***'
            elif value is None:
                rendered = '<null>'
            elif isinstance(value, bool):
                rendered = 'true' if value else 'false'
            else:
                rendered = str(value)
            parts.append(f"{name}={rendered}")
        return ', '.join(parts)


# Lazy singleton instance
_settings = None


def get_settings() -> Settings:
    """Get or create the settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
