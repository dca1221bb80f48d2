"""Configuration management for the Pink Brief Engine."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    # Environment variables should be set directly
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (optional: persistence is disabled without it)
    SUPABASE_URL: str | None = Field(default=None, description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str | None = Field(
        default=None, description="Supabase service role key"
    )

    # Environment
    BRIEF_ENGINE_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Generation provider
    LLM_PROVIDER: str = Field(default="anthropic", description="Provider: anthropic or openai")
    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic API key")
    ANTHROPIC_MODEL: str = Field(
        default="claude-sonnet-4-20250514", description="Anthropic model for all chains"
    )
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    OPENAI_MODEL: str = Field(default="gpt-4o", description="OpenAI model for all chains")
    GENERATION_MAX_TOKENS: int = Field(default=4096, description="Max output tokens per call")

    # Timing
    BRIEF_GENERATION_TIMEOUT_SECONDS: float = Field(
        default=90.0, description="Upper bound raced against Pink Brief generation"
    )

    # Prompt budgets
    RESEARCH_PRUNE_CHARS: int = Field(
        default=6000, description="Max research characters sent for extraction/synthesis"
    )
    BRIEF_EXCERPT_CHARS: int = Field(
        default=3000, description="Max research characters sent for brief generation"
    )

    # Repository listing
    BRIEF_LIST_LIMIT: int = Field(default=50, description="Default page size for brief listing")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If environment variables fail validation
    """
    return Settings()
