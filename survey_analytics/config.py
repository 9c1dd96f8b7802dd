from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field, field_validator, model_validator
from functools import lru_cache

PRODUCTION_AI_BASE_URL = "https://api.groq.com"
PRODUCTION_AI_MODEL = "llama-3.1-8b-instant"
LOCAL_AI_BASE_URL = "http://host.docker.internal:11434"
LOCAL_AI_MODEL = "llama3.1:8b"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Database
    DATABASE_URL: str = "postgresql+asyncpg://localhost:5432/survey_analytics"

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def convert_database_url(cls, v: str) -> str:
        """Convert postgresql:// to postgresql+asyncpg:// for async support."""
        if v and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    # Cache
    REDIS_URL: str | None = None

    # CORS
    FRONTEND_URL: str = "http://localhost:5173"

    # AI completion endpoint (Ollama locally, Groq or any OpenAI-compatible API in production)
    AI_BASE_URL: str | None = Field(
        default=None, validation_alias=AliasChoices("AI_BASE_URL", "OLLAMA_BASE_URL")
    )
    AI_MODEL: str | None = Field(
        default=None, validation_alias=AliasChoices("AI_MODEL", "OLLAMA_MODEL")
    )
    AI_TIMEOUT: int = Field(
        default=60, validation_alias=AliasChoices("AI_TIMEOUT", "OLLAMA_TIMEOUT")
    )
    AI_API_KEY: str | None = Field(
        default=None, validation_alias=AliasChoices("AI_API_KEY", "GROQ_API_KEY")
    )

    # Background jobs
    JOB_WORKERS: int = 2
    SENTIMENT_JOB_TIMEOUT_SECONDS: float = 180.0
    GENERATION_PACING_SECONDS: float = 0.2
    INSIGHTS_FRESHNESS_MINUTES: int = 60
    SENTIMENT_CACHE_TTL_SECONDS: int = 3600
    GENERATION_PROFILE_PATH: str | None = None

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    @model_validator(mode="after")
    def apply_ai_defaults(self) -> "Settings":
        """Fill AI endpoint defaults based on the environment."""
        if not self.AI_BASE_URL:
            self.AI_BASE_URL = PRODUCTION_AI_BASE_URL if self.is_production else LOCAL_AI_BASE_URL
        if not self.AI_MODEL:
            self.AI_MODEL = PRODUCTION_AI_MODEL if self.is_production else LOCAL_AI_MODEL
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def sqlalchemy_echo(self) -> bool:
        # Never echo SQL in production, statements may carry credentials
        return self.DEBUG and not self.is_production

    @property
    def DOCS_ENABLED(self) -> bool:
        return not self.is_production


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
