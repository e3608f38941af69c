"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List, Optional


DEFAULT_SYSTEM_PROMPT = (
    "Você é um assistente de suporte útil e prestativo. Use a base de conhecimento "
    "fornecida para responder perguntas de forma clara e profissional em português."
)

DEFAULT_FALLBACK_MESSAGE = (
    "Desculpe, não tenho informações suficientes para responder essa pergunta. "
    "Um agente humano irá ajudá-lo em breve."
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="support-assistant", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=5000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/support",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Embedding Provider ==========
    embedding_api_key: Optional[str] = Field(
        default=None,
        description="API key for the embedding provider (OpenAI)"
    )
    embedding_base_url: Optional[str] = Field(
        default=None,
        description="Base URL override for an OpenAI-compatible embedding endpoint"
    )
    embedding_model: str = Field(
        default="text-embedding-3-small",
        description="Embedding model name"
    )

    # ========== Completion Provider ==========
    completion_api_key: Optional[str] = Field(
        default=None,
        description="API key for the completion provider"
    )
    completion_base_url: Optional[str] = Field(
        default="https://generativelanguage.googleapis.com/v1beta/openai/",
        description="OpenAI-compatible chat completion endpoint"
    )
    llm_model: str = Field(
        default="gemini-2.5-flash",
        description="Chat model for responses and sentiment analysis"
    )
    llm_temperature: float = Field(
        default=0.3,
        description="Default temperature for LLM",
        ge=0.0,
        le=1.0
    )
    llm_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for provider calls; a timeout surfaces as a provider error",
        gt=0
    )
    mock_llm: bool = Field(
        default=False,
        description="Use mock providers for testing (no API calls)"
    )

    # ========== Retrieval ==========
    generation_similarity_threshold: float = Field(
        default=0.4,
        description="Minimum similarity for an entry to enter the generation context",
        ge=-1.0,
        le=1.0
    )
    search_similarity_threshold: float = Field(
        default=0.5,
        description="Minimum similarity for general knowledge search",
        ge=-1.0,
        le=1.0
    )

    # ========== Discord ==========
    discord_bot_token: Optional[str] = Field(
        default=None,
        description="Discord bot token; the gateway is not started without it"
    )
    discord_approval_channel_id: Optional[int] = Field(
        default=None,
        description="Channel that receives pending responses with approve/reject buttons"
    )
    dashboard_url: str = Field(
        default="http://localhost:5000",
        description="Public dashboard URL linked from the /treinamento command"
    )
    message_char_limit: int = Field(
        default=2000,
        description="Transport message length ceiling",
        ge=100
    )
    truncation_reserve: int = Field(
        default=50,
        description="Characters reserved for the truncation marker",
        ge=30
    )

    # ========== Bot Config Defaults ==========
    default_auto_respond: bool = Field(default=True)
    default_require_approval: bool = Field(default=False)
    default_response_delay_ms: int = Field(default=2000, ge=0)
    default_max_tokens: int = Field(default=500, ge=1, le=8000)
    default_system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT, min_length=1)
    default_fallback_message: str = Field(default=DEFAULT_FALLBACK_MESSAGE, min_length=1)

    # ========== Delivery ==========
    delivery_claim_timeout_seconds: int = Field(
        default=180,
        description="Age after which an unfinished delivery claim may be retaken; "
                    "must exceed the longest response delay plus send time",
        ge=1
    )

    # ========== Stuck Response Monitor ==========
    stuck_monitor_interval: int = Field(
        default=300,
        description="Seconds between stuck-response reports (0 disables the monitor)",
        ge=0
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5000"],
        description="Allowed CORS origins"
    )

    # ========== Grafana OTLP Metrics ==========
    grafana_host: Optional[str] = Field(
        default=None,
        description="Grafana OTLP gateway URL (e.g., https://otlp-gateway-prod-ap-south-1.grafana.net)"
    )
    grafana_api_key: Optional[str] = Field(
        default=None,
        description="Grafana API key for OTLP authentication"
    )
    grafana_instance_id: Optional[str] = Field(
        default=None,
        description="Grafana instance ID for OTLP authentication"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production", "test"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class TicketStatus(str):
    """Ticket lifecycle statuses."""
    OPEN = "open"
    RESPONDED = "responded"
    CLOSED = "closed"


class ResponseStatus(str):
    """Bot response lifecycle statuses."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SENT = "sent"


class Sentiment(str):
    """Internal sentiment vocabulary."""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class Urgency(str):
    """Internal urgency vocabulary."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class FeedbackPolarity(str):
    """Reaction polarity."""
    POSITIVE = "positive"
    NEGATIVE = "negative"


POSITIVE_REACTION = "👍"
NEGATIVE_REACTION = "👎"
