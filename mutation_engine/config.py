"""
Configuration settings for the Adaptive Mutation Engine
"""
import os
import logging
from typing import Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()

# Configure basic logger for config module
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings"""

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # API Keys
    ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
    OPENROUTER_API_KEY: str = os.getenv("OPENROUTER_API_KEY", "")

    # LLM provider: "anthropic" or "openrouter"
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "anthropic")
    OPENROUTER_API_URL: str = "https://openrouter.ai/api/v1/chat/completions"
    LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "120"))

    # Redis - default to localhost for local development
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    REDIS_ENABLED: bool = os.getenv("REDIS_ENABLED", "true").lower() == "true"

    # Conversation state
    CONVERSATION_TTL_SECONDS: int = int(os.getenv("CONVERSATION_TTL_SECONDS", "86400"))
    CONVERSATION_MAX_ENTRIES: int = int(os.getenv("CONVERSATION_MAX_ENTRIES", "500"))
    CHAT_MAX_HISTORY: int = 10  # Sliding window of stored messages

    # Monitoring
    SENTRY_DSN: Optional[str] = os.getenv("SENTRY_DSN")
    SENTRY_ENVIRONMENT: str = os.getenv("SENTRY_ENVIRONMENT", "development")
    SENTRY_TRACES_SAMPLE_RATE: float = float(
        os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1")
    )

    # Claude Models
    CLAUDE_MODEL_HAIKU: str = "claude-haiku-4-5-20251001"
    CLAUDE_MODEL_SONNET: str = "claude-sonnet-4-5-20250929"
    CLAUDE_MODEL_OPUS: str = "claude-opus-4-5-20251101"

    # Pipeline model routing
    INTENT_MODEL: str = os.getenv("INTENT_MODEL", "claude-haiku-4-5-20251001")
    SIMPLE_TIER_MODEL: str = os.getenv("SIMPLE_TIER_MODEL", "claude-haiku-4-5-20251001")
    DEFAULT_MODEL: str = os.getenv("DEFAULT_MODEL", "claude-sonnet-4-5-20250929")
    FALLBACK_MODEL: str = os.getenv("FALLBACK_MODEL", "claude-opus-4-5-20251101")

    # Generation Settings
    INTENT_MAX_TOKENS: int = 300
    FILE_INTENT_MAX_TOKENS: int = 100
    FRAGMENT_MAX_TOKENS: int = 4000
    FULL_MAX_TOKENS: int = 16000
    RESPONSIVE_MAX_TOKENS: int = 8000
    RESPONSIVE_MAX_TOKENS_HAIKU: int = 4096
    MUTATION_TEMPERATURE: float = 0.1
    SELECTION_TEMPERATURE: float = 0.0
    MAX_VALIDATION_RETRIES: int = 1

    # CORS - comma-separated list of allowed origins
    CORS_ORIGINS: str = os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://localhost:3009,http://127.0.0.1:3000"
    )

    # Rate limits (slowapi syntax)
    ADAPTIVE_CHAT_RATE_LIMIT: str = os.getenv("ADAPTIVE_CHAT_RATE_LIMIT", "20/minute")
    INTENT_RATE_LIMIT: str = os.getenv("INTENT_RATE_LIMIT", "60/minute")
    RESPONSIVE_RATE_LIMIT: str = os.getenv("RESPONSIVE_RATE_LIMIT", "10/minute")

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()


# UI model names -> provider model ids
MODEL_MAP = {
    "haiku": settings.CLAUDE_MODEL_HAIKU,
    "sonnet": settings.CLAUDE_MODEL_SONNET,
    "opus": settings.CLAUDE_MODEL_OPUS,
}


def resolve_model(choice: Optional[str]) -> str:
    """Map a UI model name (or a raw model id) to a provider model id"""
    if not choice:
        return settings.DEFAULT_MODEL
    if choice in MODEL_MAP:
        return MODEL_MAP[choice]
    if choice in MODEL_MAP.values():
        return choice
    logger.warning(f"Unknown model choice '{choice}', using default model")
    return settings.DEFAULT_MODEL


def get_redis_client():
    """Get Redis client with error handling"""
    if not settings.REDIS_ENABLED:
        return None

    try:
        import redis
        client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2
        )
        # Test connection
        client.ping()
        return client
    except Exception as e:
        logger.warning(f"Redis connection failed: {e}. Continuing with in-memory state.")
        settings.REDIS_ENABLED = False
        return None


def validate_required_config():
    """Validate required configuration on startup"""
    errors = []

    if settings.LLM_PROVIDER not in ("anthropic", "openrouter"):
        errors.append(f"LLM_PROVIDER must be 'anthropic' or 'openrouter', got '{settings.LLM_PROVIDER}'")
    elif settings.LLM_PROVIDER == "anthropic" and not settings.ANTHROPIC_API_KEY:
        errors.append("ANTHROPIC_API_KEY must be configured for the anthropic provider")
    elif settings.LLM_PROVIDER == "openrouter" and not settings.OPENROUTER_API_KEY:
        errors.append("OPENROUTER_API_KEY must be configured for the openrouter provider")

    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        if settings.ENVIRONMENT == "production":
            raise ValueError(f"Missing required configuration: {', '.join(errors)}")

    return len(errors) == 0
