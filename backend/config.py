"""
Runtime Configuration for SupportChat.

Provides a RuntimeConfig dataclass whose values default from environment
variables. Values are read once when the app wires its components at
startup; override fields by constructing RuntimeConfig directly.

Usage:
    from config import runtime_config
    limit = runtime_config.rate_limit_chat
    custom = RuntimeConfig(rate_limit_chat=20, temperature=0.5)
"""

import os
from dataclasses import dataclass, field
from typing import List
from urllib.parse import quote_plus


def _env_bool(key: str, default: str) -> bool:
    return os.environ.get(key, default).lower() == "true"


def _build_database_url_default() -> str:
    """
    Build a PostgreSQL URL from env vars when DATABASE_URL is not explicitly set.

    Password is URL-encoded to avoid auth breakage with special characters.
    """
    explicit = os.environ.get("DATABASE_URL", "").strip()
    if explicit:
        return explicit

    user = os.environ.get("POSTGRES_USER", "supportchat").strip() or "supportchat"
    password = os.environ.get("POSTGRES_PASSWORD", "supportchat-local-dev")
    host = os.environ.get("POSTGRES_HOST", "localhost").strip() or "localhost"
    port = os.environ.get("POSTGRES_PORT", "5432").strip() or "5432"
    db = os.environ.get("POSTGRES_DB", "supportchat").strip() or "supportchat"

    safe_password = quote_plus(password)
    return f"postgresql://{user}:{safe_password}@{host}:{port}/{db}"


@dataclass
class RuntimeConfig:
    """
    Service configuration.

    All values default from environment variables.
    """

    # Environment mode (development, staging, production)
    app_env: str = field(default_factory=lambda: os.environ.get("APP_ENV", "development"))

    # Branding used in the assistant system prompt
    store_name: str = field(default_factory=lambda: os.environ.get("STORE_NAME", "GamerHub"))

    # OpenAI-compatible completion + moderation endpoint
    openai_api_key: str = field(default_factory=lambda: os.environ.get("OPENAI_API_KEY", ""))
    openai_base_url: str = field(
        default_factory=lambda: os.environ.get("OPENAI_BASE_URL", "").strip()
    )  # Empty = SDK default (api.openai.com)
    chat_model: str = field(default_factory=lambda: os.environ.get("LLM_CHAT_MODEL", "gpt-3.5-turbo"))
    moderation_model: str = field(
        default_factory=lambda: os.environ.get("LLM_MODERATION_MODEL", "omni-moderation-latest")
    )

    # Model parameters
    temperature: float = field(default_factory=lambda: float(os.environ.get("LLM_TEMPERATURE", "0.7")))
    max_output_tokens: int = field(
        default_factory=lambda: int(os.environ.get("LLM_MAX_OUTPUT", "500"))
    )

    # Timeouts (seconds)
    llm_timeout: float = field(default_factory=lambda: float(os.environ.get("LLM_TIMEOUT", "30")))
    moderation_timeout: float = field(
        default_factory=lambda: float(os.environ.get("MODERATION_TIMEOUT", "10"))
    )

    # Prompt context
    history_limit: int = field(default_factory=lambda: int(os.environ.get("HISTORY_LIMIT", "10")))

    # Cache TTLs (seconds)
    faq_search_ttl: int = field(
        default_factory=lambda: int(os.environ.get("CACHE_FAQ_SEARCH_TTL", "3600"))
    )  # 1 hour
    history_ttl: int = field(
        default_factory=lambda: int(os.environ.get("CACHE_HISTORY_TTL", "900"))
    )  # 15 minutes
    conversation_ttl: int = field(
        default_factory=lambda: int(os.environ.get("CACHE_CONVERSATION_TTL", "3600"))
    )

    # Rate limiting settings
    rate_limit_chat: int = field(
        default_factory=lambda: int(os.environ.get("RATE_LIMIT_CHAT", "10"))
    )  # Messages per conversation per window
    rate_limit_window: int = field(
        default_factory=lambda: int(os.environ.get("RATE_LIMIT_WINDOW", "60"))
    )
    rate_limit_conversation_create: int = field(
        default_factory=lambda: int(os.environ.get("RATE_LIMIT_CONVERSATION_CREATE", "5"))
    )  # New conversations per IP per window
    rate_limit_conversation_window: int = field(
        default_factory=lambda: int(os.environ.get("RATE_LIMIT_CONVERSATION_WINDOW", "900"))
    )
    rate_limit_fail_closed: bool = field(
        default_factory=lambda: _env_bool("RATE_LIMIT_FAIL_CLOSED", "false")
    )  # Deny on limiter storage faults instead of passing through

    # Redis cache settings
    redis_url: str = field(default_factory=lambda: os.environ.get("REDIS_URL", "redis://localhost:6379/0"))
    redis_enabled: bool = field(default_factory=lambda: _env_bool("REDIS_ENABLED", "true"))

    # PostgreSQL database settings
    database_url: str = field(default_factory=_build_database_url_default)
    database_enabled: bool = field(default_factory=lambda: _env_bool("DATABASE_ENABLED", "true"))
    database_pool_size: int = field(
        default_factory=lambda: int(os.environ.get("DATABASE_POOL_SIZE", "10"))
    )

    # Input validation
    supported_regions: str = field(
        default_factory=lambda: os.environ.get("SUPPORTED_REGIONS", "USA,India,Japan,China")
    )
    max_message_length: int = field(
        default_factory=lambda: int(os.environ.get("MAX_MESSAGE_LENGTH", "2000"))
    )

    # CORS
    cors_origins: str = field(
        default_factory=lambda: os.environ.get("CORS_ORIGINS", "http://localhost:3000")
    )

    def get_supported_regions(self) -> List[str]:
        """Get list of accepted region names."""
        return [r.strip() for r in self.supported_regions.split(",") if r.strip()]

    def get_cors_origins(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


runtime_config = RuntimeConfig()
