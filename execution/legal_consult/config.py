"""
Runtime configuration for the consultation pipeline.

Values come from environment variables (entry points load them from
``.env`` with python-dotenv). Network clients are always built with an
explicit timeout and a bounded retry budget.
"""

import os
from dataclasses import dataclass
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Default embedding model and dimensions per provider
EMBEDDING_DEFAULTS = {
    "openai": ("text-embedding-3-large", 1536),
    "voyage": ("voyage-multilingual-2", 1024),
    "cohere": ("embed-multilingual-v3.0", 1024),
}


@dataclass
class ConsultConfig:
    """Models, endpoints and resilience settings."""
    # Text generation (any OpenAI-compatible endpoint)
    llm_base_url: str = "https://api.openai.com/v1"
    llm_api_key: Optional[str] = None
    llm_model: str = "gpt-4o"
    llm_fast_model: str = "gpt-4o-mini"  # classification / complexity
    temperature: float = 0.7
    max_tokens: int = 2000
    cost_per_1k_tokens: float = 0.01

    # Network clients
    request_timeout: float = 60.0
    max_retries: int = 2
    retry_backoff: float = 0.5  # seconds, doubled on each retry

    # Embeddings
    embedding_provider: str = "openai"
    embedding_model: str = "text-embedding-3-large"
    embedding_dimensions: int = 1536

    # Knowledge store
    knowledge_store: str = "postgres"  # "postgres" or "memory"
    database_url: Optional[str] = None

    # Feed retrieved passages into the agents' generation prompt.
    # Off by default: agents query the knowledge base but answer from the
    # domain-tagged question alone.
    augment_prompt_with_retrieval: bool = False

    @classmethod
    def from_env(cls) -> "ConsultConfig":
        """Build configuration from environment variables."""
        provider = os.getenv("EMBEDDING_PROVIDER", "openai").lower()
        default_model, default_dims = EMBEDDING_DEFAULTS.get(
            provider, EMBEDDING_DEFAULTS["openai"]
        )
        return cls(
            llm_base_url=os.getenv("LLM_BASE_URL", cls.llm_base_url),
            llm_api_key=os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY"),
            llm_model=os.getenv("LLM_MODEL", cls.llm_model),
            llm_fast_model=os.getenv("LLM_FAST_MODEL", cls.llm_fast_model),
            temperature=float(os.getenv("LLM_TEMPERATURE", cls.temperature)),
            max_tokens=int(os.getenv("LLM_MAX_TOKENS", cls.max_tokens)),
            cost_per_1k_tokens=float(
                os.getenv("LLM_COST_PER_1K_TOKENS", cls.cost_per_1k_tokens)
            ),
            request_timeout=float(os.getenv("LLM_TIMEOUT", cls.request_timeout)),
            max_retries=int(os.getenv("LLM_MAX_RETRIES", cls.max_retries)),
            embedding_provider=provider,
            embedding_model=os.getenv("EMBEDDING_MODEL", default_model),
            embedding_dimensions=int(os.getenv("EMBEDDING_DIMENSIONS", default_dims)),
            knowledge_store=os.getenv("KNOWLEDGE_STORE", cls.knowledge_store).lower(),
            database_url=os.getenv("POSTGRES_URL") or os.getenv("DATABASE_URL"),
            augment_prompt_with_retrieval=_env_bool(
                "AUGMENT_PROMPT_WITH_RETRIEVAL", cls.augment_prompt_with_retrieval
            ),
        )
