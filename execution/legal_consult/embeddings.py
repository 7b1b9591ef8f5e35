"""
Embedding Service for the legal knowledge base

Turns knowledge-base passages and user queries into vectors. Three hosted
providers are supported behind one interface; OpenAI text-embedding-3-large
(truncated to 1536 dimensions) is the default.

Every call goes to the provider: identical texts embedded twice are two
independent requests.

Architecture:
    BaseEmbeddingService      -- shared batching, embed_documents, embed_query
        OpenAIEmbeddingService    -- OpenAI-compatible embeddings endpoint
        VoyageEmbeddingService    -- Voyage AI multilingual provider
        CohereEmbeddingService    -- Cohere embed-multilingual-v3 provider
"""

import os
import logging
from typing import Optional
from dataclasses import dataclass

from .config import ConsultConfig, EMBEDDING_DEFAULTS

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingConfig:
    """Configuration for embedding service."""
    provider: str = "openai"  # "openai", "voyage" or "cohere"
    model: str = "text-embedding-3-large"
    dimensions: int = 1536
    batch_size: int = 96
    max_tokens_per_batch: int = 100000
    chars_per_token: float = 3.0  # Cyrillic tokenizes denser than English
    base_url: Optional[str] = None
    timeout: float = 60.0
    max_retries: int = 2


class BaseEmbeddingService:
    """
    Base class for API-based embedding services.

    Subclasses implement:
    - _init_client(): Initialize the provider-specific API client
    - _embed_batch(): Call the provider for one batch

    And set these class attributes:
    - _provider_name: Human-readable provider name for error messages
    - _env_var_name: Environment variable name for the API key
    - _doc_input_type / _query_input_type: provider input-type hints
    """

    _provider_name: str = "Base"
    _env_var_name: str = ""
    _doc_input_type: str = "document"
    _query_input_type: str = "query"

    def __init__(self, config: Optional[EmbeddingConfig] = None, client=None):
        """
        Initialize embedding service.

        Args:
            config: Optional configuration. Uses defaults if not provided.
            client: Pre-built provider client (skips _init_client).
        """
        self.config = config or EmbeddingConfig()
        self._client = client
        if self._client is None:
            self._init_client()

    def _init_client(self):
        """Initialize the provider-specific API client. Must be overridden by subclasses."""
        raise NotImplementedError("Subclasses must implement _init_client()")

    def _embed_batch(self, texts: list[str], input_type: str) -> list[list[float]]:
        raise NotImplementedError("Subclasses must implement _embed_batch()")

    def _require_client(self):
        if not self._client:
            raise RuntimeError(
                f"{self._provider_name} client not initialized. "
                f"Check {self._env_var_name}."
            )

    def _create_batches(self, texts: list[str]) -> list[list[str]]:
        """Split texts into batches respecting both item count and token limits."""
        batches = []
        current_batch = []
        current_tokens = 0
        cpt = self.config.chars_per_token

        for text in texts:
            est_tokens = len(text) / cpt
            if current_batch and (
                len(current_batch) >= self.config.batch_size
                or current_tokens + est_tokens > self.config.max_tokens_per_batch
            ):
                batches.append(current_batch)
                current_batch = []
                current_tokens = 0
            current_batch.append(text)
            current_tokens += est_tokens

        if current_batch:
            batches.append(current_batch)

        return batches

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for knowledge-base chunks.

        Args:
            texts: List of text strings to embed

        Returns:
            List of embedding vectors, in input order
        """
        if not texts:
            return []

        self._require_client()
        batches = self._create_batches(texts)

        logger.info(
            f"Embedding {len(texts)} chunks in {len(batches)} batches"
            f" with {self._provider_name}"
        )

        embeddings = []
        for batch in batches:
            embeddings.extend(self._call(batch, self._doc_input_type))
        return embeddings

    def embed_query(self, query: str) -> list[float]:
        """
        Generate embedding for a search query.

        Args:
            query: Search query string

        Returns:
            Embedding vector
        """
        self._require_client()
        result = self._call([query], self._query_input_type)
        return result[0] if result else []

    def _call(self, texts: list[str], input_type: str) -> list[list[float]]:
        try:
            return self._embed_batch(texts, input_type)
        except Exception as e:
            logger.error(f"{self._provider_name} embedding failed: {e}")
            raise

    @property
    def dimensions(self) -> int:
        """Return embedding dimensions."""
        return self.config.dimensions


class OpenAIEmbeddingService(BaseEmbeddingService):
    """
    Embedding service for OpenAI-compatible endpoints.

    text-embedding-3-large supports server-side dimension truncation, so the
    vectors match the 1536-dimension column of the knowledge store.
    """

    _provider_name = "OpenAI"
    _env_var_name = "LLM_API_KEY"

    def _init_client(self):
        """Initialize the OpenAI client."""
        api_key = os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY")

        if not api_key:
            logger.warning(
                "LLM_API_KEY not found. Embeddings will fail. "
                "Set the environment variable or use a different provider."
            )
            return

        try:
            from openai import OpenAI
            self._client = OpenAI(
                base_url=self.config.base_url,
                api_key=api_key,
                timeout=self.config.timeout,
                max_retries=self.config.max_retries,
            )
            logger.info(f"OpenAI embeddings client initialized with model {self.config.model}")
        except ImportError:
            logger.error("openai package not installed. Run: pip install openai")
            raise

    def _embed_batch(self, texts: list[str], input_type: str) -> list[list[float]]:
        response = self._client.embeddings.create(
            model=self.config.model,
            input=texts,
            dimensions=self.config.dimensions,
        )
        ordered = sorted(response.data, key=lambda item: item.index)
        return [item.embedding for item in ordered]


class VoyageEmbeddingService(BaseEmbeddingService):
    """Embedding service using Voyage AI's multilingual model."""

    _provider_name = "Voyage AI"
    _env_var_name = "VOYAGE_API_KEY"
    _doc_input_type = "document"
    _query_input_type = "query"

    def _init_client(self):
        """Initialize the Voyage AI client."""
        api_key = os.getenv("VOYAGE_API_KEY")

        if not api_key:
            logger.warning(
                "VOYAGE_API_KEY not found. Embeddings will fail. "
                "Get your API key at https://dash.voyageai.com/"
            )
            return

        try:
            import voyageai
            self._client = voyageai.Client(
                api_key=api_key,
                max_retries=self.config.max_retries,
                timeout=self.config.timeout,
            )
            logger.info(f"Voyage AI client initialized with model {self.config.model}")
        except ImportError:
            logger.error("voyageai package not installed. Run: pip install voyageai")
            raise

    def _embed_batch(self, texts: list[str], input_type: str) -> list[list[float]]:
        response = self._client.embed(
            texts=texts,
            model=self.config.model,
            input_type=input_type,
        )
        return response.embeddings


class CohereEmbeddingService(BaseEmbeddingService):
    """Embedding service using Cohere's embed-multilingual-v3 model."""

    _provider_name = "Cohere"
    _env_var_name = "COHERE_API_KEY"
    _doc_input_type = "search_document"
    _query_input_type = "search_query"

    def _init_client(self):
        """Initialize the Cohere client."""
        api_key = os.getenv("COHERE_API_KEY")

        if not api_key:
            logger.warning(
                "COHERE_API_KEY not found. Embeddings will fail. "
                "Set the environment variable or use a different provider."
            )
            return

        try:
            import cohere
            self._client = cohere.Client(api_key, timeout=self.config.timeout)
            logger.info(f"Cohere client initialized with model {self.config.model}")
        except ImportError:
            logger.error("Cohere package not installed. Run: pip install cohere")
            raise

    def _embed_batch(self, texts: list[str], input_type: str) -> list[list[float]]:
        response = self._client.embed(
            texts=texts,
            model=self.config.model,
            input_type=input_type,
        )
        return response.embeddings


_PROVIDERS = {
    "openai": OpenAIEmbeddingService,
    "voyage": VoyageEmbeddingService,
    "cohere": CohereEmbeddingService,
}


def get_embedding_service(config: Optional[ConsultConfig] = None) -> BaseEmbeddingService:
    """
    Factory function to get the configured embedding service.

    Args:
        config: Pipeline configuration. Read from the environment if omitted.

    Returns:
        Configured embedding service

    Raises:
        ValueError: If the provider name is unknown.
    """
    config = config or ConsultConfig.from_env()
    provider = config.embedding_provider
    if provider not in _PROVIDERS:
        raise ValueError(
            f"Unknown embedding provider '{provider}'. "
            f"Expected one of: {', '.join(_PROVIDERS)}"
        )

    default_model, default_dims = EMBEDDING_DEFAULTS[provider]
    embedding_config = EmbeddingConfig(
        provider=provider,
        model=config.embedding_model or default_model,
        dimensions=config.embedding_dimensions or default_dims,
        batch_size=128 if provider == "voyage" else 96,
        base_url=config.llm_base_url if provider == "openai" else None,
        timeout=config.request_timeout,
        max_retries=config.max_retries,
    )
    return _PROVIDERS[provider](embedding_config)


# CLI for testing
if __name__ == "__main__":
    import sys
    from dotenv import load_dotenv

    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    service = get_embedding_service()
    print(f"Using embedding provider: {service._provider_name}")

    if len(sys.argv) > 1:
        query = " ".join(sys.argv[1:])
    else:
        query = "Как вернуть некачественный товар продавцу?"

    print(f"Query: {query}")
    embedding = service.embed_query(query)
    print(f"Embedding dimensions: {len(embedding)}")
    print(f"First 10 values: {embedding[:10]}")
