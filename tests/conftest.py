"""
Shared fixtures and test utilities for the legal consultation tests.

Provides mock services, sample data, and reusable fixtures so that all tests
can run without API keys, databases, or external network access.
"""

import sys
import hashlib
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Path setup - ensure the execution package is importable
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

load_dotenv(PROJECT_ROOT / ".env")

# ---------------------------------------------------------------------------
# Sample legal text
# ---------------------------------------------------------------------------
SAMPLE_LAW_TEXT = """Закон РФ «О защите прав потребителей»

Статья 18. Права потребителя при обнаружении в товаре недостатков. Потребитель в случае обнаружения в товаре недостатков, если они не были оговорены продавцом, вправе потребовать замены на товар этой же марки.

Коротко.

Статья 22. Сроки удовлетворения отдельных требований потребителя. Требования потребителя о возврате уплаченной за товар денежной суммы подлежат удовлетворению в течение десяти дней.

Статья 25. Право потребителя на обмен товара надлежащего качества. Потребитель вправе обменять непродовольственный товар надлежащего качества в течение четырнадцати дней."""

CONSULTATION_TEXT = """Ответ: Вы вправе потребовать возврата денег за бракованный товар.

Правовое обоснование:
Статья 18 Закона о защите прав потребителей.

Источники: Закон РФ «О защите прав потребителей» ст. 18, ГК РФ ст. 503
Уверенность: 92"""


@pytest.fixture
def sample_law_text():
    return SAMPLE_LAW_TEXT


# ---------------------------------------------------------------------------
# Mock embedding service
# ---------------------------------------------------------------------------

class MockEmbeddingService:
    """Deterministic mock embedding service -- never calls external APIs."""

    def __init__(self, dimensions=16):
        self._dimensions = dimensions
        self._call_count = 0

    def embed_documents(self, texts):
        return [self._deterministic_embedding(t) for t in texts]

    def embed_query(self, query):
        self._call_count += 1
        return self._deterministic_embedding(query)

    def _deterministic_embedding(self, text):
        h = hashlib.sha256(text.encode()).hexdigest()
        seed = int(h[:8], 16)
        return [((seed + i * 7919) % 1000) / 1000.0 - 0.5 for i in range(self._dimensions)]

    @property
    def dimensions(self):
        return self._dimensions


@pytest.fixture
def mock_embedding_service():
    return MockEmbeddingService()


# ---------------------------------------------------------------------------
# Fake generation service
# ---------------------------------------------------------------------------

class FakeGenerationService:
    """Scripted stand-in for GenerationService.

    Returns ``response_text`` for every consultation (or raises ``error``)
    and records each (query, context) it was asked. Like the real service,
    the sources/confidence trailer lines are parsed out of the answer.
    """

    def __init__(self, response_text=CONSULTATION_TEXT, confidence=0.92, error=None):
        self.response_text = response_text
        self.confidence = confidence
        self.error = error
        self.calls = []

    def get_legal_consultation(self, query, context, user_id="anonymous"):
        from execution.legal_consult.generation import parse_sources, strip_trailers
        from execution.legal_consult.models import Consultation

        self.calls.append((query, context))
        if self.error is not None:
            raise self.error
        return Consultation(
            id=f"c{len(self.calls)}",
            user_id=user_id,
            query=query,
            context=context,
            response=strip_trailers(self.response_text),
            confidence=self.confidence,
            sources=parse_sources(self.response_text),
            model="fake-model",
            tokens_used=120,
            cost=0.0012,
        )


@pytest.fixture
def fake_generator():
    return FakeGenerationService()


# ---------------------------------------------------------------------------
# Pipeline fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def memory_store():
    from execution.legal_consult.vector_store import InMemoryVectorStore
    return InMemoryVectorStore()


@pytest.fixture
def retriever(mock_embedding_service, memory_store, fake_generator):
    from execution.legal_consult.retriever import KnowledgeRetriever
    return KnowledgeRetriever(mock_embedding_service, memory_store, fake_generator)


@pytest.fixture
def coordinator(fake_generator, retriever):
    from execution.legal_consult.agents import default_agent_registry
    from execution.legal_consult.coordinator import ConsultationCoordinator
    registry = default_agent_registry(fake_generator, retriever=retriever)
    return ConsultationCoordinator(registry, fake_generator)


@pytest.fixture
def consumer_context():
    from execution.legal_consult.models import LegalContext, LegalArea, Jurisdiction, Urgency
    return LegalContext(
        area=LegalArea.CONSUMER_PROTECTION,
        jurisdiction=Jurisdiction.RUSSIA,
        urgency=Urgency.MEDIUM,
    )


@pytest.fixture
def mock_openai_response():
    """Build a MagicMock shaped like an OpenAI chat completion."""
    def _make(content, total_tokens=150, model="gpt-4o"):
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = content
        response.usage.total_tokens = total_tokens
        response.model = model
        return response
    return _make
