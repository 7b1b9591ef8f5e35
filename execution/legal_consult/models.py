"""
Data model for the legal consultation pipeline.

Value objects passed between the router, the agents, the retrieval
component and the document generator. Everything here is plain data:
no network access, no side effects.
"""

import secrets
from enum import Enum
from typing import Any, Optional
from datetime import datetime
from dataclasses import dataclass, field, replace


_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(number: int) -> str:
    """Render a non-negative integer in base 36 (lowercase)."""
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def random_base36(length: int) -> str:
    """Random lowercase base-36 token of ``length`` characters."""
    return "".join(secrets.choice(_BASE36_DIGITS) for _ in range(length))


def clamp_score(value: Optional[float], default: float = 0.0) -> float:
    """Coerce a confidence/relevance score into [0, 1]."""
    if value is None:
        return default
    try:
        score = float(value)
    except (TypeError, ValueError):
        return default
    if score != score:  # NaN
        return default
    return max(0.0, min(1.0, score))


class LegalArea(str, Enum):
    CIVIL = "civil"
    CRIMINAL = "criminal"
    ADMINISTRATIVE = "administrative"
    LABOR = "labor"
    FAMILY = "family"
    TAX = "tax"
    CORPORATE = "corporate"
    CONSUMER_PROTECTION = "consumer_protection"


class Jurisdiction(str, Enum):
    RUSSIA = "russia"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


@dataclass(frozen=True)
class LegalContext:
    """Legal area / jurisdiction / urgency tuple accompanying every query.

    Never mutated: agents narrow it with ``pinned()``, which returns a copy.
    """
    area: LegalArea
    jurisdiction: Jurisdiction = Jurisdiction.RUSSIA
    urgency: Urgency = Urgency.MEDIUM
    dispute_type: Optional[str] = None
    user_profile: Optional[dict] = None

    def pinned(self, area: LegalArea) -> "LegalContext":
        """Return a copy of this context with ``area`` forced to ``area``."""
        return replace(self, area=area)

    def to_dict(self) -> dict:
        data = {
            "area": self.area.value,
            "jurisdiction": self.jurisdiction.value,
            "urgency": self.urgency.value,
        }
        if self.dispute_type is not None:
            data["dispute_type"] = self.dispute_type
        if self.user_profile is not None:
            data["user_profile"] = self.user_profile
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "LegalContext":
        """
        Build a context from its serialised form.

        Raises:
            ValueError: If area, jurisdiction or urgency is not a known value.
        """
        return cls(
            area=LegalArea(data["area"]),
            jurisdiction=Jurisdiction(data.get("jurisdiction", "russia")),
            urgency=Urgency(data.get("urgency", "medium")),
            dispute_type=data.get("dispute_type"),
            user_profile=data.get("user_profile"),
        )


# =============================================================================
# Sources and retrieval results
# =============================================================================

@dataclass
class LegalSource:
    """A statute, regulation, precedent or article backing an answer."""
    id: str
    title: str
    type: str = "law"  # law | regulation | precedent | article
    url: Optional[str] = None
    relevance: Optional[float] = None  # set only for retrieval hits
    excerpt: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "url": self.url,
            "relevance": self.relevance,
            "excerpt": self.excerpt,
        }


@dataclass
class SearchMetadata:
    legal_area: str
    jurisdiction: str
    last_updated: Optional[datetime]
    authority: str


@dataclass
class SearchResult:
    """A knowledge-base passage matched to a query."""
    id: str
    title: str
    content: str
    relevance: float
    source: LegalSource
    metadata: Optional[SearchMetadata] = None


@dataclass
class ContextualResponse:
    """Answer generated from retrieved passages."""
    response: str
    sources: list[LegalSource]
    confidence: float


# =============================================================================
# Suggestions and agent responses
# =============================================================================

class SuggestionType(str, Enum):
    DOCUMENT = "document"
    ACTION = "action"


@dataclass
class SuggestedAction:
    type: str
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass
class AISuggestion:
    """An actionable follow-up rendered as a button by the caller."""
    id: str
    type: SuggestionType
    title: str
    description: str
    confidence: float
    action: SuggestedAction


@dataclass
class AgentResponse:
    """Terminal output of the consultation path."""
    response: str
    confidence: float
    suggestions: list[AISuggestion] = field(default_factory=list)
    sources: list[LegalSource] = field(default_factory=list)
    reasoning: str = ""
    agent: str = "general"
    tokens_used: int = 0

    def __post_init__(self):
        self.confidence = clamp_score(self.confidence)


@dataclass
class Consultation:
    """Generation Service answer to a consultation prompt."""
    id: str
    user_id: str
    query: str
    context: LegalContext
    response: str
    confidence: float
    sources: list[LegalSource]
    model: str
    tokens_used: int = 0
    cost: float = 0.0
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class ComplexityAssessment:
    complexity: str = "medium"  # simple | medium | complex
    estimated_time: int = 15  # minutes
    requires_expert: bool = False


# =============================================================================
# Knowledge base
# =============================================================================

@dataclass
class KnowledgeDocument:
    """A legal text to be chunked, embedded and stored."""
    id: str
    title: str
    content: str
    legal_area: str = LegalArea.CIVIL.value
    authority: str = "unknown"
    url: Optional[str] = None
    source_type: str = "law"


@dataclass
class KnowledgeChunk:
    """One embedded paragraph of a knowledge document."""
    id: str
    document_id: str
    content: str
    embedding: list[float]
    title: str
    section: str
    legal_area: str
    jurisdiction: str = Jurisdiction.RUSSIA.value
    authority: str = "unknown"
    url: Optional[str] = None
    source_type: str = "law"
    dispute_type: Optional[str] = None
    last_updated: datetime = field(default_factory=datetime.now)

    def metadata(self) -> dict:
        return {
            "document_id": self.document_id,
            "title": self.title,
            "section": self.section,
            "legal_area": self.legal_area,
            "jurisdiction": self.jurisdiction,
            "authority": self.authority,
            "url": self.url,
            "source_type": self.source_type,
            "dispute_type": self.dispute_type,
            "last_updated": self.last_updated,
        }


@dataclass
class StoreMatch:
    """Raw similarity hit as returned by a knowledge store."""
    id: str
    content: str
    similarity: float
    metadata: dict


@dataclass
class KnowledgeBaseStats:
    total_documents: int = 0
    total_chunks: int = 0
    legal_areas: dict[str, int] = field(default_factory=dict)
    last_updated: datetime = field(default_factory=datetime.now)


# =============================================================================
# Documents
# =============================================================================

class DocumentCategory(str, Enum):
    CLAIM = "claim"
    CONTRACT = "contract"
    STATEMENT = "statement"
    LAWSUIT = "lawsuit"
    OTHER = "other"


class OutputFormat(str, Enum):
    HTML = "html"
    PDF = "pdf"
    DOCX = "docx"


@dataclass(frozen=True)
class DocumentTemplate:
    """Statically registered document schema."""
    id: str
    name: str
    description: str
    legal_area: str
    category: DocumentCategory
    required_fields: tuple[str, ...]
    optional_fields: tuple[str, ...] = ()
    prompt_template_id: str = ""
    output_format: OutputFormat = OutputFormat.HTML


@dataclass(frozen=True)
class GeneratedDocument:
    id: str
    content: str
    template_id: str
    generated_at: datetime
    version: str = "1.0"


@dataclass
class GenerationOptions:
    format: Optional[OutputFormat] = None
    language: str = "ru"


@dataclass
class DocumentGenerationResult:
    document: GeneratedDocument
    confidence: float
    suggestions: list[str]
    warnings: list[str]
    metadata: dict[str, Any]
