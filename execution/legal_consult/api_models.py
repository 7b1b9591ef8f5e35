"""
Pydantic models for the legal consultation FastAPI backend.
"""

from typing import Any, Optional
from datetime import datetime
from pydantic import BaseModel, Field

from .models import LegalArea, Jurisdiction, LegalContext, OutputFormat, Urgency


class ContextModel(BaseModel):
    """Legal context of a request."""
    area: LegalArea
    jurisdiction: Jurisdiction = Jurisdiction.RUSSIA
    urgency: Urgency = Urgency.MEDIUM
    dispute_type: Optional[str] = None
    user_profile: Optional[dict[str, Any]] = None

    def to_context(self) -> LegalContext:
        return LegalContext(
            area=self.area,
            jurisdiction=self.jurisdiction,
            urgency=self.urgency,
            dispute_type=self.dispute_type,
            user_profile=self.user_profile,
        )


class SourceInfo(BaseModel):
    """Legal source backing an answer."""
    id: str
    title: str
    type: str = "law"
    url: Optional[str] = None
    relevance: Optional[float] = None
    excerpt: str = ""


# =============================================================================
# Consultation
# =============================================================================

class ConsultationRequest(BaseModel):
    """Request body for the consultation endpoint."""
    query: str = Field(..., min_length=1, max_length=5000)
    context: ContextModel


class SuggestionInfo(BaseModel):
    id: str
    type: str
    title: str
    description: str
    confidence: float
    action_type: str
    parameters: dict[str, Any] = {}


class ConsultationResponse(BaseModel):
    """Response body for the consultation endpoint."""
    response: str
    confidence: float
    suggestions: list[SuggestionInfo]
    sources: list[SourceInfo]
    reasoning: str
    agent: str
    latency_ms: float


class AgentInfo(BaseModel):
    name: str
    description: str
    area: str
    priority: int


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    overall: bool
    agents: dict[str, bool]


# =============================================================================
# Documents
# =============================================================================

class TemplateInfo(BaseModel):
    """A registered document template."""
    id: str
    name: str
    description: str
    legal_area: str
    category: str
    required_fields: list[str]
    optional_fields: list[str]
    output_format: str


class DocumentGenerateRequest(BaseModel):
    """Request body for document generation."""
    template_id: str
    data: dict[str, Any] = {}
    context: ContextModel
    format: Optional[OutputFormat] = None


class GeneratedDocumentInfo(BaseModel):
    id: str
    content: str
    template_id: str
    generated_at: datetime
    version: str


class DocumentGenerateResponse(BaseModel):
    """Response body for document generation."""
    document: GeneratedDocumentInfo
    confidence: float
    suggestions: list[str]
    warnings: list[str]
    metadata: dict[str, Any]


# =============================================================================
# Knowledge base
# =============================================================================

class KnowledgeSearchRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=2000)
    context: ContextModel
    limit: int = Field(default=10, ge=1, le=50)
    threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    include_metadata: bool = True


class SearchResultInfo(BaseModel):
    id: str
    title: str
    content: str
    relevance: float
    source: SourceInfo
    legal_area: Optional[str] = None
    jurisdiction: Optional[str] = None
    authority: Optional[str] = None
    last_updated: Optional[datetime] = None


class KnowledgeDocumentRequest(BaseModel):
    """Request body for adding a knowledge-base document."""
    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    legal_area: LegalArea = LegalArea.CIVIL
    authority: str = "unknown"
    url: Optional[str] = None


class KnowledgeDocumentUpdate(BaseModel):
    """Request body for replacing a knowledge-base document."""
    title: Optional[str] = None
    content: Optional[str] = None
    legal_area: Optional[LegalArea] = None
    authority: Optional[str] = None
    url: Optional[str] = None


class KnowledgeDocumentResponse(BaseModel):
    document_id: str
    chunks: int


class KnowledgeStatsResponse(BaseModel):
    total_documents: int
    total_chunks: int
    legal_areas: dict[str, int]
    last_updated: datetime
