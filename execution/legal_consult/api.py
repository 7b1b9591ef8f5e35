"""
FastAPI Backend for the legal consultation pipeline

Thin REST surface over the coordinator, the document generator and the
knowledge retriever. Handlers are synchronous; FastAPI runs them in its
threadpool while they wait on the generation service and the store.

Run with: uvicorn execution.legal_consult.api:app --host 0.0.0.0 --port 8000
"""

import os
import time
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from . import __version__
from .api_models import (
    AgentInfo,
    ConsultationRequest, ConsultationResponse, SuggestionInfo, SourceInfo,
    DocumentGenerateRequest, DocumentGenerateResponse, GeneratedDocumentInfo,
    TemplateInfo, HealthResponse,
    KnowledgeSearchRequest, SearchResultInfo,
    KnowledgeDocumentRequest, KnowledgeDocumentUpdate, KnowledgeDocumentResponse,
    KnowledgeStatsResponse,
)
from .config import ConsultConfig
from .errors import LegalConsultError, TemplateNotFoundError, ValidationError
from .models import GenerationOptions, KnowledgeDocument, LegalSource

# Load environment variables
load_dotenv()
logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Could not complete your request"

app = FastAPI(
    title="Legal Consultation API",
    description="AI legal consultations, document generation and legal knowledge search",
    version=__version__,
)

# Configure CORS: use CORS_ORIGINS env var (comma-separated) or default to localhost
_cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in _cors_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Service Container - builds the pipeline once, on first use
# =============================================================================

class ServiceContainer:
    """Lazily constructed, explicitly wired pipeline components."""

    def __init__(
        self,
        config: Optional[ConsultConfig] = None,
        store=None,
        embedder=None,
        generator=None,
    ):
        self._config = config
        self._store = store
        self._embedder = embedder
        self._generator = generator
        self._retriever = None
        self._coordinator = None
        self._templates = None
        self._document_generator = None

    @property
    def config(self) -> ConsultConfig:
        if self._config is None:
            self._config = ConsultConfig.from_env()
        return self._config

    def get_store(self):
        # Connects on first query; the schema is created by init_knowledge_base.py
        if self._store is None:
            from .vector_store import get_vector_store
            self._store = get_vector_store(self.config)
        return self._store

    def get_embedder(self):
        if self._embedder is None:
            from .embeddings import get_embedding_service
            self._embedder = get_embedding_service(self.config)
        return self._embedder

    def get_generator(self):
        if self._generator is None:
            from .generation import GenerationService
            self._generator = GenerationService(self.config, embedder=self.get_embedder())
        return self._generator

    def get_retriever(self):
        if self._retriever is None:
            from .retriever import KnowledgeRetriever
            self._retriever = KnowledgeRetriever(
                self.get_embedder(), self.get_store(), self.get_generator(),
            )
        return self._retriever

    def get_coordinator(self):
        if self._coordinator is None:
            from .agents import default_agent_registry
            from .coordinator import ConsultationCoordinator
            generator = self.get_generator()
            registry = default_agent_registry(
                generator,
                retriever=self.get_retriever(),
                augment_prompt=self.config.augment_prompt_with_retrieval,
            )
            self._coordinator = ConsultationCoordinator(registry, generator)
        return self._coordinator

    def get_templates(self):
        if self._templates is None:
            from .templates import default_template_registry
            self._templates = default_template_registry()
        return self._templates

    def get_document_generator(self):
        if self._document_generator is None:
            from .document_generator import DocumentGenerator
            self._document_generator = DocumentGenerator(
                self.get_templates(), self.get_coordinator(),
            )
        return self._document_generator


_container = ServiceContainer()


# =============================================================================
# Error mapping
# =============================================================================

@app.exception_handler(LegalConsultError)
def handle_pipeline_error(request: Request, exc: LegalConsultError):
    if isinstance(exc, TemplateNotFoundError):
        return JSONResponse(
            status_code=404,
            content={"error": exc.kind, "message": str(exc)},
        )
    if isinstance(exc, ValidationError):
        return JSONResponse(
            status_code=422,
            content={
                "error": exc.kind,
                "message": str(exc),
                "missing_fields": exc.missing_fields,
            },
        )
    logger.error(f"{request.url.path}: {exc.kind}: {exc}")
    return JSONResponse(
        status_code=502,
        content={"error": exc.kind, "message": GENERIC_ERROR_MESSAGE},
    )


def _source_info(source: LegalSource) -> SourceInfo:
    return SourceInfo(**source.to_dict())


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/api/v1/health", response_model=HealthResponse)
def health_check():
    """Per-agent health of the consultation pipeline."""
    health = _container.get_coordinator().health_check()
    return HealthResponse(
        status="ok" if health["overall"] else "degraded",
        version=__version__,
        overall=health["overall"],
        agents=health["agents"],
    )


@app.get("/api/v1/agents", response_model=list[AgentInfo])
def list_agents():
    """Registered specialized agents."""
    return [AgentInfo(**a) for a in _container.get_coordinator().available_agents()]


@app.post("/api/v1/consultation", response_model=ConsultationResponse)
def consultation(request: ConsultationRequest):
    """Route a legal question to the best-matching agent."""
    start = time.time()
    result = _container.get_coordinator().route(request.query, request.context.to_context())
    return ConsultationResponse(
        response=result.response,
        confidence=result.confidence,
        suggestions=[
            SuggestionInfo(
                id=s.id,
                type=s.type.value,
                title=s.title,
                description=s.description,
                confidence=s.confidence,
                action_type=s.action.type,
                parameters=s.action.parameters,
            )
            for s in result.suggestions
        ],
        sources=[_source_info(s) for s in result.sources],
        reasoning=result.reasoning,
        agent=result.agent,
        latency_ms=round((time.time() - start) * 1000, 1),
    )


@app.get("/api/v1/templates", response_model=list[TemplateInfo])
def list_templates(legal_area: Optional[str] = None):
    """Registered document templates, optionally filtered by legal area."""
    return [
        TemplateInfo(
            id=t.id,
            name=t.name,
            description=t.description,
            legal_area=t.legal_area,
            category=t.category.value,
            required_fields=list(t.required_fields),
            optional_fields=list(t.optional_fields),
            output_format=t.output_format.value,
        )
        for t in _container.get_templates().list_templates(legal_area)
    ]


@app.post("/api/v1/documents/generate", response_model=DocumentGenerateResponse)
def generate_document(request: DocumentGenerateRequest):
    """Generate a legal document from a template."""
    result = _container.get_document_generator().generate(
        request.template_id,
        request.data,
        request.context.to_context(),
        GenerationOptions(format=request.format),
    )
    doc = result.document
    return DocumentGenerateResponse(
        document=GeneratedDocumentInfo(
            id=doc.id,
            content=doc.content,
            template_id=doc.template_id,
            generated_at=doc.generated_at,
            version=doc.version,
        ),
        confidence=result.confidence,
        suggestions=result.suggestions,
        warnings=result.warnings,
        metadata=result.metadata,
    )


@app.post("/api/v1/knowledge/search", response_model=list[SearchResultInfo])
def search_knowledge(request: KnowledgeSearchRequest):
    """Search the legal knowledge base."""
    results = _container.get_retriever().search(
        request.query,
        request.context.to_context(),
        limit=request.limit,
        threshold=request.threshold,
        include_metadata=request.include_metadata,
    )
    response = []
    for r in results:
        meta = r.metadata
        response.append(SearchResultInfo(
            id=r.id,
            title=r.title,
            content=r.content,
            relevance=r.relevance,
            source=_source_info(r.source),
            legal_area=meta.legal_area if meta else None,
            jurisdiction=meta.jurisdiction if meta else None,
            authority=meta.authority if meta else None,
            last_updated=meta.last_updated if meta else None,
        ))
    return response


@app.post("/api/v1/knowledge/documents", response_model=KnowledgeDocumentResponse)
def add_knowledge_document(request: KnowledgeDocumentRequest):
    """Chunk, embed and store a legal text."""
    chunks = _container.get_retriever().add_document(KnowledgeDocument(
        id=request.id,
        title=request.title,
        content=request.content,
        legal_area=request.legal_area.value,
        authority=request.authority,
        url=request.url,
    ))
    return KnowledgeDocumentResponse(document_id=request.id, chunks=chunks)


@app.put("/api/v1/knowledge/documents/{document_id}", response_model=KnowledgeDocumentResponse)
def update_knowledge_document(document_id: str, update: KnowledgeDocumentUpdate):
    """Replace a stored legal text (delete, then re-add if content is given)."""
    chunks = _container.get_retriever().update_document(
        document_id,
        title=update.title,
        content=update.content,
        legal_area=update.legal_area.value if update.legal_area else None,
        authority=update.authority,
        url=update.url,
    )
    return KnowledgeDocumentResponse(document_id=document_id, chunks=chunks)


@app.get("/api/v1/knowledge/stats", response_model=KnowledgeStatsResponse)
def knowledge_stats():
    """Knowledge-base statistics (zeroed when the store is unreachable)."""
    stats = _container.get_retriever().get_stats()
    return KnowledgeStatsResponse(
        total_documents=stats.total_documents,
        total_chunks=stats.total_chunks,
        legal_areas=stats.legal_areas,
        last_updated=stats.last_updated,
    )
