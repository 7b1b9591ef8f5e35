"""
Legal Consult - AI consultation pipeline for Russian law

This module provides:
- Routing of legal questions to specialized agents (consumer protection,
  labor law, civil law) with an unspecialized fallback
- Retrieval over an embedded legal knowledge base (pgvector)
- Grounded answers with confidence, sources and suggested actions
- Legal document generation from validated templates
"""

from .coordinator import ConsultationCoordinator
from .document_generator import DocumentGenerator
from .generation import GenerationService
from .retriever import KnowledgeRetriever
from .templates import TemplateRegistry
from .vector_store import InMemoryVectorStore, VectorStore

__all__ = [
    "ConsultationCoordinator",
    "DocumentGenerator",
    "GenerationService",
    "KnowledgeRetriever",
    "TemplateRegistry",
    "InMemoryVectorStore",
    "VectorStore",
]

__version__ = "0.1.0"
