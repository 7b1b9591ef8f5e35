"""
Retrieval component (RAG) over the legal knowledge base

Embeds queries, runs filtered similarity search against the knowledge
store and normalizes the hits into ``SearchResult`` records. Also owns
knowledge-base mutation (paragraph chunking, embedding, delete-then-insert
updates) and the retrieval-grounded contextual answer.
"""

import time
import logging
from typing import Optional

from .errors import GenerationError, KnowledgeBaseError, RetrievalError
from .models import (
    ContextualResponse,
    Jurisdiction,
    KnowledgeBaseStats,
    KnowledgeChunk,
    KnowledgeDocument,
    LegalArea,
    LegalContext,
    LegalSource,
    SearchMetadata,
    SearchResult,
    StoreMatch,
    clamp_score,
)
from .prompts import RETRIEVAL_CONTEXT_HEADER

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
DEFAULT_THRESHOLD = 0.7
CONTEXT_LIMIT = 5
CONTEXT_THRESHOLD = 0.6
EXCERPT_LENGTH = 200
MIN_CHUNK_LENGTH = 50

UPDATED_DOCUMENT_TITLE = "Обновленный документ"


def make_excerpt(content: str, length: int = EXCERPT_LENGTH) -> str:
    """Fixed-length prefix of ``content``; '...' marks truncation."""
    if len(content) <= length:
        return content
    return content[:length] + "..."


def format_passages(results: list[SearchResult]) -> str:
    """Render passages as "[authority] title: content" blocks for a prompt."""
    return "\n\n".join(
        f"[{r.metadata.authority if r.metadata else 'unknown'}] {r.title}: {r.content}"
        for r in results
    )


def chunk_document(document: KnowledgeDocument) -> list[tuple[str, str, str]]:
    """
    Split a document into blank-line-delimited paragraphs.

    Paragraphs shorter than 50 characters (after trimming) are dropped.

    Returns:
        (chunk_id, content, section) tuples, numbered consecutively over
        the kept paragraphs.
    """
    chunks = []
    for paragraph in document.content.split("\n\n"):
        text = paragraph.strip()
        if len(text) < MIN_CHUNK_LENGTH:
            continue
        index = len(chunks)
        chunks.append((
            f"{document.id}_chunk_{index}",
            text,
            f"Раздел {index + 1}",
        ))
    return chunks


class KnowledgeRetriever:
    """
    Retrieval over the knowledge store.

    Dependencies are injected: an embedder (``embed_query`` /
    ``embed_documents``), a knowledge store (``similarity_search`` /
    ``upsert`` / ``delete_document`` / ``stats``) and, for contextual
    answers, a generation service (``get_legal_consultation``).
    """

    def __init__(self, embedder, store, generator=None):
        self.embedder = embedder
        self.store = store
        self.generator = generator

    # =========================================================================
    # Search
    # =========================================================================

    def search(
        self,
        query: str,
        context: LegalContext,
        limit: Optional[int] = None,
        threshold: Optional[float] = None,
        include_metadata: bool = True,
    ) -> list[SearchResult]:
        """
        Find knowledge-base passages relevant to ``query``.

        Args:
            query: Free-text question
            context: Legal context; its area and dispute type filter the search
            limit: Maximum number of results (default 10)
            threshold: Minimum relevance (default 0.7)
            include_metadata: Attach SearchMetadata to each result

        Returns:
            Results in the store's descending-relevance order

        Raises:
            RetrievalError: If embedding or the store search fails.
        """
        limit = DEFAULT_LIMIT if limit is None else limit
        threshold = DEFAULT_THRESHOLD if threshold is None else threshold
        filters = {
            "legal_area": context.area.value,
            "jurisdiction": Jurisdiction.RUSSIA.value,
        }
        if context.dispute_type:
            filters["dispute_type"] = context.dispute_type

        start = time.time()
        try:
            embedding = self.embedder.embed_query(query)
            matches = self.store.similarity_search(
                embedding,
                limit=limit,
                threshold=threshold,
                filters=filters,
            )
        except Exception as e:
            logger.error(f"Knowledge search failed: {e}")
            raise RetrievalError("knowledge search failed", cause=e) from e

        results = []
        for match in matches:
            if len(results) >= limit:
                break
            relevance = clamp_score(match.similarity)
            if relevance < threshold:
                continue
            results.append(self._to_result(match, relevance, include_metadata))

        logger.info(
            f"Knowledge search ({context.area.value}) returned {len(results)} results "
            f"in {(time.time() - start) * 1000:.0f}ms"
        )
        return results

    @staticmethod
    def _to_result(match: StoreMatch, relevance: float, include_metadata: bool) -> SearchResult:
        meta = match.metadata or {}
        title = meta.get("title") or ""
        metadata = None
        if include_metadata:
            metadata = SearchMetadata(
                legal_area=meta.get("legal_area", ""),
                jurisdiction=meta.get("jurisdiction", Jurisdiction.RUSSIA.value),
                last_updated=meta.get("last_updated"),
                authority=meta.get("authority") or "unknown",
            )
        return SearchResult(
            id=match.id,
            title=title,
            content=match.content,
            relevance=relevance,
            source=LegalSource(
                id=meta.get("document_id") or match.id,
                title=title,
                type=meta.get("source_type") or "law",
                url=meta.get("url"),
                relevance=relevance,
                excerpt=make_excerpt(match.content),
            ),
            metadata=metadata,
        )

    def generate_contextual_response(
        self,
        query: str,
        context: LegalContext,
    ) -> ContextualResponse:
        """
        Answer ``query`` grounded in the top retrieved passages.

        The top 5 passages (relevance >= 0.6) are rendered as
        "[authority] title: content" blocks and appended to the query.

        Raises:
            RetrievalError: If the search fails.
            GenerationError: If the generation call fails.
        """
        if self.generator is None:
            raise RetrievalError("No generation service configured")

        results = self.search(
            query, context, limit=CONTEXT_LIMIT, threshold=CONTEXT_THRESHOLD
        )
        prompt = f"{query}\n\n{RETRIEVAL_CONTEXT_HEADER}\n{format_passages(results)}"

        try:
            consultation = self.generator.get_legal_consultation(prompt, context)
        except (RetrievalError, GenerationError):
            raise
        except Exception as e:
            logger.error(f"Contextual response failed: {e}")
            raise RetrievalError("contextual response failed", cause=e) from e

        sources = [r.source for r in results]
        seen = {s.id for s in sources}
        for source in consultation.sources:
            if source.id not in seen:
                sources.append(source)
                seen.add(source.id)

        return ContextualResponse(
            response=consultation.response,
            sources=sources,
            confidence=clamp_score(consultation.confidence),
        )

    # =========================================================================
    # Knowledge-base mutation
    # =========================================================================

    def add_document(self, document: KnowledgeDocument) -> int:
        """
        Chunk, embed and store a document.

        Returns:
            Number of chunks stored

        Raises:
            KnowledgeBaseError: If embedding or storing fails.
        """
        pieces = chunk_document(document)
        if not pieces:
            logger.warning(f"Document {document.id} has no paragraphs long enough to index")
            return 0

        try:
            embeddings = self.embedder.embed_documents([content for _, content, _ in pieces])
            chunks = [
                KnowledgeChunk(
                    id=chunk_id,
                    document_id=document.id,
                    content=content,
                    embedding=embedding,
                    title=document.title,
                    section=section,
                    legal_area=document.legal_area,
                    authority=document.authority,
                    url=document.url,
                    source_type=document.source_type,
                )
                for (chunk_id, content, section), embedding in zip(pieces, embeddings)
            ]
            self.store.upsert(chunks)
        except Exception as e:
            logger.error(f"Failed to add document {document.id}: {e}")
            raise KnowledgeBaseError("failed to add document", cause=e) from e

        logger.info(f"Added document {document.id} ({len(chunks)} chunks)")
        return len(chunks)

    def update_document(
        self,
        document_id: str,
        title: Optional[str] = None,
        content: Optional[str] = None,
        legal_area: Optional[str] = None,
        authority: Optional[str] = None,
        url: Optional[str] = None,
    ) -> int:
        """
        Replace a document: delete all its chunks, then re-add it if
        ``content`` is given.

        Returns:
            Number of chunks stored for the new version

        Raises:
            KnowledgeBaseError: If deleting or re-adding fails.
        """
        try:
            removed = self.store.delete_document(document_id)
        except Exception as e:
            logger.error(f"Failed to update document {document_id}: {e}")
            raise KnowledgeBaseError("failed to update document", cause=e) from e
        logger.info(f"Removed {removed} chunks of document {document_id}")

        if not content:
            return 0

        document = KnowledgeDocument(
            id=document_id,
            title=title or UPDATED_DOCUMENT_TITLE,
            content=content,
            legal_area=legal_area or LegalArea.CIVIL.value,
            authority=authority or "unknown",
            url=url,
        )
        try:
            return self.add_document(document)
        except KnowledgeBaseError as e:
            raise KnowledgeBaseError("failed to update document", cause=e.cause) from e

    def get_stats(self) -> KnowledgeBaseStats:
        """Knowledge-base statistics; zeroed if the store cannot be read."""
        try:
            return self.store.stats()
        except Exception as e:
            logger.warning(f"Knowledge base stats unavailable: {e}")
            return KnowledgeBaseStats()
