"""
Tests for execution/legal_consult/retriever.py

Covers: paragraph chunking, search normalisation (relevance bounds, limit,
        excerpts, metadata), contextual responses, add/update round trips,
        error wrapping and degraded statistics.
"""

from unittest.mock import MagicMock

import pytest


def _document(doc_id="zzpp", content=None, **kwargs):
    from execution.legal_consult.models import KnowledgeDocument
    from tests.conftest import SAMPLE_LAW_TEXT
    return KnowledgeDocument(
        id=doc_id,
        title=kwargs.pop("title", "Закон о защите прав потребителей"),
        content=SAMPLE_LAW_TEXT if content is None else content,
        legal_area=kwargs.pop("legal_area", "consumer_protection"),
        authority=kwargs.pop("authority", "Государственная Дума РФ"),
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Chunking
# ---------------------------------------------------------------------------

class TestChunkDocument:

    def test_short_paragraphs_are_dropped(self):
        from execution.legal_consult.retriever import chunk_document
        chunks = chunk_document(_document())
        # Title line and "Коротко." are under 50 characters
        assert len(chunks) == 3
        assert all(len(content) >= 50 for _, content, _ in chunks)

    def test_ids_and_sections_are_consecutive(self):
        from execution.legal_consult.retriever import chunk_document
        chunks = chunk_document(_document())
        assert [c[0] for c in chunks] == ["zzpp_chunk_0", "zzpp_chunk_1", "zzpp_chunk_2"]
        assert [c[2] for c in chunks] == ["Раздел 1", "Раздел 2", "Раздел 3"]

    def test_paragraphs_are_trimmed(self):
        from execution.legal_consult.retriever import chunk_document
        text = "   " + "а" * 60 + "   \n\n"
        chunks = chunk_document(_document(content=text))
        assert chunks[0][1] == "а" * 60


class TestMakeExcerpt:

    def test_long_content_truncated(self):
        from execution.legal_consult.retriever import make_excerpt
        excerpt = make_excerpt("x" * 300)
        assert excerpt == "x" * 200 + "..."

    def test_short_content_kept(self):
        from execution.legal_consult.retriever import make_excerpt
        assert make_excerpt("коротко") == "коротко"


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

class TestSearch:

    def test_finds_added_paragraph(self, retriever, consumer_context):
        from execution.legal_consult.retriever import chunk_document
        retriever.add_document(_document())
        target = chunk_document(_document())[1][1]

        results = retriever.search(target, consumer_context)

        assert results[0].id == "zzpp_chunk_1"
        assert results[0].relevance == pytest.approx(1.0)
        assert results[0].source.id == "zzpp"
        assert results[0].source.relevance == results[0].relevance
        assert results[0].metadata.authority == "Государственная Дума РФ"
        assert results[0].metadata.legal_area == "consumer_protection"

    def test_results_respect_threshold_and_limit(self, retriever, consumer_context):
        retriever.add_document(_document())
        results = retriever.search("возврат товара", consumer_context, limit=2, threshold=0.0)
        assert len(results) <= 2
        assert all(0.0 <= r.relevance <= 1.0 for r in results)

        strict = retriever.search("возврат товара", consumer_context, threshold=0.99)
        assert all(r.relevance >= 0.99 for r in strict)

    def test_filters_by_context_area(self, retriever, consumer_context):
        from execution.legal_consult.models import LegalArea
        from execution.legal_consult.retriever import chunk_document
        retriever.add_document(_document())
        target = chunk_document(_document())[0][1]
        labor = consumer_context.pinned(LegalArea.LABOR)
        assert retriever.search(target, labor, threshold=0.0) == []

    def test_excludes_metadata_on_request(self, retriever, consumer_context):
        from execution.legal_consult.retriever import chunk_document
        retriever.add_document(_document())
        target = chunk_document(_document())[0][1]
        results = retriever.search(target, consumer_context, include_metadata=False)
        assert results[0].metadata is None

    def test_passes_filters_and_defaults_to_store(self, mock_embedding_service, consumer_context):
        from dataclasses import replace
        from execution.legal_consult.retriever import KnowledgeRetriever
        store = MagicMock()
        store.similarity_search.return_value = []
        retriever = KnowledgeRetriever(mock_embedding_service, store)

        retriever.search("вопрос", replace(consumer_context, dispute_type="warranty"))

        kwargs = store.similarity_search.call_args.kwargs
        assert kwargs["limit"] == 10
        assert kwargs["threshold"] == 0.7
        assert kwargs["filters"] == {
            "legal_area": "consumer_protection",
            "jurisdiction": "russia",
            "dispute_type": "warranty",
        }

    def test_out_of_range_similarity_is_clamped(self, mock_embedding_service, consumer_context):
        from execution.legal_consult.models import StoreMatch
        from execution.legal_consult.retriever import KnowledgeRetriever
        store = MagicMock()
        store.similarity_search.return_value = [
            StoreMatch(id="a", content="текст", similarity=1.0000002, metadata={"title": "T"}),
        ]
        results = KnowledgeRetriever(mock_embedding_service, store).search("q", consumer_context)
        assert results[0].relevance == 1.0

    def test_limit_is_enforced_locally(self, mock_embedding_service, consumer_context):
        from execution.legal_consult.models import StoreMatch
        from execution.legal_consult.retriever import KnowledgeRetriever
        store = MagicMock()
        store.similarity_search.return_value = [
            StoreMatch(id="a", content="первый", similarity=0.95, metadata={"title": "A"}),
            StoreMatch(id="b", content="второй", similarity=0.9, metadata={"title": "B"}),
        ]
        retriever = KnowledgeRetriever(mock_embedding_service, store)

        assert retriever.search("q", consumer_context, limit=0) == []
        assert retriever.search("q", consumer_context, limit=-1) == []
        assert [r.id for r in retriever.search("q", consumer_context, limit=1)] == ["a"]

    def test_store_failure_becomes_retrieval_error(self, mock_embedding_service, consumer_context):
        from execution.legal_consult.errors import RetrievalError
        from execution.legal_consult.retriever import KnowledgeRetriever
        store = MagicMock()
        boom = ConnectionError("db down")
        store.similarity_search.side_effect = boom
        with pytest.raises(RetrievalError, match="knowledge search failed") as exc_info:
            KnowledgeRetriever(mock_embedding_service, store).search("q", consumer_context)
        assert exc_info.value.cause is boom

    def test_embedding_failure_becomes_retrieval_error(self, memory_store, consumer_context):
        from execution.legal_consult.errors import RetrievalError
        from execution.legal_consult.retriever import KnowledgeRetriever
        embedder = MagicMock()
        embedder.embed_query.side_effect = RuntimeError("no key")
        with pytest.raises(RetrievalError):
            KnowledgeRetriever(embedder, memory_store).search("q", consumer_context)


# ---------------------------------------------------------------------------
# Contextual response
# ---------------------------------------------------------------------------

class TestContextualResponse:

    def test_prompt_contains_passages_and_sources_are_merged(
        self, retriever, fake_generator, consumer_context
    ):
        from execution.legal_consult.retriever import chunk_document
        retriever.add_document(_document())
        query = chunk_document(_document())[0][1]

        result = retriever.generate_contextual_response(query, consumer_context)

        prompt, context = fake_generator.calls[-1]
        assert prompt.startswith(query + "\n\nКонтекст из правовой базы:\n")
        assert "[Государственная Дума РФ] Закон о защите прав потребителей:" in prompt
        assert context is consumer_context
        assert result.sources[0].id == "zzpp"
        assert "src_0" in [s.id for s in result.sources]
        assert result.confidence == pytest.approx(0.92)

    def test_generation_error_passes_through(self, retriever, fake_generator, consumer_context):
        from execution.legal_consult.errors import GenerationError
        fake_generator.error = GenerationError("upstream down")
        with pytest.raises(GenerationError):
            retriever.generate_contextual_response("вопрос", consumer_context)

    def test_unexpected_error_is_wrapped(self, retriever, fake_generator, consumer_context):
        from execution.legal_consult.errors import RetrievalError
        fake_generator.error = KeyError("boom")
        with pytest.raises(RetrievalError):
            retriever.generate_contextual_response("вопрос", consumer_context)


# ---------------------------------------------------------------------------
# Knowledge-base mutation
# ---------------------------------------------------------------------------

class TestAddAndUpdate:

    def test_add_document_stores_every_chunk(self, retriever, memory_store):
        assert retriever.add_document(_document()) == 3
        assert memory_store.stats().total_chunks == 3

    def test_add_document_without_long_paragraphs(self, retriever, memory_store):
        assert retriever.add_document(_document(content="коротко\n\nещё короче")) == 0
        assert memory_store.stats().total_chunks == 0

    def test_update_removes_all_old_chunks(self, retriever, memory_store, consumer_context):
        from execution.legal_consult.retriever import chunk_document
        retriever.add_document(_document())
        old_text = chunk_document(_document())[2][1]
        new_content = "Новая редакция статьи о сроках возврата денежных средств потребителю продавцом."

        stored = retriever.update_document("zzpp", title="Новая редакция", content=new_content,
                                           legal_area="consumer_protection")

        assert stored == 1
        assert memory_store.stats().total_chunks == 1
        ids = [r.id for r in retriever.search(old_text, consumer_context, threshold=0.0)]
        assert "zzpp_chunk_2" not in ids
        fresh = retriever.search(new_content, consumer_context)
        assert [r.id for r in fresh] == ["zzpp_chunk_0"]
        assert fresh[0].title == "Новая редакция"

    def test_update_defaults(self, retriever, memory_store):
        content = "Обновленный текст документа без указания отрасли права и органа власти."
        retriever.update_document("doc1", content=content)
        chunk = memory_store.similarity_search(
            retriever.embedder.embed_query(content), threshold=0.0
        )[0]
        assert chunk.metadata["title"] == "Обновленный документ"
        assert chunk.metadata["legal_area"] == "civil"
        assert chunk.metadata["authority"] == "unknown"

    def test_update_without_content_only_deletes(self, retriever, memory_store):
        retriever.add_document(_document())
        assert retriever.update_document("zzpp") == 0
        assert memory_store.stats().total_chunks == 0

    def test_add_failure_becomes_knowledge_base_error(self, mock_embedding_service):
        from execution.legal_consult.errors import KnowledgeBaseError
        from execution.legal_consult.retriever import KnowledgeRetriever
        store = MagicMock()
        store.upsert.side_effect = ConnectionError("db down")
        with pytest.raises(KnowledgeBaseError, match="failed to add document"):
            KnowledgeRetriever(mock_embedding_service, store).add_document(_document())

    def test_update_failure_becomes_knowledge_base_error(self, mock_embedding_service):
        from execution.legal_consult.errors import KnowledgeBaseError
        from execution.legal_consult.retriever import KnowledgeRetriever
        store = MagicMock()
        store.delete_document.side_effect = ConnectionError("db down")
        with pytest.raises(KnowledgeBaseError, match="failed to update document"):
            KnowledgeRetriever(mock_embedding_service, store).update_document("d", content="x")


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

class TestStats:

    def test_stats_from_store(self, retriever):
        retriever.add_document(_document())
        stats = retriever.get_stats()
        assert stats.total_documents == 1
        assert stats.legal_areas == {"consumer_protection": 1}

    def test_stats_failure_degrades_to_zero(self, mock_embedding_service):
        from execution.legal_consult.retriever import KnowledgeRetriever
        store = MagicMock()
        store.stats.side_effect = ConnectionError("db down")
        stats = KnowledgeRetriever(mock_embedding_service, store).get_stats()
        assert stats.total_documents == 0
        assert stats.total_chunks == 0
        assert stats.legal_areas == {}
