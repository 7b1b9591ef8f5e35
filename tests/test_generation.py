"""
Tests for execution/legal_consult/generation.py

Covers: confidence/source parsing, completions, consultations, error
        wrapping, classification / complexity degradation, health check.

The OpenAI client is always a MagicMock.
"""

import re
from unittest.mock import patch, MagicMock

import pytest


@pytest.fixture
def config():
    from execution.legal_consult.config import ConsultConfig
    return ConsultConfig(llm_api_key="sk-test", cost_per_1k_tokens=0.02)


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

class TestParsing:

    def test_parse_confidence(self):
        from execution.legal_consult.generation import parse_confidence
        assert parse_confidence("Ответ...\nУверенность: 73") == pytest.approx(0.73)

    def test_parse_confidence_default(self):
        from execution.legal_consult.generation import parse_confidence
        assert parse_confidence("Без оценки") == 0.85

    def test_parse_confidence_clamped(self):
        from execution.legal_consult.generation import parse_confidence
        assert parse_confidence("Уверенность: 250") == 1.0

    def test_parse_sources(self):
        from execution.legal_consult.generation import parse_sources
        sources = parse_sources("Текст\nИсточники: ГК РФ ст. 450, ТК РФ ст. 81 ,\nУверенность: 90")
        assert [s.title for s in sources] == ["ГК РФ ст. 450", "ТК РФ ст. 81"]
        assert [s.id for s in sources] == ["src_0", "src_1"]
        assert all(s.relevance is None for s in sources)

    def test_parse_sources_absent(self):
        from execution.legal_consult.generation import parse_sources
        assert parse_sources("Просто ответ") == []

    def test_strip_trailers_keeps_body(self):
        from execution.legal_consult.generation import strip_trailers
        text = "Ответ.\n\nОбоснование: ст. 18.\n\n\nИсточники: ГК РФ\n  Уверенность: 80\n"
        assert strip_trailers(text) == "Ответ.\n\nОбоснование: ст. 18."

    def test_consultation_id_format(self):
        from execution.legal_consult.generation import new_consultation_id
        assert re.fullmatch(r"[0-9a-z]{10,}", new_consultation_id())


# ---------------------------------------------------------------------------
# complete / get_legal_consultation
# ---------------------------------------------------------------------------

class TestComplete:

    def test_complete_with_context_builds_consultation_prompt(
        self, config, consumer_context, mock_openai_response
    ):
        from execution.legal_consult.generation import GenerationService
        client = MagicMock()
        client.chat.completions.create.return_value = mock_openai_response(
            "Ответ.\nИсточники: ЗоЗПП ст. 18\nУверенность: 90", total_tokens=500,
        )
        svc = GenerationService(config, client=client)

        result = svc.complete("Как вернуть товар?", context=consumer_context)

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_tokens"] == 2000
        assert kwargs["messages"][0]["role"] == "system"
        assert "Защита прав потребителей" in kwargs["messages"][0]["content"]
        assert "Как вернуть товар?" in kwargs["messages"][1]["content"]
        assert result.confidence == pytest.approx(0.9)
        assert result.sources[0].title == "ЗоЗПП ст. 18"
        assert result.tokens_used == 500
        assert result.cost == pytest.approx(0.01)

    def test_complete_without_context_sends_raw_prompt(self, config, mock_openai_response):
        from execution.legal_consult.generation import GenerationService
        client = MagicMock()
        client.chat.completions.create.return_value = mock_openai_response("ok")
        svc = GenerationService(config, client=client)

        svc.complete("Просто текст", temperature=0.0)

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "Просто текст"}]
        assert kwargs["temperature"] == 0.0

    def test_upstream_error_is_wrapped(self, config):
        from execution.legal_consult.errors import GenerationError
        from execution.legal_consult.generation import GenerationService
        client = MagicMock()
        boom = TimeoutError("read timeout")
        client.chat.completions.create.side_effect = boom
        svc = GenerationService(config, client=client)

        with pytest.raises(GenerationError) as exc_info:
            svc.complete("вопрос")
        assert exc_info.value.cause is boom

    def test_empty_answer_is_an_error(self, config, mock_openai_response):
        from execution.legal_consult.errors import GenerationError
        from execution.legal_consult.generation import GenerationService
        client = MagicMock()
        client.chat.completions.create.return_value = mock_openai_response("   ")
        svc = GenerationService(config, client=client)
        with pytest.raises(GenerationError):
            svc.complete("вопрос")

    def test_trailer_lines_are_removed_from_text(self, config, consumer_context, mock_openai_response):
        from execution.legal_consult.generation import GenerationService
        client = MagicMock()
        client.chat.completions.create.return_value = mock_openai_response(
            "Ответ: верните товар.\n\nИсточники: ЗоЗПП ст. 18\nУверенность: 92",
        )
        svc = GenerationService(config, client=client)

        result = svc.complete("Как вернуть товар?", context=consumer_context)

        assert result.text == "Ответ: верните товар."
        assert result.confidence == pytest.approx(0.92)
        assert [s.title for s in result.sources] == ["ЗоЗПП ст. 18"]

    def test_trailer_only_answer_is_an_error(self, config, mock_openai_response):
        from execution.legal_consult.errors import GenerationError
        from execution.legal_consult.generation import GenerationService
        client = MagicMock()
        client.chat.completions.create.return_value = mock_openai_response(
            "Источники: ГК РФ ст. 450\nУверенность: 70",
        )
        svc = GenerationService(config, client=client)
        with pytest.raises(GenerationError):
            svc.complete("вопрос")

    def test_get_legal_consultation(self, config, consumer_context, mock_openai_response):
        from execution.legal_consult.generation import GenerationService
        client = MagicMock()
        client.chat.completions.create.return_value = mock_openai_response(
            "Ответ.\nУверенность: 80", total_tokens=1000,
        )
        svc = GenerationService(config, client=client)

        consultation = svc.get_legal_consultation("вопрос", consumer_context, user_id="u1")

        assert consultation.user_id == "u1"
        assert consultation.context is consumer_context
        assert consultation.response == "Ответ."
        assert consultation.confidence == pytest.approx(0.8)
        assert consultation.tokens_used == 1000
        assert consultation.cost == pytest.approx(0.02)
        assert consultation.model == "gpt-4o"

    def test_client_built_with_timeout_and_retries(self, config):
        from execution.legal_consult.generation import GenerationService
        mock_openai = MagicMock()
        with patch.dict("sys.modules", {"openai": mock_openai}):
            GenerationService(config)._get_client()
        kwargs = mock_openai.OpenAI.call_args.kwargs
        assert kwargs["timeout"] == 60.0
        assert kwargs["max_retries"] == 2
        assert kwargs["api_key"] == "sk-test"


# ---------------------------------------------------------------------------
# Lightweight endpoints
# ---------------------------------------------------------------------------

class TestClassification:

    def test_known_label(self, config, mock_openai_response):
        from execution.legal_consult.generation import GenerationService
        client = MagicMock()
        client.chat.completions.create.return_value = mock_openai_response(" Labor.\n")
        svc = GenerationService(config, client=client)
        assert svc.classify_legal_area("Меня уволили") == "labor"
        assert client.chat.completions.create.call_args.kwargs["model"] == "gpt-4o-mini"

    def test_unknown_label_falls_back_to_civil(self, config, mock_openai_response):
        from execution.legal_consult.generation import GenerationService
        client = MagicMock()
        client.chat.completions.create.return_value = mock_openai_response("maritime")
        svc = GenerationService(config, client=client)
        assert svc.classify_legal_area("вопрос") == "civil"

    def test_failure_falls_back_to_civil(self, config):
        from execution.legal_consult.generation import GenerationService
        client = MagicMock()
        client.chat.completions.create.side_effect = ConnectionError("down")
        svc = GenerationService(config, client=client)
        assert svc.classify_legal_area("вопрос", ["tax", "labor"]) == "civil"


class TestComplexity:

    def test_parses_json(self, config, mock_openai_response):
        from execution.legal_consult.generation import GenerationService
        client = MagicMock()
        client.chat.completions.create.return_value = mock_openai_response(
            '```json\n{"complexity": "complex", "estimatedTime": 45, "requiresExpert": true}\n```'
        )
        svc = GenerationService(config, client=client)
        result = svc.analyze_complexity("Сложный спор о наследстве")
        assert result.complexity == "complex"
        assert result.estimated_time == 45
        assert result.requires_expert is True

    def test_invalid_json_degrades(self, config, mock_openai_response):
        from execution.legal_consult.generation import GenerationService
        client = MagicMock()
        client.chat.completions.create.return_value = mock_openai_response("не JSON")
        svc = GenerationService(config, client=client)
        result = svc.analyze_complexity("вопрос")
        assert (result.complexity, result.estimated_time, result.requires_expert) == ("medium", 15, False)


class TestHealthAndEmbed:

    def test_health_check_ok(self, config):
        from execution.legal_consult.generation import GenerationService
        svc = GenerationService(config, client=MagicMock())
        assert svc.health_check() is True

    def test_health_check_failure(self, config):
        from execution.legal_consult.generation import GenerationService
        client = MagicMock()
        client.models.list.side_effect = ConnectionError("down")
        assert GenerationService(config, client=client).health_check() is False

    def test_embed_delegates_to_embedder(self, config, mock_embedding_service):
        from execution.legal_consult.generation import GenerationService
        svc = GenerationService(config, client=MagicMock(), embedder=mock_embedding_service)
        assert svc.embed("вопрос") == mock_embedding_service.embed_query("вопрос")
