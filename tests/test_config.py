"""
Tests for execution/legal_consult/config.py and prompts.py
"""

import pytest


_ENV_VARS = (
    "LLM_BASE_URL", "LLM_API_KEY", "OPENAI_API_KEY", "LLM_MODEL", "LLM_FAST_MODEL",
    "LLM_TEMPERATURE", "LLM_MAX_TOKENS", "LLM_COST_PER_1K_TOKENS", "LLM_TIMEOUT",
    "LLM_MAX_RETRIES", "EMBEDDING_PROVIDER", "EMBEDDING_MODEL", "EMBEDDING_DIMENSIONS",
    "KNOWLEDGE_STORE", "POSTGRES_URL", "DATABASE_URL", "AUGMENT_PROMPT_WITH_RETRIEVAL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# ---------------------------------------------------------------------------
# ConsultConfig
# ---------------------------------------------------------------------------

class TestConsultConfig:

    def test_defaults(self):
        from execution.legal_consult.config import ConsultConfig
        cfg = ConsultConfig()
        assert cfg.llm_model == "gpt-4o"
        assert cfg.temperature == 0.7
        assert cfg.max_tokens == 2000
        assert cfg.max_retries == 2
        assert cfg.embedding_dimensions == 1536
        assert cfg.augment_prompt_with_retrieval is False

    def test_from_env_defaults(self, clean_env):
        from execution.legal_consult.config import ConsultConfig
        cfg = ConsultConfig.from_env()
        assert cfg.llm_api_key is None
        assert cfg.embedding_provider == "openai"
        assert cfg.embedding_model == "text-embedding-3-large"
        assert cfg.knowledge_store == "postgres"

    def test_from_env_overrides(self, clean_env):
        from execution.legal_consult.config import ConsultConfig
        clean_env.setenv("OPENAI_API_KEY", "sk-test")
        clean_env.setenv("LLM_MAX_TOKENS", "500")
        clean_env.setenv("LLM_TIMEOUT", "12.5")
        clean_env.setenv("KNOWLEDGE_STORE", "Memory")
        clean_env.setenv("AUGMENT_PROMPT_WITH_RETRIEVAL", "yes")
        cfg = ConsultConfig.from_env()
        assert cfg.llm_api_key == "sk-test"
        assert cfg.max_tokens == 500
        assert cfg.request_timeout == 12.5
        assert cfg.knowledge_store == "memory"
        assert cfg.augment_prompt_with_retrieval is True

    def test_llm_api_key_preferred_over_openai_key(self, clean_env):
        from execution.legal_consult.config import ConsultConfig
        clean_env.setenv("OPENAI_API_KEY", "sk-openai")
        clean_env.setenv("LLM_API_KEY", "sk-llm")
        assert ConsultConfig.from_env().llm_api_key == "sk-llm"

    def test_provider_defaults_follow_provider(self, clean_env):
        from execution.legal_consult.config import ConsultConfig
        clean_env.setenv("EMBEDDING_PROVIDER", "voyage")
        cfg = ConsultConfig.from_env()
        assert cfg.embedding_model == "voyage-multilingual-2"
        assert cfg.embedding_dimensions == 1024


# ---------------------------------------------------------------------------
# Prompt formatting
# ---------------------------------------------------------------------------

class TestPrompts:

    def test_every_document_prompt_mentions_template_and_context(self):
        from execution.legal_consult.prompts import DOCUMENT_PROMPTS
        for prompt in DOCUMENT_PROMPTS.values():
            assert "{template}" in prompt
            assert "{context}" in prompt

    def test_format_prompt_fills_missing_optionals(self):
        from execution.legal_consult.prompts import format_prompt
        text = format_prompt("A={a} B={b}", {"a": "1"})
        assert text == "A=1 B=не указано"

    def test_format_prompt_treats_blank_as_missing(self):
        from execution.legal_consult.prompts import format_prompt
        assert format_prompt("{a}|{b}", {"a": "  ", "b": None}) == "не указано|не указано"

    def test_get_document_prompt_unknown(self):
        from execution.legal_consult.prompts import get_document_prompt
        assert get_document_prompt("nope") is None
