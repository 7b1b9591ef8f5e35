"""
Generation Service adapter

Wraps an OpenAI-compatible chat-completions endpoint behind the narrow
interface the orchestration layer needs: consultation completions with
confidence/source/token accounting, plus cheap classification and
complexity endpoints and a delegated embedding function.
"""

import re
import json
import time
import logging
from typing import Optional
from dataclasses import dataclass, field

from .config import ConsultConfig
from .errors import GenerationError
from .models import (
    ComplexityAssessment,
    Consultation,
    LegalArea,
    LegalContext,
    LegalSource,
    clamp_score,
    random_base36,
    to_base36,
)
from .prompts import (
    AREA_NAMES,
    CLASSIFY_SYSTEM,
    COMPLEXITY_SYSTEM,
    CONFIDENCE_PATTERN,
    CONSULTATION_SYSTEM,
    CONSULTATION_USER,
    DEFAULT_CONFIDENCE,
    SOURCES_PATTERN,
    TRAILER_LINE_PATTERN,
)

logger = logging.getLogger(__name__)

DEFAULT_AREA = LegalArea.CIVIL.value
COMPLEXITY_LEVELS = ("simple", "medium", "complex")


@dataclass
class Completion:
    """Parsed result of one generation call."""
    text: str
    confidence: float
    sources: list[LegalSource] = field(default_factory=list)
    tokens_used: int = 0
    cost: float = 0.0
    model: str = ""


def parse_confidence(text: str) -> float:
    """Read the 'Уверенность: NN' trailer as a [0, 1] score (0.85 if absent)."""
    match = CONFIDENCE_PATTERN.search(text or "")
    if not match:
        return DEFAULT_CONFIDENCE
    return clamp_score(int(match.group(1)) / 100, DEFAULT_CONFIDENCE)


def parse_sources(text: str) -> list[LegalSource]:
    """Read the comma-separated 'Источники:' trailer into LegalSource records."""
    match = SOURCES_PATTERN.search(text or "")
    if not match:
        return []
    titles = [t.strip() for t in match.group(1).split(",")]
    return [
        LegalSource(id=f"src_{i}", title=title, type="law")
        for i, title in enumerate(t for t in titles if t)
    ]


def strip_trailers(text: str) -> str:
    """Drop the 'Источники:' and 'Уверенность:' lines from an answer."""
    body = TRAILER_LINE_PATTERN.sub("", text or "")
    return re.sub(r"\n{3,}", "\n\n", body).strip()


def new_consultation_id() -> str:
    return random_base36(9) + to_base36(int(time.time() * 1000))


class GenerationService:
    """
    Text generation over an OpenAI-compatible API.

    The client is created lazily with an explicit timeout and bounded
    retries (the SDK backs off exponentially between attempts).
    """

    def __init__(
        self,
        config: Optional[ConsultConfig] = None,
        client=None,
        embedder=None,
    ):
        """
        Args:
            config: Pipeline configuration. Read from the environment if omitted.
            client: Pre-built OpenAI client (tests inject a mock).
            embedder: Embedding service backing ``embed()``.
        """
        self.config = config or ConsultConfig.from_env()
        self._client = client
        self._embedder = embedder

    def _get_client(self):
        """Get or create the cached OpenAI client."""
        if self._client is None:
            from openai import OpenAI
            self._client = OpenAI(
                base_url=self.config.llm_base_url,
                api_key=self.config.llm_api_key,
                timeout=self.config.request_timeout,
                max_retries=self.config.max_retries,
            )
        return self._client

    # =========================================================================
    # Completions
    # =========================================================================

    def complete(
        self,
        prompt: str,
        context: Optional[LegalContext] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Completion:
        """
        Generate text for ``prompt``.

        With a context the prompt is framed as a consultation in the
        context's legal area. The answer's confidence/source trailer lines
        are parsed into the result and removed from its text.

        Raises:
            GenerationError: On any upstream failure or an empty answer.
        """
        model = model or self.config.llm_model
        messages = []
        if context is not None:
            area_name = AREA_NAMES.get(context.area.value, context.area.value)
            messages.append({
                "role": "system",
                "content": CONSULTATION_SYSTEM.format(area_name=area_name),
            })
            messages.append({
                "role": "user",
                "content": CONSULTATION_USER.format(
                    area_name=area_name,
                    urgency=context.urgency.value,
                    query=prompt,
                ),
            })
        else:
            messages.append({"role": "user", "content": prompt})

        try:
            response = self._get_client().chat.completions.create(
                model=model,
                messages=messages,
                max_tokens=max_tokens or self.config.max_tokens,
                temperature=self.config.temperature if temperature is None else temperature,
            )
        except Exception as e:
            logger.error(f"Text generation failed ({model}): {e}")
            raise GenerationError("Text generation failed", cause=e) from e

        raw = response.choices[0].message.content if response.choices else None
        raw = raw.strip() if raw else ""
        text = strip_trailers(raw)
        if not text:
            logger.error(f"Empty response from generation service ({model})")
            raise GenerationError("Empty response from generation service")

        usage = getattr(response, "usage", None)
        tokens = int(getattr(usage, "total_tokens", 0) or 0)
        return Completion(
            text=text,
            confidence=parse_confidence(raw),
            sources=parse_sources(raw),
            tokens_used=tokens,
            cost=tokens / 1000 * self.config.cost_per_1k_tokens,
            model=getattr(response, "model", None) or model,
        )

    def get_legal_consultation(
        self,
        query: str,
        context: LegalContext,
        user_id: str = "anonymous",
    ) -> Consultation:
        """Answer a legal question in the given context."""
        start = time.time()
        completion = self.complete(query, context=context)
        logger.info(
            f"Consultation generated in {time.time() - start:.2f}s "
            f"({completion.tokens_used} tokens, confidence={completion.confidence:.2f})"
        )
        return Consultation(
            id=new_consultation_id(),
            user_id=user_id,
            query=query,
            context=context,
            response=completion.text,
            confidence=completion.confidence,
            sources=completion.sources,
            model=completion.model,
            tokens_used=completion.tokens_used,
            cost=completion.cost,
        )

    # =========================================================================
    # Lightweight endpoints
    # =========================================================================

    def embed(self, text: str) -> list[float]:
        """Embed ``text`` with the configured embedding service."""
        if self._embedder is None:
            from .embeddings import get_embedding_service
            self._embedder = get_embedding_service(self.config)
        return self._embedder.embed_query(text)

    def classify_legal_area(
        self,
        text: str,
        categories: Optional[list[str]] = None,
    ) -> str:
        """
        Pick the legal area of ``text`` among ``categories``.

        Degrades to "civil" when the call fails or the label is unknown.
        """
        categories = categories or [area.value for area in LegalArea]
        try:
            response = self._get_client().chat.completions.create(
                model=self.config.llm_fast_model,
                messages=[{
                    "role": "system",
                    "content": CLASSIFY_SYSTEM.format(categories=", ".join(categories)),
                }, {
                    "role": "user",
                    "content": text,
                }],
                max_tokens=20,
                temperature=0.0,
            )
            raw = response.choices[0].message.content or ""
        except Exception as e:
            logger.warning(f"Legal area classification failed: {e}. Using '{DEFAULT_AREA}'.")
            return DEFAULT_AREA

        label = raw.strip().strip(".").lower()
        if label in categories:
            return label
        logger.warning(f"Unknown legal area label '{label}'. Using '{DEFAULT_AREA}'.")
        return DEFAULT_AREA

    def analyze_complexity(self, text: str) -> ComplexityAssessment:
        """Estimate how hard a question is. Degrades to medium / 15 min."""
        try:
            response = self._get_client().chat.completions.create(
                model=self.config.llm_fast_model,
                messages=[{
                    "role": "system",
                    "content": COMPLEXITY_SYSTEM,
                }, {
                    "role": "user",
                    "content": text,
                }],
                max_tokens=100,
                temperature=0.0,
            )
            raw = (response.choices[0].message.content or "").strip()
            if raw.startswith("```"):
                raw = raw.strip("`")
                if raw.startswith("json"):
                    raw = raw[4:]
            data = json.loads(raw)
            complexity = data.get("complexity", "medium")
            return ComplexityAssessment(
                complexity=complexity if complexity in COMPLEXITY_LEVELS else "medium",
                estimated_time=int(data.get("estimatedTime", 15)),
                requires_expert=bool(data.get("requiresExpert", False)),
            )
        except Exception as e:
            logger.warning(f"Complexity analysis failed: {e}. Using defaults.")
            return ComplexityAssessment()

    def health_check(self) -> bool:
        """Return True when the generation endpoint answers."""
        try:
            self._get_client().models.list()
            return True
        except Exception as e:
            logger.warning(f"Generation service health check failed: {e}")
            return False


# CLI for testing
if __name__ == "__main__":
    import sys
    from dotenv import load_dotenv

    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    service = GenerationService()
    query = " ".join(sys.argv[1:]) or "Как вернуть бракованный товар?"
    area = service.classify_legal_area(query)
    print(f"Area: {area}")
    consultation = service.get_legal_consultation(query, LegalContext(area=LegalArea(area)))
    print(consultation.response)
    print(f"\nConfidence: {consultation.confidence:.2f}, tokens: {consultation.tokens_used}")
