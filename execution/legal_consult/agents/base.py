"""
Agent records and registry.

An agent is a plain record (``AgentProfile``: area, priority, domain label,
retrieval threshold, suggestion rules) bound to its collaborators by
``LegalAgent``. New specializations are added by registering another
profile; the coordinator never needs to change.
"""

import logging
from typing import Any, Iterator, Optional
from dataclasses import dataclass, field

from ..models import (
    AgentResponse,
    AISuggestion,
    LegalArea,
    LegalContext,
    LegalSource,
    SearchResult,
    SuggestedAction,
    SuggestionType,
)
from ..prompts import RETRIEVAL_CONTEXT_HEADER
from ..retriever import format_passages

logger = logging.getLogger(__name__)

RETRIEVAL_LIMIT = 5


@dataclass(frozen=True)
class SuggestionRule:
    """Keyword rule: any keyword found in the query emits one suggestion."""
    id: str
    keywords: tuple[str, ...]
    type: SuggestionType
    title: str
    description: str
    confidence: float
    action_type: str
    parameters: dict[str, Any] = field(default_factory=dict)

    def matches(self, query: str) -> bool:
        text = query.lower()
        return any(keyword in text for keyword in self.keywords)

    def to_suggestion(self) -> AISuggestion:
        return AISuggestion(
            id=self.id,
            type=self.type,
            title=self.title,
            description=self.description,
            confidence=self.confidence,
            action=SuggestedAction(type=self.action_type, parameters=dict(self.parameters)),
        )


@dataclass(frozen=True)
class AgentProfile:
    """Static description of one specialization."""
    name: str
    description: str
    area: LegalArea
    priority: int  # lower = preferred
    domain_label: str
    reasoning: str
    retrieval_threshold: float
    rules: tuple[SuggestionRule, ...] = ()


def build_suggestions(query: str, rules: tuple[SuggestionRule, ...]) -> list[AISuggestion]:
    """Apply keyword rules in order; each matching rule yields one suggestion."""
    return [rule.to_suggestion() for rule in rules if rule.matches(query)]


def merge_sources(primary: list[LegalSource], extra: list[LegalSource]) -> list[LegalSource]:
    """``primary`` followed by the ``extra`` sources whose id is not already present."""
    merged = list(primary)
    seen = {s.id for s in merged}
    for source in extra:
        if source.id not in seen:
            merged.append(source)
            seen.add(source.id)
    return merged


class LegalAgent:
    """
    A specialization bound to retrieval and generation.

    Args:
        profile: Static agent description.
        generator: Generation service (``get_legal_consultation``).
        retriever: Optional knowledge retriever (``search``).
        augment_prompt: Embed retrieved passages into the generation prompt
            and add their sources to the response.
    """

    def __init__(
        self,
        profile: AgentProfile,
        generator,
        retriever=None,
        augment_prompt: bool = False,
    ):
        self.profile = profile
        self.generator = generator
        self.retriever = retriever
        self.augment_prompt = augment_prompt

    @property
    def name(self) -> str:
        return self.profile.name

    @property
    def priority(self) -> int:
        return self.profile.priority

    def can_handle(self, context: LegalContext) -> bool:
        return context.area == self.profile.area

    def process_query(self, query: str, context: LegalContext) -> AgentResponse:
        """
        Answer ``query`` within this agent's specialization.

        Retrieval and generation errors propagate unchanged.
        """
        pinned = context.pinned(self.profile.area)

        results: list[SearchResult] = []
        if self.retriever is not None:
            results = self.retriever.search(
                query,
                pinned,
                limit=RETRIEVAL_LIMIT,
                threshold=self.profile.retrieval_threshold,
            )

        prompt = f"{self.profile.domain_label} {query}"
        if self.augment_prompt and results:
            prompt = f"{prompt}\n\n{RETRIEVAL_CONTEXT_HEADER}\n{format_passages(results)}"

        consultation = self.generator.get_legal_consultation(prompt, pinned)

        sources = consultation.sources
        if self.augment_prompt:
            sources = merge_sources(sources, [r.source for r in results])

        suggestions = build_suggestions(query, self.profile.rules)
        logger.info(
            f"{self.name}: {len(results)} passages, {len(suggestions)} suggestions, "
            f"confidence={consultation.confidence:.2f}"
        )

        return AgentResponse(
            response=consultation.response,
            confidence=consultation.confidence,
            suggestions=suggestions,
            sources=sources,
            reasoning=self.profile.reasoning,
            agent=self.name,
            tokens_used=consultation.tokens_used,
        )

    def describe(self) -> dict:
        return {
            "name": self.profile.name,
            "description": self.profile.description,
            "area": self.profile.area.value,
            "priority": self.profile.priority,
        }


class AgentRegistry:
    """Ordered, explicitly constructed set of agents."""

    def __init__(self, agents: Optional[list[LegalAgent]] = None):
        self._agents: list[LegalAgent] = []
        for agent in agents or []:
            self.register(agent)

    def register(self, agent: LegalAgent) -> None:
        """
        Add an agent; registration order breaks priority ties.

        Raises:
            ValueError: If an agent with the same name is already registered.
        """
        if any(a.name == agent.name for a in self._agents):
            raise ValueError(f"Agent '{agent.name}' is already registered")
        self._agents.append(agent)

    def candidates(self, context: LegalContext) -> list[LegalAgent]:
        return [agent for agent in self._agents if agent.can_handle(context)]

    def __iter__(self) -> Iterator[LegalAgent]:
        return iter(self._agents)

    def __len__(self) -> int:
        return len(self._agents)
