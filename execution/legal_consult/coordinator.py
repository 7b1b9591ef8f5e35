"""
Consultation router / coordinator

Picks the most specific registered agent for a legal context and runs the
query through it. When no agent qualifies, the query goes straight to the
generation service (the unspecialized "general" path).

Routing is re-evaluated on every call; nothing is cached.
"""

import logging

from .agents import AgentRegistry
from .errors import OrchestrationError, RoutingError
from .models import AgentResponse, Jurisdiction, LegalContext, Urgency

logger = logging.getLogger(__name__)

GENERAL_AGENT = "general"
GENERAL_REASONING = "Обработка выполнена общим агентом без специализации"


class ConsultationCoordinator:
    """
    Routes consultations to specialized agents.

    Args:
        agents: Explicitly constructed agent registry.
        generator: Generation service used by the unspecialized path.
    """

    def __init__(self, agents: AgentRegistry, generator):
        self.agents = agents
        self.generator = generator

    def select_agent(self, context: LegalContext):
        """
        Lowest-priority-value agent accepting ``context``, or None.

        Ties go to the agent registered first.
        """
        candidates = self.agents.candidates(context)
        if not candidates:
            return None
        return min(candidates, key=lambda agent: agent.priority)

    def route(self, query: str, context: LegalContext) -> AgentResponse:
        """
        Answer ``query`` with the best-matching agent.

        Raises:
            OrchestrationError: The selected agent failed (cause attached).
            RoutingError: No agent qualified and the general path failed.
        """
        agent = self.select_agent(context)

        if agent is None:
            logger.info(f"No agent for area '{context.area.value}', using general path")
            try:
                return self._process_general(query, context)
            except Exception as e:
                logger.error(f"General path failed: {e}")
                raise RoutingError(
                    "No specialized agent and the general path failed", cause=e
                ) from e

        logger.info(f"Using agent: {agent.name}")
        try:
            return agent.process_query(query, context)
        except Exception as e:
            logger.error(f"{agent.name} failed: {e}")
            raise OrchestrationError(
                f"{agent.name} could not process the query", cause=e
            ) from e

    def _process_general(self, query: str, context: LegalContext) -> AgentResponse:
        consultation = self.generator.get_legal_consultation(query, context)
        return AgentResponse(
            response=consultation.response,
            confidence=consultation.confidence,
            suggestions=[],
            sources=consultation.sources,
            reasoning=GENERAL_REASONING,
            agent=GENERAL_AGENT,
            tokens_used=consultation.tokens_used,
        )

    def available_agents(self) -> list[dict]:
        """Name, description, area and priority of every registered agent."""
        return [agent.describe() for agent in self.agents]

    def health_check(self) -> dict:
        """
        Check every agent's capability predicate.

        Each agent gets a minimal low-urgency context in its own area; no
        network calls are made. Using the agent's own area is deliberate: a
        single fixed civil context would report every non-civil agent
        unhealthy. A predicate that raises counts as unhealthy.

        Returns:
            {"overall": bool, "agents": {name: bool}}
        """
        results = {}
        for agent in self.agents:
            check_context = LegalContext(
                area=agent.profile.area,
                jurisdiction=Jurisdiction.RUSSIA,
                urgency=Urgency.LOW,
            )
            try:
                results[agent.name] = bool(agent.can_handle(check_context))
            except Exception as e:
                logger.warning(f"Health check failed for {agent.name}: {e}")
                results[agent.name] = False

        return {
            "overall": all(results.values()),
            "agents": results,
        }
