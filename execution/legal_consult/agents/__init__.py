"""
Specialized legal agents.

Each agent answers questions in one legal area: it queries the knowledge
base with the area pinned, asks the generation service with a
domain-tagged prompt and attaches keyword-driven suggestions.
"""

from .base import (
    AgentProfile,
    AgentRegistry,
    LegalAgent,
    SuggestionRule,
    build_suggestions,
)
from .specialists import (
    CIVIL_LAW,
    CONSUMER_PROTECTION,
    DEFAULT_PROFILES,
    LABOR_LAW,
    default_agent_registry,
)

__all__ = [
    "AgentProfile",
    "AgentRegistry",
    "LegalAgent",
    "SuggestionRule",
    "build_suggestions",
    "CIVIL_LAW",
    "CONSUMER_PROTECTION",
    "DEFAULT_PROFILES",
    "LABOR_LAW",
    "default_agent_registry",
]
