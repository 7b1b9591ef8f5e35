"""
Error taxonomy for the consultation pipeline.

Failures are caught where they happen, logged, and re-raised as one of
these kinds with the original exception attached (``raise ... from e`` and
``.cause``). ``kind`` is the stable label reported to callers.
"""

from typing import Optional


class LegalConsultError(Exception):
    """Base class for all pipeline errors."""

    kind = "legal_consult_error"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class OrchestrationError(LegalConsultError):
    """The selected agent (or the fallback path) failed."""

    kind = "orchestration_error"


class RoutingError(OrchestrationError):
    """No agent qualified and the unspecialized fallback failed as well."""

    kind = "routing_error"


class RetrievalError(LegalConsultError):
    """Embedding or knowledge-store search failure."""

    kind = "retrieval_error"


class KnowledgeBaseError(RetrievalError):
    """Adding or updating a knowledge-base document failed."""

    kind = "knowledge_base_error"


class GenerationError(LegalConsultError):
    """Upstream text-generation failure."""

    kind = "generation_error"


class ValidationError(LegalConsultError):
    """Required template fields are missing or blank."""

    kind = "validation_error"

    def __init__(self, missing_fields: list[str]):
        super().__init__(f"Missing required fields: {', '.join(missing_fields)}")
        self.missing_fields = list(missing_fields)


class TemplateNotFoundError(LegalConsultError):
    """No document (or prompt) template registered under the given id."""

    kind = "template_not_found"

    def __init__(self, template_id: str, message: Optional[str] = None):
        super().__init__(message or f"Template {template_id} not found")
        self.template_id = template_id
