"""
Document template registry.

Templates are registered once when the registry is built and are
read-only afterwards. The registry is an explicit object passed to the
document generator; there is no module-level instance.
"""

import logging
from typing import Iterable, Optional

from .errors import TemplateNotFoundError
from .models import DocumentCategory, DocumentTemplate, LegalArea, OutputFormat

logger = logging.getLogger(__name__)


BUILTIN_TEMPLATES = (
    DocumentTemplate(
        id="consumer_claim",
        name="Претензия по ЗЗПП",
        description="Претензия по защите прав потребителей",
        legal_area=LegalArea.CONSUMER_PROTECTION.value,
        category=DocumentCategory.CLAIM,
        required_fields=("seller_name", "product_description", "problem_description", "demands"),
        optional_fields=("purchase_date", "receipt_number", "warranty_period"),
        prompt_template_id="consumer_claim",
        output_format=OutputFormat.HTML,
    ),
    DocumentTemplate(
        id="labor_lawsuit",
        name="Исковое заявление по трудовому праву",
        description="Исковое заявление о восстановлении на работе или взыскании заработной платы",
        legal_area=LegalArea.LABOR.value,
        category=DocumentCategory.LAWSUIT,
        required_fields=(
            "employer_name", "position", "employment_period", "violation_description", "demands",
        ),
        optional_fields=("salary_amount", "contract_number", "dismissal_date"),
        prompt_template_id="labor_lawsuit",
        output_format=OutputFormat.HTML,
    ),
    DocumentTemplate(
        id="contract_template",
        name="Шаблон договора",
        description="Универсальный шаблон договора",
        legal_area=LegalArea.CIVIL.value,
        category=DocumentCategory.CONTRACT,
        required_fields=("party1_name", "party2_name", "subject", "terms", "payment_terms"),
        optional_fields=("contract_duration", "penalty_clause", "termination_conditions"),
        prompt_template_id="contract_template",
        output_format=OutputFormat.HTML,
    ),
    DocumentTemplate(
        id="administrative_complaint",
        name="Жалоба в административные органы",
        description="Жалоба на действия должностных лиц",
        legal_area=LegalArea.ADMINISTRATIVE.value,
        category=DocumentCategory.STATEMENT,
        required_fields=("authority_name", "violation_description", "evidence", "demands"),
        optional_fields=("violation_date", "witnesses", "documents"),
        prompt_template_id="administrative_complaint",
        output_format=OutputFormat.HTML,
    ),
)


class TemplateRegistry:
    """Named document templates, in registration order."""

    def __init__(self, templates: Optional[Iterable[DocumentTemplate]] = None):
        self._templates: dict[str, DocumentTemplate] = {}
        for template in templates or ():
            self.register(template)

    def register(self, template: DocumentTemplate) -> None:
        """
        Raises:
            ValueError: If the id is taken or the template has no required fields.
        """
        if template.id in self._templates:
            raise ValueError(f"Template '{template.id}' is already registered")
        if not template.required_fields:
            raise ValueError(f"Template '{template.id}' declares no required fields")
        self._templates[template.id] = template

    def get_template(self, template_id: str) -> Optional[DocumentTemplate]:
        return self._templates.get(template_id)

    def require(self, template_id: str) -> DocumentTemplate:
        """Like ``get_template`` but raises TemplateNotFoundError."""
        template = self._templates.get(template_id)
        if template is None:
            logger.warning(f"Template {template_id} not found")
            raise TemplateNotFoundError(template_id)
        return template

    def list_templates(self, legal_area: Optional[str] = None) -> list[DocumentTemplate]:
        templates = list(self._templates.values())
        if legal_area:
            return [t for t in templates if t.legal_area == legal_area]
        return templates

    def __contains__(self, template_id: str) -> bool:
        return template_id in self._templates

    def __len__(self) -> int:
        return len(self._templates)


def default_template_registry() -> TemplateRegistry:
    """Registry holding the four built-in templates."""
    return TemplateRegistry(BUILTIN_TEMPLATES)
