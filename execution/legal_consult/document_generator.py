"""
Document Generator

Turns a template id plus user-supplied field data into a formatted legal
document:

    template lookup -> required-field validation -> prompt formatting
    -> consultation coordinator -> header/footer structure -> output format
    -> static suggestions and warnings

Nothing is generated unless every required field is present and non-blank.
PDF and DOCX currently render the same HTML document; binary export is a
separate downstream component.
"""

import json
import time
import html
import logging
from typing import Any, Optional
from datetime import datetime

from .errors import GenerationError, TemplateNotFoundError, ValidationError
from .models import (
    DocumentCategory,
    DocumentGenerationResult,
    DocumentTemplate,
    GeneratedDocument,
    GenerationOptions,
    LegalArea,
    LegalContext,
    OutputFormat,
    clamp_score,
    random_base36,
    to_base36,
)
from .prompts import format_prompt, get_document_prompt
from .templates import TemplateRegistry

logger = logging.getLogger(__name__)

AGENT_USED = "multi-agent-system"
DATE_FORMAT = "%d.%m.%Y"

DISCLAIMER = (
    "<strong>Внимание:</strong> Данный документ сгенерирован с помощью AI и "
    "предназначен для ознакомительных целей. Рекомендуется консультация с "
    "квалифицированным юристом."
)
ATTRIBUTION = "Сгенерировано LawerApp"

FILL_OPTIONAL_SUGGESTION = "Рекомендуется заполнить все доступные поля для более точного документа"

CATEGORY_SUGGESTIONS = {
    DocumentCategory.CLAIM: [
        "Приложите копии документов, подтверждающих покупку",
        "Укажите точную дату покупки и номер чека",
    ],
    DocumentCategory.LAWSUIT: [
        "Соберите все документы, связанные с трудовыми отношениями",
        "Рассмотрите возможность досудебного урегулирования",
    ],
    DocumentCategory.CONTRACT: [
        "Проверьте все условия договора перед подписанием",
        "Рассмотрите возможность нотариального заверения",
    ],
}

COMMON_WARNINGS = [
    "Документ сгенерирован с помощью AI и требует проверки юристом",
    "Убедитесь в актуальности всех правовых норм",
]

AREA_WARNINGS = {
    LegalArea.CONSUMER_PROTECTION.value: "Проверьте сроки для подачи претензии",
    LegalArea.LABOR.value: "Убедитесь в соблюдении трудового законодательства",
    LegalArea.ADMINISTRATIVE.value: "Проверьте сроки подачи жалобы",
}

HTML_STYLE = """
    body { font-family: 'Times New Roman', serif; line-height: 1.6; margin: 40px; }
    .document-header { text-align: center; margin-bottom: 30px; border-bottom: 2px solid #333; padding-bottom: 20px; }
    .document-content { margin: 30px 0; }
    .document-footer { margin-top: 50px; padding-top: 20px; border-top: 1px solid #ccc; font-size: 0.9em; color: #666; }
    h1 { color: #333; margin-bottom: 10px; }
    h2 { color: #555; margin-top: 30px; }
    p { margin-bottom: 15px; text-align: justify; }
    .document-meta { display: flex; justify-content: space-between; margin-top: 15px; font-size: 0.9em; color: #666; }
"""


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def find_missing_fields(template: DocumentTemplate, data: dict) -> list[str]:
    """Required fields of ``template`` that are absent, None or blank in ``data``."""
    return [f for f in template.required_fields if f not in data or _is_blank(data[f])]


def new_document_id() -> str:
    return f"doc_{to_base36(int(time.time() * 1000))}_{random_base36(6)}"


def body_to_html(text: str) -> str:
    """Escape generated text and wrap blank-line-separated paragraphs in <p>."""
    paragraphs = [p.strip() for p in text.split("\n\n") if p.strip()]
    return "\n".join(
        "<p>" + html.escape(p).replace("\n", "<br>\n") + "</p>" for p in paragraphs
    )


def add_document_structure(body: str, template: DocumentTemplate, generated_at: datetime) -> str:
    """Wrap ``body`` (already HTML) in the fixed header and footer."""
    date = generated_at.strftime(DATE_FORMAT)
    header = (
        '<div class="document-header">\n'
        f"  <h1>{html.escape(template.name)}</h1>\n"
        f'  <p class="document-description">{html.escape(template.description)}</p>\n'
        '  <div class="document-meta">\n'
        f"    <span>Дата создания: {date}</span>\n"
        f"    <span>Тип документа: {template.category.value}</span>\n"
        "  </div>\n"
        "</div>"
    )
    footer = (
        '<div class="document-footer">\n'
        f"  <p>{DISCLAIMER}</p>\n"
        f"  <p>{ATTRIBUTION} • {date}</p>\n"
        "</div>"
    )
    return f'{header}\n<div class="document-content">\n{body}\n</div>\n{footer}'


def format_as_html(content: str, template: DocumentTemplate) -> str:
    """Complete styled HTML document around ``content``."""
    return (
        "<!DOCTYPE html>\n"
        '<html lang="ru">\n'
        "<head>\n"
        '  <meta charset="UTF-8">\n'
        '  <meta name="viewport" content="width=device-width, initial-scale=1.0">\n'
        f"  <title>{html.escape(template.name)}</title>\n"
        f"  <style>{HTML_STYLE}  </style>\n"
        "</head>\n"
        "<body>\n"
        f"{content}\n"
        "</body>\n"
        "</html>\n"
    )


# Binary PDF/DOCX rendering happens downstream; both reuse the HTML shell.
FORMATTERS = {
    OutputFormat.HTML: format_as_html,
    OutputFormat.PDF: format_as_html,
    OutputFormat.DOCX: format_as_html,
}


def build_suggestions(template: DocumentTemplate, data: dict) -> list[str]:
    suggestions = []
    if any(f not in data or _is_blank(data[f]) for f in template.optional_fields):
        suggestions.append(FILL_OPTIONAL_SUGGESTION)
    suggestions.extend(CATEGORY_SUGGESTIONS.get(template.category, []))
    return suggestions


def build_warnings(template: DocumentTemplate) -> list[str]:
    warnings = list(COMMON_WARNINGS)
    if template.legal_area in AREA_WARNINGS:
        warnings.append(AREA_WARNINGS[template.legal_area])
    return warnings


class DocumentGenerator:
    """
    Generates legal documents from registered templates.

    Args:
        templates: Template registry.
        coordinator: Consultation coordinator (``route``) that writes the body.
    """

    def __init__(self, templates: TemplateRegistry, coordinator):
        self.templates = templates
        self.coordinator = coordinator

    def generate(
        self,
        template_id: str,
        data: dict,
        context: LegalContext,
        options: Optional[GenerationOptions] = None,
    ) -> DocumentGenerationResult:
        """
        Generate a document.

        Args:
            template_id: Registered template id
            data: Field values keyed by field name
            context: Legal context, forwarded unchanged to the coordinator
            options: Output format / language overrides

        Returns:
            DocumentGenerationResult with the formatted document

        Raises:
            TemplateNotFoundError: Unknown template or prompt template.
            ValidationError: Required fields missing or blank.
            GenerationError: The coordinator or formatting failed.
        """
        start = time.time()
        data = data or {}

        template = self.templates.require(template_id)

        missing = find_missing_fields(template, data)
        if missing:
            logger.warning(f"{template_id}: missing required fields {missing}")
            raise ValidationError(missing)

        prompt_template = get_document_prompt(template.prompt_template_id)
        if prompt_template is None:
            logger.error(f"Prompt template {template.prompt_template_id} not found")
            raise TemplateNotFoundError(
                template.prompt_template_id,
                f"Prompt template {template.prompt_template_id} not found",
            )

        try:
            prompt = format_prompt(prompt_template, {
                **data,
                "context": json.dumps(context.to_dict(), ensure_ascii=False),
                "template": template.name,
            })

            agent_response = self.coordinator.route(prompt, context)

            generated_at = datetime.now()
            output_format = OutputFormat((options.format if options else None) or template.output_format)
            structured = add_document_structure(
                body_to_html(agent_response.response), template, generated_at
            )
            document = GeneratedDocument(
                id=new_document_id(),
                content=FORMATTERS[output_format](structured, template),
                template_id=template.id,
                generated_at=generated_at,
            )
        except Exception as e:
            logger.error(f"Document generation failed ({template_id}): {e}")
            raise GenerationError(f"Failed to generate document: {e}", cause=e) from e

        generation_time_ms = int((time.time() - start) * 1000)
        logger.info(
            f"Generated {document.id} from {template_id} as {output_format.value} "
            f"in {generation_time_ms}ms"
        )

        return DocumentGenerationResult(
            document=document,
            confidence=clamp_score(agent_response.confidence),
            suggestions=build_suggestions(template, data),
            warnings=build_warnings(template),
            metadata={
                "template_used": template.name,
                "agent_used": AGENT_USED,
                "tokens_used": agent_response.tokens_used,
                "generation_time_ms": generation_time_ms,
            },
        )
