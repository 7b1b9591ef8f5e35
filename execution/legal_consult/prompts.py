"""
Prompt templates and domain labels for the consultation pipeline.

All prompts target Russian legislation and are written in Russian, the
language the product answers in.
"""

import re


# =============================================================================
# Legal area display names
# =============================================================================

AREA_NAMES = {
    "civil": "Гражданское право",
    "criminal": "Уголовное право",
    "administrative": "Административное право",
    "labor": "Трудовое право",
    "family": "Семейное право",
    "tax": "Налоговое право",
    "corporate": "Корпоративное право",
    "consumer_protection": "Защита прав потребителей",
}


# =============================================================================
# Consultation prompts
# =============================================================================

CONSULTATION_SYSTEM = """Вы - опытный юрист-консультант, специализирующийся на {area_name} в Российской Федерации.

ВАЖНЫЕ ПРИНЦИПЫ:
1. Отвечайте только на основе действующего российского законодательства
2. Указывайте конкретные статьи законов и нормативных актов
3. Давайте практические рекомендации
4. Предупреждайте о рисках и ограничениях
5. Рекомендуйте обращение к юристу в сложных случаях

СТРУКТУРА ОТВЕТА:
Ответ: [краткий ответ]

Правовое обоснование:
[подробное объяснение со ссылками на законы]

Рекомендации:
[практические советы]

Риски:
[возможные проблемы]

Следующие шаги:
[что делать дальше]

Источники: [список законов и статей через запятую]
Уверенность: [0-100]"""

CONSULTATION_USER = """Вопрос ({area_name}, срочность: {urgency}):

{query}

Пожалуйста, дайте подробную консультацию с учетом российского законодательства."""

RETRIEVAL_CONTEXT_HEADER = "Контекст из правовой базы:"

CLASSIFY_SYSTEM = """Определите отрасль права, к которой относится вопрос пользователя.
Ответьте ОДНИМ словом из списка: {categories}.
Никаких пояснений."""

COMPLEXITY_SYSTEM = """Оцените сложность правового вопроса.
Верните ТОЛЬКО JSON-объект вида:
{"complexity": "simple" | "medium" | "complex", "estimatedTime": <минуты>, "requiresExpert": true | false}"""


# Structured trailer lines the consultation prompt asks for
CONFIDENCE_PATTERN = re.compile(r"Уверенность:\s*(\d{1,3})")
SOURCES_PATTERN = re.compile(r"Источники:\s*([^\n]+)")
TRAILER_LINE_PATTERN = re.compile(r"^[ \t]*(?:Источники|Уверенность):[^\n]*\n?", re.MULTILINE)

DEFAULT_CONFIDENCE = 0.85


# =============================================================================
# Document prompt templates
# =============================================================================
# Placeholders are filled from the request data plus {template} (display
# name) and {context} (serialised LegalContext). Optional fields that were
# not supplied render as "не указано".

DOCUMENT_PROMPTS = {
    "consumer_claim": """Составьте документ «{template}» в соответствии с Законом РФ «О защите прав потребителей».

Продавец (исполнитель): {seller_name}
Товар (услуга): {product_description}
Дата покупки: {purchase_date}
Номер чека: {receipt_number}
Гарантийный срок: {warranty_period}
Суть претензии: {problem_description}
Требования потребителя: {demands}

Правовой контекст: {context}

Укажите применимые статьи закона, сроки удовлетворения требований и последствия их неисполнения.
Верните только текст документа без пояснений.""",

    "labor_lawsuit": """Составьте документ «{template}» в соответствии с Трудовым кодексом РФ.

Работодатель (ответчик): {employer_name}
Должность истца: {position}
Период работы: {employment_period}
Номер трудового договора: {contract_number}
Размер заработной платы: {salary_amount}
Дата увольнения: {dismissal_date}
Описание нарушения: {violation_description}
Исковые требования: {demands}

Правовой контекст: {context}

Укажите подсудность, применимые статьи ТК РФ и ГПК РФ, перечень прилагаемых документов.
Верните только текст документа без пояснений.""",

    "contract_template": """Составьте документ «{template}» в соответствии с Гражданским кодексом РФ.

Сторона 1: {party1_name}
Сторона 2: {party2_name}
Предмет договора: {subject}
Существенные условия: {terms}
Порядок оплаты: {payment_terms}
Срок действия: {contract_duration}
Неустойка: {penalty_clause}
Условия расторжения: {termination_conditions}

Правовой контекст: {context}

Оформите договор по разделам: предмет, права и обязанности сторон, цена и порядок расчетов, ответственность, порядок разрешения споров, реквизиты сторон.
Верните только текст документа без пояснений.""",

    "administrative_complaint": """Составьте документ «{template}» в соответствии с КоАП РФ и Федеральным законом «О порядке рассмотрения обращений граждан Российской Федерации».

Орган (должностное лицо): {authority_name}
Дата нарушения: {violation_date}
Описание нарушения: {violation_description}
Доказательства: {evidence}
Свидетели: {witnesses}
Прилагаемые документы: {documents}
Требования заявителя: {demands}

Правовой контекст: {context}

Укажите сроки рассмотрения жалобы и порядок дальнейшего обжалования.
Верните только текст документа без пояснений.""",
}

MISSING_FIELD_PLACEHOLDER = "не указано"


class _PromptFields(dict):
    """Format mapping that renders unknown placeholders as 'не указано'."""

    def __missing__(self, key):
        return MISSING_FIELD_PLACEHOLDER


def get_document_prompt(prompt_template_id: str):
    """Return the prompt template registered under ``prompt_template_id``, or None."""
    return DOCUMENT_PROMPTS.get(prompt_template_id)


def format_prompt(template: str, values: dict) -> str:
    """Fill ``template`` placeholders from ``values``.

    None and blank values are treated as not supplied.
    """
    fields = _PromptFields()
    for key, value in values.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        fields[key] = value
    return template.format_map(fields)
