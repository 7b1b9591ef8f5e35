"""
Built-in specializations: consumer protection, labor law, civil law.
"""

from ..models import LegalArea, SuggestionType
from .base import AgentProfile, AgentRegistry, LegalAgent, SuggestionRule


CONSUMER_PROTECTION = AgentProfile(
    name="Consumer Protection Agent",
    description="Специализируется на вопросах защиты прав потребителей, возврата товаров, качества услуг",
    area=LegalArea.CONSUMER_PROTECTION,
    priority=1,
    domain_label="[ЗАЩИТА ПРАВ ПОТРЕБИТЕЛЕЙ]",
    reasoning="Анализ проведен с использованием специализированной базы знаний по защите прав потребителей",
    retrieval_threshold=0.8,
    rules=(
        SuggestionRule(
            id="1",
            keywords=("возврат", "товар"),
            type=SuggestionType.DOCUMENT,
            title="Составить претензию",
            description="Создать официальную претензию по ЗЗПП",
            confidence=0.9,
            action_type="generate_document",
            parameters={"template": "consumer_claim", "disputeType": "consumer_protection"},
        ),
        SuggestionRule(
            id="2",
            keywords=("некачественный", "брак"),
            type=SuggestionType.ACTION,
            title="Провести экспертизу",
            description="Рекомендуется провести независимую экспертизу товара",
            confidence=0.8,
            action_type="contact_lawyer",
            parameters={"specialty": "consumer_protection", "urgency": "medium"},
        ),
    ),
)

LABOR_LAW = AgentProfile(
    name="Labor Law Agent",
    description="Специализируется на трудовых спорах, увольнениях, зарплатах, трудовых договорах",
    area=LegalArea.LABOR,
    priority=1,
    domain_label="[ТРУДОВОЕ ПРАВО]",
    reasoning="Анализ проведен с использованием Трудового кодекса РФ и судебной практики",
    retrieval_threshold=0.8,
    rules=(
        SuggestionRule(
            id="1",
            keywords=("увольнение", "уволили"),
            type=SuggestionType.DOCUMENT,
            title="Составить исковое заявление",
            description="Создать исковое заявление о восстановлении на работе",
            confidence=0.9,
            action_type="generate_document",
            parameters={"template": "labor_lawsuit", "disputeType": "labor"},
        ),
        SuggestionRule(
            id="2",
            keywords=("зарплата", "задержка"),
            type=SuggestionType.ACTION,
            title="Обратиться в трудовую инспекцию",
            description="Подать жалобу в Государственную трудовую инспекцию",
            confidence=0.8,
            action_type="file_complaint",
            parameters={"authority": "labor_inspection", "urgency": "high"},
        ),
    ),
)

CIVIL_LAW = AgentProfile(
    name="Civil Law Agent",
    description="Специализируется на гражданских спорах, договорах, недвижимости, наследстве",
    area=LegalArea.CIVIL,
    priority=2,
    domain_label="[ГРАЖДАНСКОЕ ПРАВО]",
    reasoning="Анализ проведен с использованием Гражданского кодекса РФ и судебной практики",
    retrieval_threshold=0.7,
    rules=(
        SuggestionRule(
            id="1",
            keywords=("договор", "соглашение"),
            type=SuggestionType.DOCUMENT,
            title="Составить договор",
            description="Создать правовой документ с учетом ваших требований",
            confidence=0.8,
            action_type="generate_document",
            parameters={"template": "contract_template", "disputeType": "contract"},
        ),
    ),
)

DEFAULT_PROFILES = (CONSUMER_PROTECTION, LABOR_LAW, CIVIL_LAW)


def default_agent_registry(generator, retriever=None, augment_prompt: bool = False) -> AgentRegistry:
    """Registry with the three built-in specializations, in priority-tie order."""
    return AgentRegistry([
        LegalAgent(profile, generator, retriever=retriever, augment_prompt=augment_prompt)
        for profile in DEFAULT_PROFILES
    ])
