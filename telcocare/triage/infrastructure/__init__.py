"""
Triage Infrastructure Layer
============================

Infrastructure implementations for ticket triage module.

Contains:
- Models: SQLAlchemy ORM models
- Repositories: Data access implementations
- External: Translation, classification and judgment adapters
"""

from telcocare.triage.infrastructure.models import TicketResultModel, TicketKeywordModel
from telcocare.triage.infrastructure.repositories import SQLAlchemyTicketResultRepository
from telcocare.triage.infrastructure.external import (
    TriageConfigLoader,
    HuggingFaceTranslationClient,
    MLServiceClient,
    GeminiJudgmentClient,
    MockTranslationClient,
    MockMLServiceClient
)

__all__ = [
    "TicketResultModel",
    "TicketKeywordModel",
    "SQLAlchemyTicketResultRepository",
    "TriageConfigLoader",
    "HuggingFaceTranslationClient",
    "MLServiceClient",
    "GeminiJudgmentClient",
    "MockTranslationClient",
    "MockMLServiceClient",
]
