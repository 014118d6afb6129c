"""
Triage Domain Layer
===================

Domain layer for the ticket triage pipeline.

Contains:
- Entities: Stage results (TicketRequest, ClassificationResult, JudgmentResult, ...)
- Value Objects: Immutable lookup tables (TriageConfig, ClusterProfile, KeywordRules)
- Judgment contract and prompt builder
- Escalation decision and keyword extraction

This layer is framework-agnostic and contains pure business logic.
"""

from telcocare.triage.domain.entities import (
    TicketRequest,
    TranslationResult,
    ClassificationResult,
    JudgmentResult,
    EscalationDecision,
    KeywordFrequency
)
from telcocare.triage.domain.value_objects import (
    ClusterProfile,
    KeywordRules,
    TriageConfig,
    DEFAULT_STOPWORDS
)
from telcocare.triage.domain.judgment import (
    JudgmentPayload,
    JudgmentPromptBuilder,
    judgment_json_schema,
    parse_judgment
)
from telcocare.triage.domain.escalation import decide_escalation
from telcocare.triage.domain.keywords import KeywordExtractor

__all__ = [
    "TicketRequest",
    "TranslationResult",
    "ClassificationResult",
    "JudgmentResult",
    "EscalationDecision",
    "KeywordFrequency",
    "ClusterProfile",
    "KeywordRules",
    "TriageConfig",
    "DEFAULT_STOPWORDS",
    "JudgmentPayload",
    "JudgmentPromptBuilder",
    "judgment_json_schema",
    "parse_judgment",
    "decide_escalation",
    "KeywordExtractor",
]
