"""
Triage Domain Entities
======================

Domain entities for the ticket triage pipeline.

Contains pure Python business objects produced by each pipeline stage.
They are owned by a single pipeline invocation and never mutated after
construction.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

from telcocare.config import (
    UrgencyLevel, Priority, ConfidenceBucket, IssueCategory,
    RecommendedAction, Tone, EscalationReason
)


@dataclass(frozen=True)
class TicketRequest:
    """
    A customer ticket accepted at the pipeline boundary.

    `ticket_id` is either supplied by the caller or generated during
    validation; it is never empty once the request is accepted.
    """
    text: str
    ticket_id: str


@dataclass(frozen=True)
class TranslationResult:
    """Indonesian ticket text translated for the classifier."""
    translated_text: str
    elapsed_ms: int


@dataclass(frozen=True)
class ClassificationResult:
    """
    Result of cluster classification.

    `urgency`, `priority` and `auto_escalate` come from the static cluster
    table, not from the remote model.
    """
    cluster: int
    urgency: UrgencyLevel
    priority: Priority
    confidence: float  # 0.0 to 1.0
    auto_escalate: bool
    probabilities: Tuple[float, ...] = field(default_factory=tuple)

    def __post_init__(self):
        """Validate classification result."""
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("Confidence must be between 0 and 1")


@dataclass(frozen=True)
class JudgmentResult:
    """Independent review of a classification plus the customer reply."""
    ml_valid: bool
    confidence_assessment: ConfidenceBucket
    issue_category: IssueCategory
    reasoning: str
    customer_response: str
    recommended_action: RecommendedAction
    tone: Tone
    keywords: Tuple[str, ...]


@dataclass(frozen=True)
class EscalationDecision:
    """Reconciled escalation verdict."""
    triggered: bool
    reason: EscalationReason
    urgency: UrgencyLevel
    priority: Priority


@dataclass(frozen=True)
class KeywordFrequency:
    """A keyword or bigram extracted from the original ticket text."""
    keyword: str
    frequency: int
    first_position: Optional[int] = None
