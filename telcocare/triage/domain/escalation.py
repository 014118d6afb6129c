"""
Escalation Decision
===================

Reconciles the classifier's auto-escalate flag with the judgment step.

The classifier flag only counts when the judgment confirms the
classification is valid for this ticket. The judgment may escalate on its
own authority. When both fire, the reason is reported as `llm`.
"""

from telcocare.config import EscalationReason, RecommendedAction
from telcocare.triage.domain.entities import (
    ClassificationResult, JudgmentResult, EscalationDecision
)


def decide_escalation(
    classification: ClassificationResult,
    judgment: JudgmentResult
) -> EscalationDecision:
    """
    Combine both escalation signals into one verdict.

    Args:
        classification: Classifier output (cluster-derived flags)
        judgment: Judgment output

    Returns:
        EscalationDecision carrying the classification's urgency/priority
    """
    by_ml = classification.auto_escalate and judgment.ml_valid
    by_llm = judgment.recommended_action == RecommendedAction.ESCALATE

    if by_llm:
        reason = EscalationReason.LLM
    elif by_ml:
        reason = EscalationReason.ML
    else:
        reason = EscalationReason.NONE

    return EscalationDecision(
        triggered=by_ml or by_llm,
        reason=reason,
        urgency=classification.urgency,
        priority=classification.priority
    )
