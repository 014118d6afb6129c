"""
Triage Application DTOs
========================

Data Transfer Objects for Triage API layer.

Pydantic models for request/response validation.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict, Any, Literal


# ========== Type Aliases for Literals ==========
UrgencyLevelStr = Literal["Low", "Medium", "High"]
PriorityStr = Literal["P1", "P2", "P3"]
EscalationReasonStr = Literal["ml", "llm", "none"]
ErrorStageStr = Literal["validation", "translation", "ml_service", "gemini", "processing"]

# Fields carried in the response but not stored in the results table
TRANSIENT_FIELDS = frozenset({"timestamp", "ml_probabilities", "llm_keywords"})


# ========== Request DTOs ==========

class EvaluateTicketRequest(BaseModel):
    """
    Request model for ticket evaluation.

    Content checks (blank text, maximum length) happen in the pipeline's
    validation stage so they share its error shape.
    """
    model_config = ConfigDict(json_schema_extra={
        "examples": [{"text": "Internet mati total dari pagi, rugi saya", "ticket_id": "TICKET-001"}]
    })

    text: str = Field(..., description="Customer ticket text (Indonesian)")
    # Matches the ticket_results.ticket_id column
    ticket_id: Optional[str] = Field(None, max_length=255, description="Caller-supplied ticket ID")


# ========== Response DTOs ==========

class PipelineResult(BaseModel):
    """
    Flat result of one ticket evaluation.

    Every field is a scalar or a list of scalars, so the same object is
    returned to the caller and written to the results table.
    """
    model_config = ConfigDict(frozen=True)

    # Request
    ticket_id: str
    ticket_text: str
    translated_text: str

    # Classification
    ml_cluster: int
    ml_urgency: UrgencyLevelStr
    ml_priority: PriorityStr
    ml_confidence: float = Field(..., ge=0.0, le=1.0)
    ml_auto_escalate: bool
    ml_probabilities: List[float] = Field(default_factory=list)

    # Judgment
    llm_ml_valid: bool
    llm_confidence_assessment: str
    llm_issue_category: str
    llm_reasoning: str
    llm_recommended_action: str
    llm_tone: str
    llm_keywords: List[str] = Field(default_factory=list)
    customer_response: str

    # Escalation
    escalation_triggered: bool
    escalation_reason: EscalationReasonStr
    escalation_urgency: UrgencyLevelStr
    escalation_priority: PriorityStr

    # Timing (milliseconds)
    translation_processing_time_ms: int = Field(..., ge=0)
    ml_processing_time_ms: int = Field(..., ge=0)
    llm_processing_time_ms: int = Field(..., ge=0)
    total_processing_time_ms: int = Field(..., ge=0)

    timestamp: str

    def to_record(self) -> Dict[str, Any]:
        """Persisted subset of the result."""
        return self.model_dump(exclude=set(TRANSIENT_FIELDS))


class ErrorResponse(BaseModel):
    """Error body returned for every failed evaluation."""
    error: str
    error_message: str
    error_stage: ErrorStageStr
    timestamp: str
    error_details: Optional[Dict[str, Any]] = None
