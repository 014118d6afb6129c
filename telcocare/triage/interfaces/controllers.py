"""
Triage Controllers (API Routes)
================================

FastAPI routes for ticket evaluation.

Controllers delegate to the triage pipeline and translate its outcome
into an HTTP response.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from telcocare.config import settings
from telcocare.shared.infrastructure.logging import get_logger
from telcocare.triage.application import (
    EvaluateTicketRequest, PipelineResult, PipelineFailure, ErrorResponse,
    TicketTriagePipeline
)

logger = get_logger(__name__)
router = APIRouter(prefix="/ticket", tags=["Ticket Evaluation"])


# ========== Example payloads for Swagger ==========

EVALUATE_RESPONSE_EXAMPLE = {
    "ticket_id": "TICKET-001",
    "ticket_text": "Internet mati total dari pagi, rugi saya",
    "translated_text": "The internet has been completely dead since morning, I'm losing money",
    "ml_cluster": 3,
    "ml_urgency": "High",
    "ml_priority": "P1",
    "ml_confidence": 0.995,
    "ml_auto_escalate": True,
    "ml_probabilities": [0.001, 0.002, 0.002, 0.995],
    "llm_ml_valid": True,
    "llm_confidence_assessment": "high",
    "llm_issue_category": "Network & Connectivity",
    "llm_reasoning": "Complete outage since morning with financial impact matches the High urgency cluster.",
    "llm_recommended_action": "escalate",
    "llm_tone": "urgent",
    "llm_keywords": ["internet mati", "mati total", "dari pagi", "rugi", "gangguan"],
    "customer_response": "Mohon maaf atas gangguan internet yang Anda alami sejak pagi. Laporan Anda sudah kami eskalasi ke tim teknis untuk penanganan segera.",
    "escalation_triggered": True,
    "escalation_reason": "llm",
    "escalation_urgency": "High",
    "escalation_priority": "P1",
    "translation_processing_time_ms": 812,
    "ml_processing_time_ms": 96,
    "llm_processing_time_ms": 2710,
    "total_processing_time_ms": 3625,
    "timestamp": "2026-01-15T08:30:00.000000+00:00"
}

ERROR_RESPONSE_EXAMPLE = {
    "error": "ML Service Error",
    "error_message": "ML Service: Timed out after 10s",
    "error_stage": "ml_service",
    "timestamp": "2026-01-15T08:30:00.000000+00:00"
}


# ========== Dependencies ==========

def get_pipeline(request: Request) -> TicketTriagePipeline:
    """Get the triage pipeline built at startup."""
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Triage pipeline not initialized")
    return pipeline


# ========== Route Handlers ==========

@router.post(
    "/evaluate",
    response_model=PipelineResult,
    summary="Evaluate a customer ticket",
    description="""
    Run a customer ticket through the triage pipeline:

    1. **Translation** - Indonesian to English for the classifier
    2. **Classification** - cluster, urgency, priority and confidence
    3. **Judgment** - Gemini reviews the classification, picks an issue
       category and drafts an Indonesian reply
    4. **Escalation** - combines the classifier flag with the judgment

    The response is a single flat JSON object. Results are stored in the
    background after the response is sent.

    **Error stages**: `validation` (400), `translation`, `ml_service`,
    `gemini` (503), `processing` (500).
    """,
    responses={
        200: {
            "description": "Ticket evaluated successfully",
            "content": {"application/json": {"example": EVALUATE_RESPONSE_EXAMPLE}}
        },
        400: {"model": ErrorResponse, "description": "Invalid ticket text"},
        405: {"model": ErrorResponse, "description": "Use POST method"},
        500: {"model": ErrorResponse, "description": "Unexpected pipeline error"},
        503: {
            "model": ErrorResponse,
            "description": "A dependency (translation, ML service, Gemini) failed",
            "content": {"application/json": {"example": ERROR_RESPONSE_EXAMPLE}}
        }
    }
)
async def evaluate_ticket(
    request: Request,
    payload: EvaluateTicketRequest,
    pipeline: TicketTriagePipeline = Depends(get_pipeline)
):
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    logger.info(
        "Evaluating ticket",
        extra={
            "correlation_id": correlation_id,
            "has_ticket_id": payload.ticket_id is not None
        }
    )

    outcome = await pipeline.run(payload)

    if isinstance(outcome, PipelineFailure):
        return JSONResponse(
            status_code=outcome.status_code,
            content=outcome.to_body(include_details=settings.debug)
        )

    return outcome


# Export router for inclusion in main app
triage_router = router
