"""
Triage Application Layer
=========================

Application layer for ticket triage module.

Contains:
- Services: Pipeline orchestration and persistence
- DTOs: Data transfer objects for API serialization
"""

from telcocare.triage.application.dto import (
    EvaluateTicketRequest,
    PipelineResult,
    ErrorResponse,
    TRANSIENT_FIELDS
)
from telcocare.triage.application.services import (
    TicketTriagePipeline,
    ResponseAssembler,
    PersistenceScheduler,
    TicketResultRecorder,
    PipelineFailure,
    StageTimeouts,
    StageTimings,
    ITranslator,
    IClassifier,
    IJudge,
    ITicketResultRepository
)

__all__ = [
    # DTOs
    "EvaluateTicketRequest",
    "PipelineResult",
    "ErrorResponse",
    "TRANSIENT_FIELDS",
    # Services
    "TicketTriagePipeline",
    "ResponseAssembler",
    "PersistenceScheduler",
    "TicketResultRecorder",
    "PipelineFailure",
    "StageTimeouts",
    "StageTimings",
    # Adapter Interfaces
    "ITranslator",
    "IClassifier",
    "IJudge",
    "ITicketResultRepository",
]
