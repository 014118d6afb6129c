"""
Triage Application Services
============================

Application services for ticket evaluation.

Orchestrates the pipeline stages (translation, classification, judgment,
escalation, assembly) and the fire-and-forget persistence that follows a
successful run.
"""

import asyncio
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, List, Optional, Set, Tuple, Type, TypeVar, Union

from telcocare.config import ErrorStage
from telcocare.core import (
    PipelineStageException, ValidationException, TranslationException,
    ClassificationException, JudgmentException, InternalPipelineException
)
from telcocare.shared.infrastructure.logging import get_logger, log_latency
from telcocare.triage.application.dto import (
    EvaluateTicketRequest, PipelineResult, ErrorResponse
)
from telcocare.triage.domain import (
    TicketRequest, TranslationResult, ClassificationResult, JudgmentResult,
    EscalationDecision, KeywordFrequency, KeywordExtractor, decide_escalation
)

logger = get_logger(__name__)

T = TypeVar("T")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ========== Adapter Interfaces ==========

class ITranslator(ABC):
    """Interface for Indonesian to English translation."""

    @abstractmethod
    async def translate(self, text: str, ticket_id: Optional[str] = None) -> str:
        """Translate ticket text, raising TranslationException on failure."""

    async def close(self) -> None:
        """Release underlying resources."""


class IClassifier(ABC):
    """Interface for cluster classification."""

    @abstractmethod
    async def classify(self, text: str, ticket_id: Optional[str] = None) -> ClassificationResult:
        """Classify translated text, raising ClassificationException on failure."""

    async def close(self) -> None:
        """Release underlying resources."""


class IJudge(ABC):
    """Interface for the LLM judgment step."""

    @abstractmethod
    async def judge(
        self,
        original_text: str,
        translated_text: str,
        classification: ClassificationResult,
        ticket_id: Optional[str] = None
    ) -> JudgmentResult:
        """Review a classification, raising JudgmentException on failure."""

    async def close(self) -> None:
        """Release underlying resources."""


class ITicketResultRepository(ABC):
    """Interface for ticket result storage."""

    @abstractmethod
    async def insert_result(self, record: Dict[str, Any]) -> str:
        """Insert one flat result row and return its generated ID."""

    @abstractmethod
    async def insert_keywords(self, result_id: str, keywords: List[KeywordFrequency]) -> int:
        """Bulk-insert keyword rows for a stored result, returning the row count."""


# ========== Pipeline Values ==========

@dataclass(frozen=True)
class StageTimeouts:
    """Upper bound in seconds for each remote stage."""
    translation: float = 20.0
    classification: float = 10.0
    judgment: float = 45.0


@dataclass(frozen=True)
class StageTimings:
    """Measured stage latencies in milliseconds."""
    translation_ms: int
    ml_ms: int
    llm_ms: int


@dataclass(frozen=True)
class PipelineFailure:
    """
    Typed failure of one pipeline run.

    `stage` names the step that failed; `status_code` is the HTTP status
    the interface layer answers with.
    """
    stage: ErrorStage
    title: str
    message: str
    status_code: int
    ticket_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: str = field(default_factory=_utc_now)

    @property
    def retryable(self) -> bool:
        return self.status_code == 503

    @classmethod
    def from_exception(
        cls,
        exc: PipelineStageException,
        ticket_id: Optional[str] = None
    ) -> "PipelineFailure":
        return cls(
            stage=exc.stage,
            title=exc.title,
            message=exc.message,
            status_code=exc.status_code,
            ticket_id=ticket_id,
            details=exc.details or None
        )

    def to_body(self, include_details: bool = False) -> Dict[str, Any]:
        """Serialize to the flat error shape."""
        response = ErrorResponse(
            error=self.title,
            error_message=self.message,
            error_stage=self.stage.value,
            timestamp=self.timestamp,
            error_details=self.details if include_details else None
        )
        return response.model_dump(exclude_none=True)


# ========== Application Services ==========

class ResponseAssembler:
    """Flattens the stage results into one PipelineResult."""

    def assemble(
        self,
        request: TicketRequest,
        translation: TranslationResult,
        classification: ClassificationResult,
        judgment: JudgmentResult,
        escalation: EscalationDecision,
        timings: StageTimings,
        total_ms: int
    ) -> PipelineResult:
        return PipelineResult(
            ticket_id=request.ticket_id,
            ticket_text=request.text,
            translated_text=translation.translated_text,
            ml_cluster=classification.cluster,
            ml_urgency=classification.urgency.value,
            ml_priority=classification.priority.value,
            ml_confidence=classification.confidence,
            ml_auto_escalate=classification.auto_escalate,
            ml_probabilities=list(classification.probabilities),
            llm_ml_valid=judgment.ml_valid,
            llm_confidence_assessment=judgment.confidence_assessment.value,
            llm_issue_category=judgment.issue_category.value,
            llm_reasoning=judgment.reasoning,
            llm_recommended_action=judgment.recommended_action.value,
            llm_tone=judgment.tone.value,
            llm_keywords=list(judgment.keywords),
            customer_response=judgment.customer_response,
            escalation_triggered=escalation.triggered,
            escalation_reason=escalation.reason.value,
            escalation_urgency=escalation.urgency.value,
            escalation_priority=escalation.priority.value,
            translation_processing_time_ms=timings.translation_ms,
            ml_processing_time_ms=timings.ml_ms,
            llm_processing_time_ms=timings.llm_ms,
            total_processing_time_ms=total_ms,
            timestamp=_utc_now()
        )


class PersistenceScheduler:
    """
    Owns the fire-and-forget persistence tasks.

    Holds a strong reference to every pending task so none is collected
    mid-flight, logs failures from a done callback and lets shutdown wait
    for outstanding writes.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, coro: Awaitable[Any], name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        if name:
            task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Persistence task cancelled", extra={"task": task.get_name()})
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Persistence task failed",
                extra={"task": task.get_name(), "error": str(exc), "error_type": type(exc).__name__}
            )

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for outstanding tasks; cancel whatever is left after `timeout`."""
        if not self._tasks:
            return

        logger.info("Draining persistence tasks", extra={"pending": len(self._tasks)})
        _, still_pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            await asyncio.gather(*still_pending, return_exceptions=True)
            logger.warning(
                "Persistence tasks cancelled at shutdown",
                extra={"cancelled": len(still_pending)}
            )


class TicketResultRecorder:
    """
    Stores a successful result and its analytics keywords.

    Never raises: every failure is logged and the remaining steps are
    skipped. Keyword rows are written only after the parent row exists.
    """

    def __init__(self, repository: ITicketResultRepository, extractor: KeywordExtractor):
        self._repository = repository
        self._extractor = extractor

    async def record(self, result: PipelineResult) -> Optional[str]:
        """
        Persist one result.

        Returns:
            Generated result ID, or None if the result row was not stored
        """
        try:
            result_id = await self._repository.insert_result(result.to_record())
        except Exception as e:
            logger.error(
                "Failed to save ticket result",
                extra={"ticket_id": result.ticket_id, "error": str(e)}
            )
            return None

        logger.info(
            "Ticket result saved",
            extra={"ticket_id": result.ticket_id, "result_id": result_id}
        )

        try:
            keywords = self._extractor.extract(result.ticket_text)
            if keywords:
                count = await self._repository.insert_keywords(result_id, keywords)
                logger.info(
                    "Keywords extracted and saved",
                    extra={
                        "ticket_id": result.ticket_id,
                        "keyword_count": count,
                        "keywords": ", ".join(k.keyword for k in keywords)
                    }
                )
        except Exception as e:
            # Parent row stays without keywords
            logger.error(
                "Failed to save keywords",
                extra={"ticket_id": result.ticket_id, "result_id": result_id, "error": str(e)}
            )

        return result_id


class TicketTriagePipeline:
    """
    Evaluates one ticket end to end.

    Stages run strictly in order; a failed stage stops the run and no
    later stage is attempted. `run` never raises: every outcome is either
    a PipelineResult or a PipelineFailure.
    """

    def __init__(
        self,
        translator: ITranslator,
        classifier: IClassifier,
        judge: IJudge,
        timeouts: Optional[StageTimeouts] = None,
        max_ticket_length: int = 10000,
        assembler: Optional[ResponseAssembler] = None,
        recorder: Optional[TicketResultRecorder] = None,
        scheduler: Optional[PersistenceScheduler] = None
    ):
        self._translator = translator
        self._classifier = classifier
        self._judge = judge
        self._timeouts = timeouts or StageTimeouts()
        self._max_ticket_length = max_ticket_length
        self._assembler = assembler or ResponseAssembler()
        self._recorder = recorder
        self._scheduler = scheduler

    async def run(self, payload: EvaluateTicketRequest) -> Union[PipelineResult, PipelineFailure]:
        """
        Evaluate a ticket.

        Args:
            payload: Raw request body

        Returns:
            PipelineResult on success, PipelineFailure otherwise
        """
        total_start = time.perf_counter()
        ticket_id = payload.ticket_id

        try:
            request = self.validate(payload)
            ticket_id = request.ticket_id
            logger.info("Pipeline started", extra={"ticket_id": ticket_id})

            translated_text, translation_ms = await self._run_stage(
                "translation",
                self._translator.translate(request.text, ticket_id),
                self._timeouts.translation,
                TranslationException,
                ticket_id
            )
            translation = TranslationResult(translated_text=translated_text, elapsed_ms=translation_ms)

            classification, ml_ms = await self._run_stage(
                "classification",
                self._classifier.classify(translated_text, ticket_id),
                self._timeouts.classification,
                ClassificationException,
                ticket_id
            )

            judgment, llm_ms = await self._run_stage(
                "judgment",
                self._judge.judge(request.text, translated_text, classification, ticket_id),
                self._timeouts.judgment,
                JudgmentException,
                ticket_id
            )

            escalation = decide_escalation(classification, judgment)

            total_ms = int((time.perf_counter() - total_start) * 1000)
            result = self._assembler.assemble(
                request,
                translation,
                classification,
                judgment,
                escalation,
                StageTimings(translation_ms=translation_ms, ml_ms=ml_ms, llm_ms=llm_ms),
                total_ms
            )

        except PipelineStageException as e:
            logger.warning(
                "Pipeline failed",
                extra={
                    "ticket_id": ticket_id,
                    "error_stage": e.stage.value,
                    "error_message": e.message,
                    "elapsed_ms": int((time.perf_counter() - total_start) * 1000)
                }
            )
            return PipelineFailure.from_exception(e, ticket_id)

        except Exception as e:
            logger.exception(
                "Unexpected pipeline error",
                extra={"ticket_id": ticket_id, "error": str(e)}
            )
            failure = InternalPipelineException(
                "An unexpected error occurred in the pipeline",
                details={"error": str(e), "error_type": type(e).__name__}
            )
            return PipelineFailure.from_exception(failure, ticket_id)

        logger.info(
            "Pipeline completed",
            extra={
                "ticket_id": ticket_id,
                "ml_valid": result.llm_ml_valid,
                "escalation_triggered": result.escalation_triggered,
                "escalation_reason": result.escalation_reason,
                "total_time_ms": result.total_processing_time_ms
            }
        )

        self._schedule_persistence(result)
        return result

    def validate(self, payload: EvaluateTicketRequest) -> TicketRequest:
        """
        Validation stage.

        Raises:
            ValidationException: If the text is blank or too long
        """
        text = payload.text
        if not text or not text.strip():
            raise ValidationException("Text field is required and must be non-empty")
        if len(text) > self._max_ticket_length:
            raise ValidationException(
                f"Text exceeds maximum length of {self._max_ticket_length:,} characters"
            )

        ticket_id = payload.ticket_id
        if ticket_id is None or not ticket_id.strip():
            ticket_id = str(uuid.uuid4())

        return TicketRequest(text=text, ticket_id=ticket_id)

    async def _run_stage(
        self,
        operation: str,
        call: Awaitable[T],
        timeout: float,
        timeout_error: Type[PipelineStageException],
        ticket_id: str
    ) -> Tuple[T, int]:
        """Await one stage under its timeout and measure it."""
        with log_latency(logger, operation, ticket_id=ticket_id) as timer:
            try:
                value = await asyncio.wait_for(call, timeout=timeout)
            except asyncio.TimeoutError:
                raise timeout_error(f"Timed out after {timeout:g}s")
        return value, timer.elapsed_ms

    def _schedule_persistence(self, result: PipelineResult) -> None:
        if self._recorder is None or self._scheduler is None:
            return
        coro = self._recorder.record(result)
        try:
            self._scheduler.schedule(coro, name=f"persist-{result.ticket_id}")
        except Exception as e:
            coro.close()
            logger.error(
                "Failed to schedule persistence",
                extra={"ticket_id": result.ticket_id, "error": str(e)}
            )
