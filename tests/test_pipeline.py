"""Tests for the triage pipeline orchestrator."""

import asyncio
import json

import pytest

from conftest import (
    FakeClassifier, FakeLLMClient, FakeRepository, FakeTranslator, OUTAGE_TEXT,
    OUTAGE_TRANSLATION, build_pipeline, judgment_reply
)
from telcocare.config import ErrorStage
from telcocare.core import ClassificationException, JudgmentException, TranslationException
from telcocare.triage.application import (
    EvaluateTicketRequest, PersistenceScheduler, PipelineFailure, PipelineResult,
    StageTimeouts, TicketResultRecorder
)
from telcocare.triage.domain import DEFAULT_STOPWORDS, KeywordExtractor


def _run(pipeline, text=OUTAGE_TEXT, ticket_id=None):
    return asyncio.run(pipeline.run(EvaluateTicketRequest(text=text, ticket_id=ticket_id)))


# ========== Validation ==========

@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
def test_blank_text_rejected_without_remote_calls(text):
    translator, classifier, llm = FakeTranslator(), FakeClassifier(), FakeLLMClient()
    pipeline = build_pipeline(translator, classifier, llm)

    outcome = _run(pipeline, text=text)

    assert isinstance(outcome, PipelineFailure)
    assert outcome.stage == ErrorStage.VALIDATION
    assert outcome.status_code == 400
    assert translator.calls == [] and classifier.calls == [] and llm.prompts == []


def test_text_over_max_length_rejected():
    translator = FakeTranslator()
    pipeline = build_pipeline(translator, max_ticket_length=20)

    outcome = _run(pipeline, text="x" * 21)

    assert isinstance(outcome, PipelineFailure)
    assert outcome.stage == ErrorStage.VALIDATION
    assert "maximum length" in outcome.message
    assert translator.calls == []


def test_text_at_max_length_accepted():
    pipeline = build_pipeline(max_ticket_length=len(OUTAGE_TEXT))

    assert isinstance(_run(pipeline), PipelineResult)


def test_ticket_id_kept_or_generated():
    pipeline = build_pipeline()

    given = _run(pipeline, ticket_id="TICKET-001")
    generated = _run(pipeline)

    assert given.ticket_id == "TICKET-001"
    assert generated.ticket_id
    assert generated.ticket_id != given.ticket_id


# ========== Success ==========

def test_result_is_flat():
    result = _run(build_pipeline(), ticket_id="TICKET-001")
    body = result.model_dump()

    for key, value in body.items():
        if isinstance(value, list):
            assert all(isinstance(v, (str, int, float, bool)) for v in value), key
        else:
            assert isinstance(value, (str, int, float, bool)), key


def test_stage_timings_are_independent_and_bounded_by_total():
    pipeline = build_pipeline(
        FakeTranslator(delay=0.02),
        FakeClassifier(delay=0.02),
        FakeLLMClient(delay=0.02),
    )

    result = _run(pipeline)

    assert result.translation_processing_time_ms >= 15
    assert result.ml_processing_time_ms >= 15
    assert result.llm_processing_time_ms >= 15
    assert result.total_processing_time_ms >= (
        result.translation_processing_time_ms
        + result.ml_processing_time_ms
        + result.llm_processing_time_ms
    )


def test_stages_receive_previous_outputs():
    translator, classifier, llm = FakeTranslator(), FakeClassifier(), FakeLLMClient()

    _run(build_pipeline(translator, classifier, llm), ticket_id="TICKET-001")

    assert translator.calls == [(OUTAGE_TEXT, "TICKET-001")]
    assert classifier.calls == [(OUTAGE_TRANSLATION, "TICKET-001")]
    assert OUTAGE_TEXT in llm.prompts[0]
    assert OUTAGE_TRANSLATION in llm.prompts[0]


def test_outage_ticket_end_to_end():
    result = _run(build_pipeline(), ticket_id="TICKET-001")

    assert isinstance(result, PipelineResult)
    assert result.translated_text == OUTAGE_TRANSLATION
    assert result.ml_cluster == 3
    assert result.ml_urgency == "High"
    assert result.ml_priority == "P1"
    assert result.ml_confidence >= 0.99
    assert result.ml_auto_escalate is True
    assert result.llm_ml_valid is True
    assert result.llm_recommended_action == "escalate"
    assert result.llm_issue_category == "Network & Connectivity"
    assert result.escalation_triggered is True
    assert result.escalation_reason == "llm"
    assert result.escalation_urgency == "High"
    assert result.escalation_priority == "P1"
    assert result.customer_response.startswith("Mohon maaf")


def test_ml_reason_when_only_classifier_escalates():
    llm = FakeLLMClient(json.dumps(judgment_reply(recommended_action="standard", tone="professional")))

    result = _run(build_pipeline(llm_client=llm))

    assert result.escalation_triggered is True
    assert result.escalation_reason == "ml"


# ========== Stage failures ==========

def test_translation_failure_stops_pipeline():
    classifier = FakeClassifier()
    pipeline = build_pipeline(FakeTranslator(error=TranslationException("HTTP 503")), classifier)

    outcome = _run(pipeline)

    assert isinstance(outcome, PipelineFailure)
    assert outcome.stage == ErrorStage.TRANSLATION
    assert outcome.status_code == 503
    assert outcome.retryable
    assert classifier.calls == []


def test_classification_failure_stops_pipeline():
    llm = FakeLLMClient()
    pipeline = build_pipeline(
        classifier=FakeClassifier(error=ClassificationException("Unknown cluster 7")),
        llm_client=llm,
    )

    outcome = _run(pipeline)

    assert outcome.stage == ErrorStage.ML_SERVICE
    assert outcome.status_code == 503
    assert llm.prompts == []


def test_judgment_transport_failure():
    llm = FakeLLMClient(error=JudgmentException("Gemini request failed: 429"))

    outcome = _run(build_pipeline(llm_client=llm))

    assert outcome.stage == ErrorStage.GEMINI
    assert outcome.status_code == 503


def test_judgment_contract_violation():
    llm = FakeLLMClient(json.dumps(judgment_reply(keywords=["internet"])))

    outcome = _run(build_pipeline(llm_client=llm))

    assert isinstance(outcome, PipelineFailure)
    assert outcome.stage == ErrorStage.GEMINI
    assert outcome.title == "Gemini Error"


def test_stage_timeout_maps_to_stage():
    pipeline = build_pipeline(
        classifier=FakeClassifier(delay=0.5),
        timeouts=StageTimeouts(classification=0.05),
    )

    outcome = _run(pipeline)

    assert outcome.stage == ErrorStage.ML_SERVICE
    assert "Timed out" in outcome.message


def test_unexpected_error_is_processing_stage():
    pipeline = build_pipeline(classifier=FakeClassifier(error=RuntimeError("boom")))

    outcome = _run(pipeline)

    assert outcome.stage == ErrorStage.PROCESSING
    assert outcome.status_code == 500
    assert outcome.message == "An unexpected error occurred in the pipeline"
    assert outcome.details["error"] == "boom"


def test_failure_body_shape():
    outcome = _run(build_pipeline(FakeTranslator(error=TranslationException("HTTP 503"))))

    body = outcome.to_body()
    assert set(body) == {"error", "error_message", "error_stage", "timestamp"}
    assert body["error_stage"] == "translation"

    detailed = PipelineFailure(
        stage=ErrorStage.PROCESSING, title="Internal Server Error", message="boom",
        status_code=500, details={"error": "boom"},
    ).to_body(include_details=True)
    assert detailed["error_details"] == {"error": "boom"}


# ========== Persistence isolation ==========

def _persisting_pipeline(repository):
    scheduler = PersistenceScheduler()
    recorder = TicketResultRecorder(repository, KeywordExtractor(DEFAULT_STOPWORDS))
    return build_pipeline(recorder=recorder, scheduler=scheduler), scheduler


def test_result_returned_before_persistence_completes():
    repository = FakeRepository(delay=0.2)
    pipeline, scheduler = _persisting_pipeline(repository)

    async def scenario():
        result = await pipeline.run(EvaluateTicketRequest(text=OUTAGE_TEXT))
        pending_at_return = scheduler.pending
        stored_at_return = len(repository.results)
        await scheduler.drain()
        return result, pending_at_return, stored_at_return

    result, pending_at_return, stored_at_return = asyncio.run(scenario())

    assert isinstance(result, PipelineResult)
    assert result.total_processing_time_ms < 200
    assert pending_at_return == 1
    assert stored_at_return == 0
    assert len(repository.results) == 1
    assert scheduler.pending == 0


def test_persistence_failure_does_not_change_result():
    async def scenario(repository):
        pipeline, scheduler = _persisting_pipeline(repository)
        result = await pipeline.run(EvaluateTicketRequest(text=OUTAGE_TEXT, ticket_id="TICKET-001"))
        await scheduler.drain()
        return result

    healthy = asyncio.run(scenario(FakeRepository()))
    broken = asyncio.run(scenario(FakeRepository(fail_result=True)))

    ignored = {"timestamp", "total_processing_time_ms", "translation_processing_time_ms",
               "ml_processing_time_ms", "llm_processing_time_ms"}
    assert broken.model_dump(exclude=ignored) == healthy.model_dump(exclude=ignored)


def test_stored_record_excludes_transient_fields():
    repository = FakeRepository()
    pipeline, scheduler = _persisting_pipeline(repository)

    async def scenario():
        await pipeline.run(EvaluateTicketRequest(text=OUTAGE_TEXT))
        await scheduler.drain()

    asyncio.run(scenario())

    record = repository.results[0]
    assert "timestamp" not in record
    assert "ml_probabilities" not in record
    assert "llm_keywords" not in record
    assert record["ticket_text"] == OUTAGE_TEXT

    result_id, keywords = repository.keywords[0]
    assert result_id == "result-1"
    assert [k.keyword for k in keywords][:2] == ["internet", "mati"]


def test_failed_run_is_not_persisted():
    repository = FakeRepository()
    scheduler = PersistenceScheduler()
    recorder = TicketResultRecorder(repository, KeywordExtractor(DEFAULT_STOPWORDS))
    pipeline = build_pipeline(
        FakeTranslator(error=TranslationException("down")), recorder=recorder, scheduler=scheduler
    )

    async def scenario():
        await pipeline.run(EvaluateTicketRequest(text=OUTAGE_TEXT))
        await scheduler.drain()

    asyncio.run(scenario())

    assert repository.results == []
