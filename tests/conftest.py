"""Shared pytest fixtures and fakes for TelcoCare tests."""

import asyncio
import json

import pytest

from telcocare.config import UrgencyLevel, Priority
from telcocare.core import PersistenceException
from telcocare.infrastructure.llm import ILLMClient, StructuredCompletionResult
from telcocare.triage.application import (
    IClassifier, ITicketResultRepository, ITranslator, StageTimeouts, TicketTriagePipeline
)
from telcocare.triage.domain import ClassificationResult, JudgmentPromptBuilder, TriageConfig
from telcocare.triage.infrastructure import GeminiJudgmentClient


OUTAGE_TEXT = "Internet mati total dari pagi, rugi saya"
OUTAGE_TRANSLATION = "The internet has been completely dead since morning, I'm losing money"


def judgment_reply(**overrides):
    """A contract-conforming judgment reply as a dict."""
    reply = {
        "ml_valid": True,
        "confidence_assessment": "high",
        "issue_category": "Network & Connectivity",
        "reasoning": "Complete outage since morning matches the High urgency cluster.",
        "customer_response": "Mohon maaf atas gangguan internet Anda. Laporan sudah kami eskalasi.",
        "recommended_action": "escalate",
        "tone": "urgent",
        "keywords": ["internet mati", "mati total", "dari pagi", "rugi", "gangguan"],
    }
    reply.update(overrides)
    return reply


class FakeTranslator(ITranslator):
    def __init__(self, translation=OUTAGE_TRANSLATION, error=None, delay=0.0):
        self.translation = translation
        self.error = error
        self.delay = delay
        self.calls = []

    async def translate(self, text, ticket_id=None):
        self.calls.append((text, ticket_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.translation


class FakeClassifier(IClassifier):
    def __init__(self, result=None, error=None, delay=0.0):
        self.result = result or outage_classification()
        self.error = error
        self.delay = delay
        self.calls = []

    async def classify(self, text, ticket_id=None):
        self.calls.append((text, ticket_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.result


class FakeLLMClient(ILLMClient):
    """Returns a canned reply, or raises, and records every prompt."""

    def __init__(self, content=None, error=None, delay=0.0):
        self.content = json.dumps(judgment_reply()) if content is None else content
        self.error = error
        self.delay = delay
        self.prompts = []
        self.schemas = []
        self.closed = False

    async def generate_structured(self, prompt, response_schema, temperature=None,
                                  operation="structured_completion"):
        self.prompts.append(prompt)
        self.schemas.append(response_schema)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return StructuredCompletionResult(content=self.content, model="fake-model", latency_ms=1)

    async def close(self):
        self.closed = True


class FakeRepository(ITicketResultRepository):
    def __init__(self, fail_result=False, fail_keywords=False, delay=0.0):
        self.fail_result = fail_result
        self.fail_keywords = fail_keywords
        self.delay = delay
        self.results = []
        self.keywords = []

    async def insert_result(self, record):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_result:
            raise PersistenceException("database unavailable")
        self.results.append(record)
        return f"result-{len(self.results)}"

    async def insert_keywords(self, result_id, keywords):
        if self.fail_keywords:
            raise PersistenceException("keyword insert failed")
        self.keywords.append((result_id, list(keywords)))
        return len(keywords)


def outage_classification(confidence=0.995, auto_escalate=True):
    return ClassificationResult(
        cluster=3,
        urgency=UrgencyLevel.HIGH,
        priority=Priority.P1,
        confidence=confidence,
        auto_escalate=auto_escalate,
        probabilities=(0.001, 0.002, 0.002, 0.995),
    )


def build_pipeline(translator=None, classifier=None, llm_client=None, timeouts=None,
                   max_ticket_length=10000, recorder=None, scheduler=None):
    """Pipeline wired with fakes; the judgment adapter is the real one."""
    judge = GeminiJudgmentClient(
        llm_client or FakeLLMClient(),
        JudgmentPromptBuilder(TriageConfig())
    )
    return TicketTriagePipeline(
        translator or FakeTranslator(),
        classifier or FakeClassifier(),
        judge,
        timeouts=timeouts or StageTimeouts(),
        max_ticket_length=max_ticket_length,
        recorder=recorder,
        scheduler=scheduler,
    )


@pytest.fixture
def triage_config():
    return TriageConfig()
