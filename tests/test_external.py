"""Tests for the translation, classification and judgment adapters."""

import asyncio
import json

import httpx
import pytest

from conftest import FakeLLMClient, OUTAGE_TEXT, OUTAGE_TRANSLATION, judgment_reply, outage_classification
from telcocare.config import Priority, UrgencyLevel
from telcocare.core import (
    ClassificationException, ConfigurationException, JudgmentException, TranslationException
)
from telcocare.infrastructure.llm import GeminiLLMClient, MockLLMClient
from telcocare.triage.domain import JudgmentPromptBuilder, TriageConfig
from telcocare.triage.infrastructure import (
    GeminiJudgmentClient, HuggingFaceTranslationClient, MLServiceClient, MockMLServiceClient,
    MockTranslationClient
)


def _http(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ========== Translation ==========

def _translator(handler):
    return HuggingFaceTranslationClient(
        api_key="hf_test",
        model="Helsinki-NLP/opus-mt-id-en",
        base_url="https://hf.test/models/",
        http_client=_http(handler),
    )


def test_translation_request_and_reply():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=[{"translation_text": OUTAGE_TRANSLATION}])

    translated = asyncio.run(_translator(handler).translate(OUTAGE_TEXT, "TICKET-001"))

    assert translated == OUTAGE_TRANSLATION
    assert seen["url"] == "https://hf.test/models/Helsinki-NLP/opus-mt-id-en"
    assert seen["auth"] == "Bearer hf_test"
    assert seen["body"] == {"inputs": OUTAGE_TEXT}


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(503, json={"error": "Model is loading"}),
        httpx.Response(200, text="<html>"),
        httpx.Response(200, json=[{"translation_text": ""}]),
        httpx.Response(200, json=[]),
        httpx.Response(200, json={"generated_text": "x"}),
    ],
)
def test_translation_bad_replies(response):
    with pytest.raises(TranslationException):
        asyncio.run(_translator(lambda request: response).translate(OUTAGE_TEXT))


def test_translation_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TranslationException) as exc_info:
        asyncio.run(_translator(handler).translate(OUTAGE_TEXT))
    assert exc_info.value.stage.value == "translation"


def test_translation_requires_api_key(monkeypatch):
    monkeypatch.setattr("telcocare.triage.infrastructure.external.settings.hf_api_key", None)
    with pytest.raises(ConfigurationException):
        HuggingFaceTranslationClient()


# ========== Classification ==========

def _classifier(handler):
    return MLServiceClient(TriageConfig(), base_url="http://ml.test", http_client=_http(handler))


PREDICTION = {"cluster": 3, "confidence": 0.995, "probabilities": [0.001, 0.002, 0.002, 0.995]}


@pytest.mark.parametrize("body", [PREDICTION, {"prediction": PREDICTION, "processing_time_ms": 12}])
def test_classification_reply_shapes(body):
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=body)

    result = asyncio.run(_classifier(handler).classify(OUTAGE_TRANSLATION, "TICKET-001"))

    assert seen["url"] == "http://ml.test/predict"
    assert seen["body"] == {"text": OUTAGE_TRANSLATION, "ticket_id": "TICKET-001"}
    assert result.cluster == 3
    assert result.urgency == UrgencyLevel.HIGH
    assert result.priority == Priority.P1
    assert result.auto_escalate is True
    assert result.probabilities == (0.001, 0.002, 0.002, 0.995)


@pytest.mark.parametrize(
    "body",
    [
        {**PREDICTION, "cluster": 7},
        {**PREDICTION, "cluster": "3"},
        {**PREDICTION, "confidence": 1.5},
        {**PREDICTION, "probabilities": [0.5, 0.5]},
        {"cluster": 3, "confidence": 0.9},
        {"error": "model not loaded"},
    ],
)
def test_classification_bad_replies(body):
    with pytest.raises(ClassificationException):
        asyncio.run(_classifier(lambda request: httpx.Response(200, json=body)).classify("text"))


def test_classification_http_error():
    handler = lambda request: httpx.Response(500, text="Internal Server Error")  # noqa: E731
    with pytest.raises(ClassificationException) as exc_info:
        asyncio.run(_classifier(handler).classify("text"))
    assert exc_info.value.details["status_code"] == 500


def test_classification_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(ClassificationException) as exc_info:
        asyncio.run(_classifier(handler).classify("text"))
    assert "timed out" in exc_info.value.message


# ========== Judgment ==========

def test_judgment_sends_schema_and_prompt():
    llm = FakeLLMClient()
    judge = GeminiJudgmentClient(llm, JudgmentPromptBuilder(TriageConfig()))

    judgment = asyncio.run(judge.judge(OUTAGE_TEXT, OUTAGE_TRANSLATION, outage_classification()))

    assert judgment.ml_valid is True
    assert llm.schemas[0]["additionalProperties"] is False
    assert "Auto-escalate: True" in llm.prompts[0]


def test_judgment_rejects_contract_violation():
    llm = FakeLLMClient(json.dumps(judgment_reply(issue_category="Other")))
    judge = GeminiJudgmentClient(llm, JudgmentPromptBuilder(TriageConfig()))

    with pytest.raises(JudgmentException):
        asyncio.run(judge.judge(OUTAGE_TEXT, OUTAGE_TRANSLATION, outage_classification()))


def test_judgment_close_closes_llm_client():
    llm = FakeLLMClient()
    asyncio.run(GeminiJudgmentClient(llm, JudgmentPromptBuilder(TriageConfig())).close())
    assert llm.closed


class _FakeModels:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return self.response


class _FakeGenaiClient:
    def __init__(self, models):
        self.aio = type("_Aio", (), {"models": models})()


def test_gemini_client_requests_json_with_schema():
    usage = type("_Usage", (), {"prompt_token_count": 120, "candidates_token_count": 80})()
    response = type("_Response", (), {"text": json.dumps(judgment_reply()), "usage_metadata": usage})()
    models = _FakeModels(response=response)
    client = GeminiLLMClient(model="gemini-test", client=_FakeGenaiClient(models))

    result = asyncio.run(client.generate_structured("prompt", {"type": "object"}, temperature=0.2))

    config = models.calls[0]["config"]
    assert models.calls[0]["model"] == "gemini-test"
    assert config.response_mime_type == "application/json"
    assert config.response_json_schema == {"type": "object"}
    assert config.temperature == 0.2
    assert result.total_tokens == 200


def test_gemini_client_wraps_errors():
    client = GeminiLLMClient(client=_FakeGenaiClient(_FakeModels(error=RuntimeError("quota"))))

    with pytest.raises(JudgmentException) as exc_info:
        asyncio.run(client.generate_structured("prompt", {}))
    assert "quota" in exc_info.value.message


# ========== Mocks ==========

def test_mock_services_produce_escalating_outage():
    config = TriageConfig()
    prompt_builder = JudgmentPromptBuilder(config)

    async def scenario():
        translated = await MockTranslationClient().translate(OUTAGE_TEXT)
        classification = await MockMLServiceClient(config).classify(translated)
        judgment = await GeminiJudgmentClient(MockLLMClient(), prompt_builder).judge(
            OUTAGE_TEXT, translated, classification
        )
        return translated, classification, judgment

    translated, classification, judgment = asyncio.run(scenario())

    assert "down" in translated
    assert classification.cluster == 3
    assert abs(sum(classification.probabilities) - 1.0) < 1e-9
    assert judgment.recommended_action.value == "escalate"
    assert 5 <= len(judgment.keywords) <= 10


def test_mock_classifier_defaults_to_cluster_zero():
    result = asyncio.run(MockMLServiceClient(TriageConfig()).classify("thank you for the help"))
    assert result.cluster == 0
    assert result.auto_escalate is False
