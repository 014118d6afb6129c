"""
Triage External Service Adapters
==================================

Adapters for the remote capabilities used by the triage pipeline:

- Hugging Face Inference API for Indonesian to English translation
- The cluster classification microservice
- Gemini (through ILLMClient) for the judgment step

Implements the interfaces defined in the application layer. Every adapter
converts its failures into the stage exception of its pipeline step.
"""

import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import yaml
from pydantic import BaseModel, Field, StrictInt, ValidationError

from telcocare.config import settings, UrgencyLevel
from telcocare.core import (
    ConfigurationException, TranslationException, ClassificationException
)
from telcocare.infrastructure.llm import ILLMClient
from telcocare.shared.infrastructure.logging import get_logger
from telcocare.triage.application import ITranslator, IClassifier, IJudge
from telcocare.triage.domain import (
    ClassificationResult, JudgmentResult, JudgmentPromptBuilder, KeywordRules,
    TriageConfig, judgment_json_schema, parse_judgment
)

logger = get_logger(__name__)


# ========== Configuration ==========

class TriageConfigLoader:
    """
    Loads the triage tables (clusters, stopwords, keyword limits) from YAML.

    Loaded once at startup; the resulting TriageConfig is immutable.
    """

    def __init__(self):
        self._config: Optional[TriageConfig] = None

    def load(self, path: Path) -> TriageConfig:
        """Initial configuration load."""
        self._config = self._load_from_file(path)
        logger.info(
            "Triage configuration loaded",
            extra={
                "path": str(path),
                "cluster_count": self._config.cluster_count,
                "stopword_count": len(self._config.stopwords)
            }
        )
        return self._config

    def _default_keyword_rules(self) -> Dict[str, int]:
        return {
            "max_keywords": settings.keyword_max_unigrams,
            "max_bigrams": settings.keyword_max_bigrams,
            "min_length": settings.keyword_min_length,
            "max_length": settings.keyword_max_length,
        }

    def _load_from_file(self, path: Path) -> TriageConfig:
        """Load and parse YAML config file."""
        if not path.exists():
            logger.warning(f"Triage config file not found: {path}, using defaults")
            return TriageConfig(keywords=KeywordRules(**self._default_keyword_rules()))

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationException(f"Invalid triage config YAML: {e}")

        if not isinstance(data, dict):
            raise ConfigurationException("Triage config must be a mapping")

        # File values win over environment defaults
        data["keywords"] = {**self._default_keyword_rules(), **(data.get("keywords") or {})}

        try:
            return TriageConfig(**data)
        except ValidationError as e:
            raise ConfigurationException(
                f"Invalid triage config: {e}",
                details={"path": str(path)}
            )

    @property
    def config(self) -> TriageConfig:
        """Get current configuration."""
        if self._config is None:
            raise RuntimeError("Triage configuration not loaded")
        return self._config


# ========== Translation ==========

class HuggingFaceTranslationClient(ITranslator):
    """
    Translator backed by the Hugging Face Inference API.

    Sends `{"inputs": text}` to the model endpoint and expects
    `[{"translation_text": "..."}]` back.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self._api_key = api_key or settings.hf_api_key
        if not self._api_key:
            raise ConfigurationException("HF_API_KEY is not set")

        self._model = model or settings.translation_model
        self._url = f"{(base_url or settings.translation_base_url).rstrip('/')}/{self._model}"
        self._timeout = timeout or settings.translation_timeout_seconds
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def translate(self, text: str, ticket_id: Optional[str] = None) -> str:
        """
        Translate Indonesian text to English.

        Raises:
            TranslationException: On transport errors, non-2xx replies,
                malformed bodies or an empty translation
        """
        logger.info(
            "Translating text to English",
            extra={"ticket_id": ticket_id, "model": self._model, "input_length": len(text)}
        )

        client = await self._get_client()
        try:
            response = await client.post(
                self._url,
                json={"inputs": text},
                headers={"Authorization": f"Bearer {self._api_key}"}
            )
        except httpx.TimeoutException:
            raise TranslationException(f"Request timed out after {self._timeout:g}s")
        except httpx.HTTPError as e:
            raise TranslationException(f"Request failed: {e}")

        if not response.is_success:
            raise TranslationException(
                f"HTTP {response.status_code} from translation model",
                details={"status_code": response.status_code, "body": response.text[:500]}
            )

        try:
            data = response.json()
        except ValueError:
            raise TranslationException("Response is not valid JSON")

        translated = self._extract_translation(data)
        if not translated or not translated.strip():
            raise TranslationException("Empty translation returned")

        logger.info(
            "Translation completed",
            extra={"ticket_id": ticket_id, "output_length": len(translated)}
        )
        return translated

    @staticmethod
    def _extract_translation(data: Any) -> Optional[str]:
        if isinstance(data, list) and data:
            data = data[0]
        if not isinstance(data, dict):
            raise TranslationException("Unexpected translation response shape")
        value = data.get("translation_text")
        if value is not None and not isinstance(value, str):
            raise TranslationException("translation_text is not a string")
        return value

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


# ========== Classification ==========

class PredictionPayload(BaseModel):
    """Reply of the classification microservice."""
    cluster: StrictInt = Field(..., ge=0)
    confidence: float = Field(..., ge=0.0, le=1.0)
    probabilities: List[float]


class MLServiceClient(IClassifier):
    """
    Client for the cluster classification microservice.

    Only `cluster`, `confidence` and `probabilities` are taken from the
    remote reply; urgency, priority and auto-escalation come from the
    local cluster table.
    """

    def __init__(
        self,
        triage_config: TriageConfig,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self._config = triage_config
        self._url = f"{(base_url or settings.ml_service_url).rstrip('/')}/predict"
        self._timeout = timeout or settings.ml_timeout_seconds
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def classify(self, text: str, ticket_id: Optional[str] = None) -> ClassificationResult:
        """
        Classify translated ticket text.

        Raises:
            ClassificationException: On transport errors, non-2xx replies,
                malformed bodies or a cluster outside the table
        """
        client = await self._get_client()
        try:
            response = await client.post(self._url, json={"text": text, "ticket_id": ticket_id})
        except httpx.TimeoutException:
            raise ClassificationException(f"Request timed out after {self._timeout:g}s")
        except httpx.HTTPError as e:
            raise ClassificationException(f"Request failed: {e}")

        if not response.is_success:
            raise ClassificationException(
                f"HTTP {response.status_code} from ML service",
                details={"status_code": response.status_code, "body": response.text[:500]}
            )

        try:
            data = response.json()
        except ValueError:
            raise ClassificationException("Response is not valid JSON")

        if isinstance(data, dict) and isinstance(data.get("prediction"), dict):
            data = data["prediction"]

        try:
            prediction = PredictionPayload.model_validate(data)
        except ValidationError as e:
            raise ClassificationException(
                "Malformed prediction",
                details={"errors": [err["msg"] for err in e.errors()]}
            )

        return self._to_result(prediction)

    def _to_result(self, prediction: PredictionPayload) -> ClassificationResult:
        try:
            profile = self._config.profile_for(prediction.cluster)
        except KeyError:
            raise ClassificationException(f"Unknown cluster {prediction.cluster}")

        if len(prediction.probabilities) != self._config.cluster_count:
            raise ClassificationException(
                f"Expected {self._config.cluster_count} probabilities, "
                f"got {len(prediction.probabilities)}"
            )

        return ClassificationResult(
            cluster=prediction.cluster,
            urgency=profile.urgency,
            priority=profile.priority,
            confidence=prediction.confidence,
            auto_escalate=profile.auto_escalate,
            probabilities=tuple(prediction.probabilities)
        )

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


# ========== Judgment ==========

class GeminiJudgmentClient(IJudge):
    """
    Judgment adapter.

    Builds the prompt, requests a reply constrained by the judgment JSON
    Schema and validates it against the contract.
    """

    def __init__(
        self,
        llm_client: ILLMClient,
        prompt_builder: JudgmentPromptBuilder,
        temperature: Optional[float] = None
    ):
        self._llm = llm_client
        self._prompt_builder = prompt_builder
        self._temperature = temperature
        self._schema = judgment_json_schema()

    async def judge(
        self,
        original_text: str,
        translated_text: str,
        classification: ClassificationResult,
        ticket_id: Optional[str] = None
    ) -> JudgmentResult:
        """
        Review a classification and draft the customer reply.

        Raises:
            JudgmentException: On transport failure or a contract violation
        """
        prompt = self._prompt_builder.build_prompt(original_text, translated_text, classification)

        completion = await self._llm.generate_structured(
            prompt,
            self._schema,
            temperature=self._temperature,
            operation="judgment"
        )

        judgment = parse_judgment(completion.content)

        logger.info(
            "Judgment received",
            extra={
                "ticket_id": ticket_id,
                "model": completion.model,
                "ml_valid": judgment.ml_valid,
                "recommended_action": judgment.recommended_action.value,
                "total_tokens": completion.total_tokens
            }
        )
        return judgment

    async def close(self) -> None:
        await self._llm.close()


# ========== Local Development Mocks ==========

class MockTranslationClient(ITranslator):
    """
    Word-by-word translator for local development.

    Unknown words pass through unchanged.
    """

    GLOSSARY = {
        "internet": "internet", "mati": "down", "total": "completely", "dari": "since",
        "pagi": "morning", "rugi": "losing money", "saya": "I", "sinyal": "signal",
        "lemot": "slow", "tagihan": "bill", "salah": "wrong", "terima": "thank",
        "kasih": "you", "tidak": "not", "bisa": "can", "pulsa": "credit",
        "habis": "used up", "tolong": "please", "bantu": "help", "kenapa": "why",
    }

    async def translate(self, text: str, ticket_id: Optional[str] = None) -> str:
        words = re.findall(r"\w+|[^\w\s]", text)
        translated = []
        for word in words:
            translated.append(self.GLOSSARY.get(word.lower(), word))
        return " ".join(translated)


class MockMLServiceClient(IClassifier):
    """
    Keyword-driven classifier for local development.

    Outage vocabulary maps to the first auto-escalating cluster, follow-up
    vocabulary to the first Medium cluster, everything else to cluster 0.
    """

    HIGH_SIGNALS = ("down", "dead", "outage", "not working", "losing money", "mati", "gangguan")
    MEDIUM_SIGNALS = ("follow up", "already sent", "data", "status", "update")

    def __init__(self, triage_config: TriageConfig):
        self._config = triage_config

    def _pick_cluster(self, text: str) -> int:
        lowered = text.lower()
        clusters = sorted(self._config.clusters.items())
        if any(signal in lowered for signal in self.HIGH_SIGNALS):
            for cluster_id, profile in clusters:
                if profile.auto_escalate:
                    return cluster_id
        if any(signal in lowered for signal in self.MEDIUM_SIGNALS):
            for cluster_id, profile in clusters:
                if profile.urgency == UrgencyLevel.MEDIUM:
                    return cluster_id
        return 0

    async def classify(self, text: str, ticket_id: Optional[str] = None) -> ClassificationResult:
        cluster = self._pick_cluster(text)
        profile = self._config.profile_for(cluster)
        confidence = 0.995 if profile.auto_escalate else 0.8

        count = self._config.cluster_count
        rest = (1.0 - confidence) / (count - 1) if count > 1 else 0.0
        probabilities = tuple(confidence if i == cluster else rest for i in range(count))

        return ClassificationResult(
            cluster=cluster,
            urgency=profile.urgency,
            priority=profile.priority,
            confidence=confidence,
            auto_escalate=profile.auto_escalate,
            probabilities=probabilities
        )
