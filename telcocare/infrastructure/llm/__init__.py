"""
LLM Client Infrastructure
==========================

Wrapper for LLM providers (Google Gemini) providing a clean interface for
structured-output generation.

This module abstracts the LLM client implementation following the
Dependency Inversion Principle - the triage module depends on the
ILLMClient abstraction, not on the google-genai SDK.
"""

import json
import re
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from google import genai
from google.genai import types

from telcocare.config import settings
from telcocare.core import ConfigurationException, JudgmentException
from telcocare.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class StructuredCompletionResult:
    """Raw result of a structured (JSON) completion."""

    def __init__(
        self,
        content: Optional[str],
        model: str,
        latency_ms: int,
        prompt_tokens: int = 0,
        completion_tokens: int = 0
    ):
        self.content = content
        self.model = model
        self.latency_ms = latency_ms
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens


class ILLMClient(ABC):
    """
    Interface for LLM client operations.

    Following Interface Segregation Principle - only methods
    actually needed by the application are defined.
    """

    @abstractmethod
    async def generate_structured(
        self,
        prompt: str,
        response_schema: Dict[str, Any],
        temperature: Optional[float] = None,
        operation: str = "structured_completion"
    ) -> StructuredCompletionResult:
        """Generate a JSON reply constrained by `response_schema`."""

    async def close(self) -> None:
        """Release underlying resources."""


class GeminiLLMClient(ILLMClient):
    """
    Google Gemini client implementation using the 'google-genai' SDK.

    Uses the async surface (`client.aio`) so the event loop stays free
    while the model is thinking.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[genai.Client] = None
    ):
        self._api_key = api_key or settings.gemini_api_key
        if client is None and not self._api_key:
            raise ConfigurationException("Gemini API key not configured")

        self._client = client or genai.Client(api_key=self._api_key)
        self._model = model or settings.gemini_model

    @property
    def model_name(self) -> str:
        return self._model

    async def generate_structured(
        self,
        prompt: str,
        response_schema: Dict[str, Any],
        temperature: Optional[float] = None,
        operation: str = "structured_completion"
    ) -> StructuredCompletionResult:
        """
        Generate a JSON completion constrained by a JSON Schema.

        Args:
            prompt: Full prompt (instructions + ticket context)
            response_schema: JSON Schema the reply must follow
            temperature: Sampling temperature, defaults to settings
            operation: Operation name for logging

        Returns:
            StructuredCompletionResult with the raw reply text

        Raises:
            JudgmentException: If the API call fails
        """
        start_time = time.perf_counter()

        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    temperature=settings.gemini_temperature if temperature is None else temperature,
                    response_mime_type="application/json",
                    response_json_schema=response_schema,
                ),
            )
        except Exception as e:
            raise JudgmentException(f"Gemini request failed: {e}")

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        usage = getattr(response, "usage_metadata", None)

        logger.debug(
            "Gemini reply received",
            extra={"operation": operation, "model": self._model, "elapsed_ms": latency_ms}
        )

        return StructuredCompletionResult(
            content=response.text,
            model=self._model,
            latency_ms=latency_ms,
            prompt_tokens=getattr(usage, "prompt_token_count", None) or 0,
            completion_tokens=getattr(usage, "candidates_token_count", None) or 0
        )


class MockLLMClient(ILLMClient):
    """
    Mock LLM client for local development.

    Returns a schema-conforming judgment without calling external APIs.
    Escalates whenever the prompt reports an auto-escalating prediction.
    """

    FILLER_KEYWORDS = ["keluhan pelanggan", "layanan", "bantuan", "kendala", "pelanggan"]

    async def generate_structured(
        self,
        prompt: str,
        response_schema: Dict[str, Any],
        temperature: Optional[float] = None,
        operation: str = "structured_completion"
    ) -> StructuredCompletionResult:
        escalate = "Auto-escalate: True" in prompt

        match = re.search(r'\(Original Indonesian\):\s*"(.*?)"\s*\n', prompt, re.DOTALL)
        original = match.group(1) if match else ""

        keywords = []
        for word in re.findall(r"\w+", original.lower()):
            if 3 <= len(word) <= 50 and word not in keywords:
                keywords.append(word)
        for filler in self.FILLER_KEYWORDS:
            if len(keywords) >= 5:
                break
            if filler not in keywords:
                keywords.append(filler)

        reply = {
            "ml_valid": True,
            "confidence_assessment": "high" if escalate else "medium",
            "issue_category": "Network & Connectivity" if escalate else "General Inquiry & Feedback",
            "reasoning": "Mock: prediction accepted without review.",
            "customer_response": (
                "Mohon maaf atas ketidaknyamanan Anda. Laporan Anda sudah kami terima "
                "dan sedang kami tindak lanjuti."
            ),
            "recommended_action": "escalate" if escalate else "standard",
            "tone": "urgent" if escalate else "professional",
            "keywords": keywords[:10],
        }

        return StructuredCompletionResult(
            content=json.dumps(reply, ensure_ascii=False),
            model="mock-model",
            latency_ms=0
        )
