"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="telcocare-triage", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/telcocare",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)
    persistence_enabled: bool = Field(
        default=True,
        description="Store ticket results and keywords after each successful run"
    )

    # ========== Triage Tables ==========
    triage_config_path: Path = Field(
        default=Path("triage_config.yaml"),
        description="Path to cluster table / stopword YAML file"
    )
    max_ticket_length: int = Field(
        default=10000,
        description="Maximum accepted ticket length in characters",
        ge=1
    )

    # ========== Translation (Hugging Face Inference) ==========
    hf_api_key: Optional[str] = Field(default=None, description="Hugging Face API token")
    translation_model: str = Field(
        default="Helsinki-NLP/opus-mt-id-en",
        description="Indonesian to English translation model"
    )
    translation_base_url: str = Field(
        default="https://router.huggingface.co/hf-inference/models",
        description="Hugging Face inference base URL"
    )
    translation_timeout_seconds: float = Field(
        default=20.0,
        description="Timeout for the translation call",
        gt=0,
        le=120
    )

    # ========== ML Classification Service ==========
    ml_service_url: str = Field(
        default="http://localhost:8001",
        description="Base URL of the cluster classification microservice"
    )
    ml_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for the classification call",
        gt=0,
        le=120
    )

    # ========== Gemini (Judgment) ==========
    gemini_api_key: Optional[str] = Field(default=None, description="Google Gemini API key")
    gemini_model: str = Field(default="gemini-2.5-flash", description="Gemini model name")
    gemini_temperature: float = Field(
        default=0.7,
        description="Sampling temperature for the judgment call",
        ge=0.0,
        le=2.0
    )
    judgment_timeout_seconds: float = Field(
        default=45.0,
        description="Timeout for the judgment call",
        gt=0,
        le=300
    )
    mock_services: bool = Field(
        default=False,
        description="Use in-process mock adapters instead of remote services"
    )

    # ========== Keyword Extraction ==========
    keyword_max_unigrams: int = Field(default=7, ge=0, le=50)
    keyword_max_bigrams: int = Field(default=3, ge=0, le=50)
    keyword_min_length: int = Field(default=3, ge=1, le=20)
    keyword_max_length: int = Field(default=50, ge=1, le=120)

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class UrgencyLevel(str, Enum):
    """Urgency derived from the classification cluster."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Priority(str, Enum):
    """Handling priority derived from the classification cluster."""
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"


class ConfidenceBucket(str, Enum):
    """Qualitative read of the classifier confidence."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class IssueCategory(str, Enum):
    """Telco business taxonomy used by the judgment step."""
    BILLING = "Billing & Payment"
    NETWORK = "Network & Connectivity"
    TECHNICAL = "Technical Support"
    ACCOUNT = "Account & Service Management"
    GENERAL = "General Inquiry & Feedback"


class RecommendedAction(str, Enum):
    """Handling recommended by the judgment step."""
    ESCALATE = "escalate"
    STANDARD = "standard"
    AUTOMATED = "automated"


class Tone(str, Enum):
    """Tone of the generated customer response."""
    EMPATHETIC = "empathetic"
    PROFESSIONAL = "professional"
    URGENT = "urgent"
    FRIENDLY = "friendly"


class EscalationReason(str, Enum):
    """Which signal fired the escalation."""
    ML = "ml"
    LLM = "llm"
    NONE = "none"


class ErrorStage(str, Enum):
    """Pipeline stage a failure originated from."""
    VALIDATION = "validation"
    TRANSLATION = "translation"
    ML_SERVICE = "ml_service"
    GEMINI = "gemini"
    PROCESSING = "processing"


# ========== Lists for validation ==========

ISSUE_CATEGORIES = [c.value for c in IssueCategory]
CONFIDENCE_BUCKETS = [c.value for c in ConfidenceBucket]
RECOMMENDED_ACTIONS = [a.value for a in RecommendedAction]
TONES = [t.value for t in Tone]
ERROR_STAGES = [s.value for s in ErrorStage]
