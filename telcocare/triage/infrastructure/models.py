"""
Triage Infrastructure Models
=============================

SQLAlchemy ORM models for the triage module.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, DateTime, Integer, Float, Text, Boolean, Uuid, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from telcocare.infrastructure.database import Base


class TicketResultModel(Base):
    """
    Database model for a flat PipelineResult.

    One row per successful evaluation; transient response fields
    (timestamp, probabilities, judgment keywords) are not stored.
    """
    __tablename__ = "ticket_results"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Request data
    ticket_id: Mapped[Optional[str]] = mapped_column(String(255), index=True, nullable=True)
    ticket_text: Mapped[str] = mapped_column(Text, nullable=False)
    translated_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ML prediction results
    ml_cluster: Mapped[int] = mapped_column(Integer, nullable=False)
    ml_urgency: Mapped[str] = mapped_column(String(20), nullable=False)
    ml_priority: Mapped[str] = mapped_column(String(10), nullable=False)
    ml_confidence: Mapped[float] = mapped_column(Float, nullable=False)
    ml_auto_escalate: Mapped[bool] = mapped_column(Boolean, nullable=False)

    # LLM judgment results
    llm_ml_valid: Mapped[bool] = mapped_column(Boolean, nullable=False)
    llm_confidence_assessment: Mapped[str] = mapped_column(String(20), nullable=False)
    llm_issue_category: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    llm_reasoning: Mapped[str] = mapped_column(Text, nullable=False)
    llm_recommended_action: Mapped[str] = mapped_column(String(20), nullable=False)
    llm_tone: Mapped[str] = mapped_column(String(20), nullable=False)

    # Customer response
    customer_response: Mapped[str] = mapped_column(Text, nullable=False)

    # Escalation
    escalation_triggered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    escalation_reason: Mapped[str] = mapped_column(String(10), nullable=False)
    escalation_urgency: Mapped[str] = mapped_column(String(20), nullable=False)
    escalation_priority: Mapped[str] = mapped_column(String(10), nullable=False)

    # Performance metrics (milliseconds)
    translation_time_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ml_processing_time_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    llm_processing_time_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_processing_time_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamp
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )


class TicketKeywordModel(Base):
    """
    Database model for an extracted keyword.

    Many rows per ticket result, used for theme analytics.
    """
    __tablename__ = "ticket_keywords"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Foreign key to ticket result
    ticket_result_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("ticket_results.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    keyword: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    frequency: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Timestamp
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
