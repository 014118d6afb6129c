"""
Judgment Contract
=================

Structured-output contract for the judgment step and the prompt that
requests it.

The contract is a closed structure: every field is required, every enum
has a fixed value set and `keywords` is bounded. A reply that does not
match is rejected as a whole; nothing is defaulted or repaired.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from telcocare.config import (
    ConfidenceBucket, IssueCategory, RecommendedAction, Tone
)
from telcocare.core import JudgmentException
from telcocare.triage.domain.entities import ClassificationResult, JudgmentResult
from telcocare.triage.domain.value_objects import TriageConfig


# ========== Type Aliases for Literals ==========
ConfidenceBucketStr = Literal["high", "medium", "low"]
IssueCategoryStr = Literal[
    "Billing & Payment",
    "Network & Connectivity",
    "Technical Support",
    "Account & Service Management",
    "General Inquiry & Feedback",
]
RecommendedActionStr = Literal["escalate", "standard", "automated"]
ToneStr = Literal["empathetic", "professional", "urgent", "friendly"]

KEYWORD_MIN_COUNT = 5
KEYWORD_MAX_COUNT = 10
KEYWORD_MIN_CHARS = 2
KEYWORD_MAX_CHARS = 50


class JudgmentPayload(BaseModel):
    """Wire contract of the judgment reply."""
    model_config = ConfigDict(strict=True, extra="forbid")

    ml_valid: bool = Field(
        ...,
        description="Whether the ML prediction is valid and makes sense given the ticket content"
    )
    confidence_assessment: ConfidenceBucketStr = Field(
        ...,
        description="Assessment of the ML model's confidence level: high (>0.85), medium (0.60-0.85), or low (<0.60)"
    )
    issue_category: IssueCategoryStr = Field(
        ...,
        description=(
            "Category of the customer ticket based on the issue type. "
            "Billing & Payment: invoices, charges, payments. "
            "Network & Connectivity: signal, internet, coverage. "
            "Technical Support: device, configuration, troubleshooting. "
            "Account & Service Management: registration, plan changes, subscriptions. "
            "General Inquiry & Feedback: questions, complaints, suggestions."
        )
    )
    reasoning: str = Field(
        ...,
        min_length=1,
        description="Brief explanation of why the ML prediction is valid or invalid (1-2 sentences)"
    )
    customer_response: str = Field(
        ...,
        min_length=1,
        description=(
            "Response for the customer that addresses their issue (2-4 sentences). "
            "MUST be written in Indonesian."
        )
    )
    recommended_action: RecommendedActionStr = Field(
        ...,
        description="escalate for high urgency, standard for medium, automated for low"
    )
    tone: ToneStr = Field(
        ...,
        description=(
            "Tone of the customer response: empathetic/urgent for high urgency, "
            "professional for medium, friendly for low"
        )
    )
    keywords: List[str] = Field(
        ...,
        min_length=KEYWORD_MIN_COUNT,
        max_length=KEYWORD_MAX_COUNT,
        description=(
            "5-10 important Indonesian keywords or short phrases taken from the original ticket. "
            "Prefer multi-word phrases (e.g. 'internet mati' over 'internet'). "
            "Each keyword 2-50 characters, no stopwords, no English translations."
        )
    )

    @field_validator("reasoning", "customer_response")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @field_validator("keywords")
    @classmethod
    def validate_keywords(cls, v: List[str]) -> List[str]:
        """Keywords must be non-blank, unpadded, bounded in length and distinct."""
        seen = set()
        for keyword in v:
            if not keyword.strip():
                raise ValueError("keywords must not be blank")
            if keyword != keyword.strip():
                raise ValueError(f"keyword '{keyword}' has leading or trailing whitespace")
            if not KEYWORD_MIN_CHARS <= len(keyword) <= KEYWORD_MAX_CHARS:
                raise ValueError(
                    f"keyword '{keyword}' must be {KEYWORD_MIN_CHARS}-{KEYWORD_MAX_CHARS} characters"
                )
            folded = keyword.casefold()
            if folded in seen:
                raise ValueError(f"duplicate keyword '{keyword}'")
            seen.add(folded)
        return v

    def to_domain(self) -> JudgmentResult:
        """Convert to domain entity."""
        return JudgmentResult(
            ml_valid=self.ml_valid,
            confidence_assessment=ConfidenceBucket(self.confidence_assessment),
            issue_category=IssueCategory(self.issue_category),
            reasoning=self.reasoning,
            customer_response=self.customer_response,
            recommended_action=RecommendedAction(self.recommended_action),
            tone=Tone(self.tone),
            keywords=tuple(self.keywords)
        )


def judgment_json_schema() -> dict:
    """JSON Schema handed to the model as the response contract."""
    return JudgmentPayload.model_json_schema()


def parse_judgment(raw: Optional[str]) -> JudgmentResult:
    """
    Parse and validate a raw judgment reply.

    Raises:
        JudgmentException: If the reply is empty, not JSON, or breaks the contract
    """
    if raw is None or not raw.strip():
        raise JudgmentException("No content in judgment response")

    try:
        payload = JudgmentPayload.model_validate_json(raw)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        ]
        raise JudgmentException(
            f"Judgment response violates contract: {'; '.join(problems)}",
            details={"errors": problems}
        )

    return payload.to_domain()


class JudgmentPromptBuilder:
    """
    Builds the judgment prompt.

    All prompt logic in one place; output depends only on the inputs and
    the triage configuration.
    """

    SYSTEM_INSTRUCTION = """You are an AI assistant for TelcoCare, a telecommunications company.

Your task is to:
1. Evaluate ML predictions for customer support tickets
2. Categorize the ticket into a telco business category
3. Generate an appropriate customer response
4. Extract keywords for analytics

You will receive:
- Customer ticket text (original Indonesian + English translation)
- ML prediction: cluster, urgency, priority, confidence

EVALUATION CRITERIA:
- High confidence (>0.85): Usually valid, but check if prediction matches ticket sentiment
- Medium confidence (0.60-0.85): Validate carefully, look for context clues
- Low confidence (<0.60): Likely invalid, rely on ticket text only

CATEGORIZATION CRITERIA:
Categorize each ticket into ONE of these 5 categories:
1. "Billing & Payment": Invoices, charges, payment issues, billing disputes, refunds
2. "Network & Connectivity": Signal problems, internet speed, coverage issues, outages
3. "Technical Support": Device setup, configuration, troubleshooting, app issues, error messages
4. "Account & Service Management": Registration, plan changes, subscriptions, upgrades, cancellations
5. "General Inquiry & Feedback": General questions, complaints, suggestions, feedback, praise

Choose the category based on the PRIMARY issue in the ticket. If multiple issues exist, prioritize the most urgent or prominent one.

KEYWORD EXTRACTION CRITERIA:
Extract 5-10 important Indonesian keywords or phrases from the ORIGINAL Indonesian ticket text.
- Problem indicators: internet mati, sinyal lemot, tagihan salah, pulsa habis
- Service names: IndiHome, fiber, WiFi, paket internet
- Technical terms: modem, router, aplikasi, instalasi
- Emotions/urgency: kecewa, urgent, penting, komplain, lapor
- Billing terms: tagihan, bayar, kuota, saldo, refund

Guidelines:
1. Prefer multi-word phrases over single words (e.g., "internet mati" > "mati")
2. Use actual words from the Indonesian ticket (not English)
3. Each keyword: 2-50 characters, no gibberish, no duplicates
4. Skip common stopwords (yang, untuk, saya, mohon, terima kasih)
5. Focus on terms useful for aggregating similar issues across tickets

URGENCY MAPPING (for reference):
{urgency_mapping}

RESPONSE GUIDELINES:
- If ML valid: Use urgency/priority context to tailor response tone
- If ML invalid: Ignore ML, respond based solely on ticket content
- High urgency: Empathetic, urgent tone; indicate immediate escalation
- Medium urgency: Professional, solution-focused
- Low urgency: Friendly, informative

IMPORTANT: The customer_response field MUST be written in Indonesian language (Bahasa Indonesia).
Even though an English translation is provided, your response to the customer must be in Indonesian.

Always respond with structured JSON matching the provided schema."""

    def __init__(self, triage_config: TriageConfig):
        self._config = triage_config

    def get_system_instruction(self) -> str:
        return self.SYSTEM_INSTRUCTION.format(
            urgency_mapping="\n".join(self._config.urgency_mapping_lines())
        )

    def build_prompt(
        self,
        original_text: str,
        translated_text: str,
        classification: ClassificationResult
    ) -> str:
        """Build the complete prompt for one ticket."""
        return f"""{self.get_system_instruction()}

CUSTOMER TICKET (Original Indonesian):
"{original_text}"

CUSTOMER TICKET (English translation for ML processing):
"{translated_text}"

ML PREDICTION (based on English translation):
- Cluster: {classification.cluster}
- Urgency: {classification.urgency.value}
- Priority: {classification.priority.value}
- Confidence: {classification.confidence * 100:.1f}%
- Auto-escalate: {classification.auto_escalate}

Evaluate this prediction and generate a customer response in Indonesian."""
