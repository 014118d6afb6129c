"""
TelcoCare Triage - Main Application
====================================

AI-assisted customer ticket evaluation service.

Pipeline:
- Translation: Indonesian to English (Hugging Face Inference)
- Classification: urgency cluster from the ML microservice
- Judgment: Gemini reviews the classification and drafts the reply
- Escalation: classifier flag reconciled with the judgment
- Persistence: results and keywords stored in the background

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Pipeline services and DTOs
- Domain: Entities, value objects and decision rules
- Infrastructure: Database, LLM, HTTP adapters
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, List, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

# Configuration and Core
from telcocare.config import settings

# Infrastructure
from telcocare.infrastructure.database import init_database, close_database, create_tables
from telcocare.infrastructure.llm import GeminiLLMClient, MockLLMClient, ILLMClient

# Triage Module
from telcocare.triage.application import (
    TicketTriagePipeline, PersistenceScheduler, TicketResultRecorder, StageTimeouts,
    ITranslator, IClassifier, IJudge
)
from telcocare.triage.domain import JudgmentPromptBuilder, KeywordExtractor, TriageConfig
from telcocare.triage.infrastructure import (
    TriageConfigLoader,
    HuggingFaceTranslationClient,
    MLServiceClient,
    GeminiJudgmentClient,
    MockTranslationClient,
    MockMLServiceClient,
    SQLAlchemyTicketResultRepository
)
from telcocare.triage.interfaces import triage_router

# Logging
from telcocare.shared.infrastructure.logging import setup_logging, get_logger
from telcocare.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    request_validation_handler,
    http_exception_handler,
    global_exception_handler
)

logger = get_logger(__name__)

# Seconds shutdown waits for pending result writes
SHUTDOWN_DRAIN_TIMEOUT = 10.0


def build_adapters(triage_config: TriageConfig) -> Tuple[ITranslator, IClassifier, IJudge]:
    """
    Construct the remote-capability adapters.

    With `mock_services` enabled every adapter runs in-process.
    """
    prompt_builder = JudgmentPromptBuilder(triage_config)

    if settings.mock_services:
        logger.warning("Using mock translation, classification and judgment services")
        llm_client: ILLMClient = MockLLMClient()
        return (
            MockTranslationClient(),
            MockMLServiceClient(triage_config),
            GeminiJudgmentClient(llm_client, prompt_builder)
        )

    gemini_client = GeminiLLMClient()
    logger.info("Judgment model configured", extra={"model": gemini_client.model_name})
    return (
        HuggingFaceTranslationClient(),
        MLServiceClient(triage_config),
        GeminiJudgmentClient(gemini_client, prompt_builder, temperature=settings.gemini_temperature)
    )


async def init_persistence() -> bool:
    """
    Initialize the database and create tables.

    Returns False when the database is unavailable; the service then runs
    in degraded mode without storing results.
    """
    if not settings.persistence_enabled:
        logger.info("Result persistence disabled")
        return False

    logger.info("Initializing database")
    try:
        init_database()
        # Tables for development - use Alembic in production
        await create_tables()
    except Exception as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")
        return False
    return True


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Load triage configuration
    3. Initialize database and tables
    4. Build adapters, recorder and pipeline

    SHUTDOWN:
    1. Drain pending persistence tasks
    2. Close adapter HTTP clients
    3. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting TelcoCare Triage", extra={
        "version": settings.app_version,
        "environment": settings.environment,
        "mock_services": settings.mock_services
    })

    # Triage tables are loaded once and shared read-only
    triage_config = TriageConfigLoader().load(settings.triage_config_path)

    persistence_available = await init_persistence()

    translator, classifier, judge = build_adapters(triage_config)

    scheduler: Optional[PersistenceScheduler] = None
    recorder: Optional[TicketResultRecorder] = None
    if persistence_available:
        scheduler = PersistenceScheduler()
        recorder = TicketResultRecorder(
            SQLAlchemyTicketResultRepository(),
            KeywordExtractor(triage_config.stopwords, triage_config.keywords)
        )

    pipeline = TicketTriagePipeline(
        translator,
        classifier,
        judge,
        timeouts=StageTimeouts(
            translation=settings.translation_timeout_seconds,
            classification=settings.ml_timeout_seconds,
            judgment=settings.judgment_timeout_seconds
        ),
        max_ticket_length=settings.max_ticket_length,
        recorder=recorder,
        scheduler=scheduler
    )

    # Store services in app state for dependency injection
    app.state.triage_config = triage_config
    app.state.pipeline = pipeline
    app.state.persistence_scheduler = scheduler
    app.state.persistence_available = persistence_available

    logger.info("TelcoCare Triage started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down TelcoCare Triage")

    if scheduler:
        await scheduler.drain(timeout=SHUTDOWN_DRAIN_TIMEOUT)

    adapters: List = [translator, classifier, judge]
    for adapter in adapters:
        try:
            await adapter.close()
        except Exception as e:
            logger.warning(f"Failed to close {type(adapter).__name__}: {e}")

    await close_database()

    logger.info("TelcoCare Triage shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="TelcoCare Triage API",
    description="""
    ## AI-Assisted Customer Ticket Evaluation

    Evaluates Indonesian customer support tickets for a telecommunications
    provider and drafts the customer reply.

    ---

    ### Ticket Evaluation

    **Endpoint:**
    - `POST /ticket/evaluate` - Translate, classify, judge and escalate one ticket

    **Pipeline:**
    1. Translation (Helsinki-NLP/opus-mt-id-en)
    2. Cluster classification (ML microservice)
    3. Judgment and reply drafting (Gemini, structured output)
    4. Escalation decision
    5. Background persistence with keyword extraction

    ---

    ### Cluster Table

    | Cluster | Urgency | Priority | Auto-escalate |
    |---------|---------|----------|---------------|
    | 0       | Low     | P3       | no            |
    | 1       | Low     | P3       | no            |
    | 2       | Medium  | P2       | no            |
    | 3       | High    | P1       | yes           |

    *Overridable through `triage_config.yaml`*

    ---

    ### Escalation

    A ticket is escalated when the classifier flags it **and** the judgment
    confirms the classification, or when the judgment recommends
    escalation on its own. The reason is `llm` whenever the judgment
    recommends escalation.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(triage_router)

# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "pipeline": "ready",
                        "persistence": "available (0 pending)",
                        "triage_config": "loaded (4 clusters)",
                        "mock_services": False
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Returns service health status including:
    - Pipeline readiness
    - Persistence availability and pending writes
    - Triage configuration status
    """
    state = request.app.state
    pipeline = getattr(state, "pipeline", None)
    scheduler = getattr(state, "persistence_scheduler", None)
    triage_config = getattr(state, "triage_config", None)

    if scheduler is not None:
        persistence = f"available ({scheduler.pending} pending)"
    elif getattr(state, "persistence_available", False):
        persistence = "available"
    else:
        persistence = "unavailable"

    checks = {
        "pipeline": "ready" if pipeline else "not_initialized",
        "persistence": persistence,
        "triage_config": f"loaded ({triage_config.cluster_count} clusters)" if triage_config else "not_loaded",
        "mock_services": settings.mock_services
    }

    return {
        "status": "healthy" if pipeline else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"], responses={
    200: {
        "description": "API information",
        "content": {
            "application/json": {
                "example": {
                    "service": "TelcoCare Triage",
                    "version": "1.0.0",
                    "architecture": "Clean Architecture / Modular Monolith",
                    "docs": "/docs",
                    "health": "/health"
                }
            }
        }
    }
})
async def root():
    """Root endpoint with API information."""
    return {
        "service": "TelcoCare Triage",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "triage": {
                "prefix": "/ticket",
                "endpoints": [
                    "POST /ticket/evaluate - Evaluate a customer ticket"
                ]
            }
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "telcocare.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower()
    )
