"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

Every pipeline stage has its own exception type carrying the stage tag and
the HTTP status it maps to, so callers can tell "our input was bad" apart
from "a dependency is down".
"""

from typing import Optional

from telcocare.config import ErrorStage


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class PipelineStageException(ApplicationException):
    """
    Failure attributed to a single pipeline stage.

    Subclasses fix the stage, the short error title and the HTTP status.
    """

    stage: ErrorStage = ErrorStage.PROCESSING
    title: str = "Internal Server Error"
    status_code: int = 500


class ValidationException(PipelineStageException):
    """Exception for validation errors."""

    stage = ErrorStage.VALIDATION
    title = "Validation Error"
    status_code = 400


class ExternalServiceException(PipelineStageException):
    """Base exception for external service failures."""

    status_code = 503

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class TranslationException(ExternalServiceException):
    """Exception for translation API failures."""

    stage = ErrorStage.TRANSLATION
    title = "Translation Error"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Translation Service", message, details)


class ClassificationException(ExternalServiceException):
    """Exception for ML classification service failures."""

    stage = ErrorStage.ML_SERVICE
    title = "ML Service Error"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("ML Service", message, details)


class JudgmentException(ExternalServiceException):
    """Exception for LLM judgment failures, transport or contract."""

    stage = ErrorStage.GEMINI
    title = "Gemini Error"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("LLM Service", message, details)


class InternalPipelineException(PipelineStageException):
    """Anything unanticipated, caught at the pipeline boundary."""


class PersistenceException(RepositoryException):
    """Failure while storing results; logged, never returned to the caller."""
