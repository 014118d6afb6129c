"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from telcocare.core.exceptions import (
    ApplicationException,
    RepositoryException,
    ConfigurationException,
    PipelineStageException,
    ValidationException,
    ExternalServiceException,
    TranslationException,
    ClassificationException,
    JudgmentException,
    InternalPipelineException,
    PersistenceException,
)

__all__ = [
    "ApplicationException",
    "RepositoryException",
    "ConfigurationException",
    "PipelineStageException",
    "ValidationException",
    "ExternalServiceException",
    "TranslationException",
    "ClassificationException",
    "JudgmentException",
    "InternalPipelineException",
    "PersistenceException",
]
