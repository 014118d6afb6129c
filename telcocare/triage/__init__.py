"""
Triage Module
=============

Bounded Context for customer ticket evaluation.

Responsibilities:
- Translate Indonesian tickets for the classifier
- Classify tickets into urgency clusters
- Review the classification and draft a customer reply with an LLM
- Decide escalation and record results for analytics
"""

__version__ = "1.0.0"
