"""
Service layer between the HTTP API and the assessment engines.
"""
from .assessment import AssessmentService

__all__ = ["AssessmentService"]
