"""
Core services for the application.

This package contains the main service implementations for the application,
including classification, aggregation, storage, export and the dashboard view.
"""

from .classifier import assess, classify_health, classify_response
from .storage import KeyValueBackend, Result, SurveyDataStore
from .survey_service import HealthSurveyService

__all__ = [
    "KeyValueBackend",
    "Result",
    "SurveyDataStore",
    "HealthSurveyService",
    "assess",
    "classify_health",
    "classify_response",
]
