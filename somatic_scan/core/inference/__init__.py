"""
Inference Module

Pattern scoring, questionnaire scoring and multi-modal fusion.
"""
from .patterns import PatternKey, Severity, SOMATIC_PATTERNS
from .pattern_analyzer import PatternAnalyzer, PatternAnalysis, PatternResult
from .questionnaire import QuestionnaireScorer, QuestionnaireResult, score_questionnaire
from .fusion import (
    FusionEngine,
    FusionResult,
    ConfidenceLevel,
    fuse_scores,
    confidence_band,
    generate_integrated_summary,
    get_integrated_recommendations,
)

__all__ = [
    "PatternKey",
    "Severity",
    "SOMATIC_PATTERNS",
    "PatternAnalyzer",
    "PatternAnalysis",
    "PatternResult",
    "QuestionnaireScorer",
    "QuestionnaireResult",
    "score_questionnaire",
    "FusionEngine",
    "FusionResult",
    "ConfidenceLevel",
    "fuse_scores",
    "confidence_band",
    "generate_integrated_summary",
    "get_integrated_recommendations",
]
