"""
Extraction Module

Landmark structures, the geometry kernel and per-frame metric extractors.
"""
from .landmarks import Landmark, FaceLandmarks, PoseLandmarks
from .metrics import (
    CaptureStage,
    FaceMetrics,
    BodyMetrics,
    StageMetrics,
    FaceMetricExtractor,
    BodyMetricExtractor,
)

__all__ = [
    "Landmark",
    "FaceLandmarks",
    "PoseLandmarks",
    "CaptureStage",
    "FaceMetrics",
    "BodyMetrics",
    "StageMetrics",
    "FaceMetricExtractor",
    "BodyMetricExtractor",
]
