"""
Capture Module

Hold/countdown timing and the capture session scheduler.
"""
from .timing import HoldTimer, HoldState, TimingVariant
from .session import (
    CaptureSession,
    DetectionResult,
    FrameResult,
    LandmarkDetector,
    SessionState,
)

__all__ = [
    "HoldTimer",
    "HoldState",
    "TimingVariant",
    "CaptureSession",
    "DetectionResult",
    "FrameResult",
    "LandmarkDetector",
    "SessionState",
]
