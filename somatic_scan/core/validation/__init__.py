"""
Validation Module

Per-stage alignment gating and capture-time landmark validation.
"""
from .alignment import AlignmentResult, check_alignment
from .capture_validation import CaptureValidationResult, validate_capture

__all__ = [
    "AlignmentResult",
    "check_alignment",
    "CaptureValidationResult",
    "validate_capture",
]
