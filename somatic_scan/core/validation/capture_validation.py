"""
Capture Validation

Checks that the landmark frame at the capture instant contains what the
stage needs before its metrics are committed.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from somatic_scan.core.extraction.landmarks import FULL_POSE_LANDMARK_COUNT, Landmark
from somatic_scan.core.extraction.metrics import CaptureStage
from somatic_scan.utils import get_logger

logger = get_logger(__name__)

REQUIRED_POSE_INDICES: Dict[CaptureStage, List[int]] = {
    CaptureStage.FACE: [],
    # Shoulders, hips, ankles
    CaptureStage.UPPER_FRONT: [11, 12, 23, 24, 27, 28],
    # Nose, ear, shoulders
    CaptureStage.UPPER_SIDE: [0, 7, 11, 12],
    # Shoulders, hips, knees, ankles
    CaptureStage.LOWER_SIDE: [11, 12, 23, 24, 25, 26, 27, 28],
}

VALIDATION_ERRORS: Dict[CaptureStage, str] = {
    CaptureStage.FACE: "Face landmarks not detected. Please ensure your face is clearly visible.",
    CaptureStage.UPPER_FRONT: "Body landmarks not detected. Please ensure your full body is visible.",
    CaptureStage.UPPER_SIDE: "Side profile landmarks not detected. Please turn to your right side.",
    CaptureStage.LOWER_SIDE: (
        "Full body landmarks not detected. Please ensure your entire body is visible from the side."
    ),
}


@dataclass(frozen=True)
class CaptureValidationResult:
    """Whether a captured frame can be committed."""
    valid: bool
    error: str = ""
    landmark_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "error": self.error, "landmark_count": self.landmark_count}


def has_required_landmarks(landmarks: Optional[Sequence[Any]], required_indices: Sequence[int]) -> bool:
    """True when every required index holds a point with numeric x and y."""
    if not landmarks:
        return False
    return all(
        index < len(landmarks) and Landmark.from_raw(landmarks[index]) is not None
        for index in required_indices
    )


def validate_capture(
    stage: CaptureStage,
    face_landmarks: Optional[Sequence[Any]],
    pose_landmarks: Optional[Sequence[Any]],
) -> CaptureValidationResult:
    """
    Validate the raw detector output recorded at the capture instant.

    Args:
        stage: Stage that was captured
        face_landmarks: Raw face mesh array (empty when no face)
        pose_landmarks: Raw pose array (empty when no body)

    Returns:
        CaptureValidationResult with the stage's error message on failure
    """
    if stage.uses_face:
        count = len(face_landmarks or [])
        valid = count > 0
    else:
        count = len(pose_landmarks or [])
        valid = (
            count >= FULL_POSE_LANDMARK_COUNT
            and has_required_landmarks(pose_landmarks, REQUIRED_POSE_INDICES[stage])
        )

    if not valid:
        logger.warning(f"Capture validation failed for {stage.value} ({count} landmarks)")
        return CaptureValidationResult(valid=False, error=VALIDATION_ERRORS[stage], landmark_count=count)

    return CaptureValidationResult(valid=True, landmark_count=count)
