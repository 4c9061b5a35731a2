"""
Alignment Gate

Stage-specific positioning checks evaluated on every alignment tick. Each
check is stateless: it sees one frame and returns whether the user is in
position plus a single feedback instruction.

Orientation and visibility gates are evaluated before fine position so an
unturned or partially visible user always gets the more fundamental
instruction first.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from somatic_scan.core.extraction.landmarks import (
    FaceLandmarks,
    Landmark,
    PoseLandmarks,
    is_visible,
    midpoint,
)
from somatic_scan.core.extraction.metrics import CaptureStage
from somatic_scan.utils import get_logger

logger = get_logger(__name__)

# Target boxes (x range, y range) in normalized frame coordinates
FACE_NOSE_BOX = ((0.40, 0.60), (0.25, 0.45))
UPPER_FRONT_TORSO_BOX = ((0.42, 0.58), (0.35, 0.55))
UPPER_SIDE_SHOULDER_BOX = ((0.40, 0.60), (0.30, 0.50))
LOWER_SIDE_HIP_BOX = ((0.35, 0.65), (0.30, 0.70))

# Side-view detection
UPPER_SIDE_MAX_SHOULDER_SEPARATION = 0.15
LOWER_SIDE_MAX_HIP_SEPARATION = 0.10
LOWER_SIDE_MAX_SHOULDER_SEPARATION = 0.13
RIGHT_SIDE_MIN_DEPTH_GAP = 0.05

# Full-leg visibility for the lower side view
KNEE_MIN_Y = 0.45
LOWER_LEG_MIN_Y = 0.70
LOWER_LEG_MIN_POINTS = 2

ALIGNED_MESSAGE = "PERFECT! HOLD STILL"


@dataclass(frozen=True)
class AlignmentResult:
    """Outcome of one alignment check."""
    aligned: bool
    feedback_message: str = ""
    debug: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "aligned": self.aligned,
            "feedback_message": self.feedback_message,
            "debug": dict(self.debug),
        }


def _in_range(value: float, bounds: Tuple[float, float]) -> bool:
    low, high = bounds
    return low <= value <= high


def _directional_feedback(
    value: float,
    pivot: float,
    far_low: float,
    far_high: float,
    low_messages: Tuple[str, str],
    high_messages: Tuple[str, str],
) -> str:
    """Pick a coarse or fine instruction depending on how far off-target a value is.

    Values below ``pivot`` use ``low_messages`` (coarse when below ``far_low``),
    everything else uses ``high_messages`` (coarse when above ``far_high``).
    """
    if value < pivot:
        coarse, fine = low_messages
        return coarse if value < far_low else fine
    coarse, fine = high_messages
    return coarse if value > far_high else fine


_LEFT_RIGHT = (("MOVE LEFT", "A BIT LEFT"), ("MOVE RIGHT", "A BIT RIGHT"))
_DOWN_UP = (("MOVE DOWN", "A BIT DOWN"), ("MOVE UP", "A BIT UP"))


def _depth_feedback(value: float, pivot: float, far_low: float, far_high: float) -> str:
    """Vertical body position read as distance: sitting low in frame means too close."""
    if value > pivot:
        return "STEP BACK" if value > far_high else "A BIT BACK"
    return "COME CLOSER" if value < far_low else "A BIT CLOSER"


def check_face_alignment(face: Optional[FaceLandmarks]) -> AlignmentResult:
    """Stage 1: nose tip centered in the face target box."""
    if face is None or face.nose_tip is None:
        return AlignmentResult(aligned=False, feedback_message="FACE NOT DETECTED")

    nose = face.nose_tip
    x_range, y_range = FACE_NOSE_BOX
    x_aligned = _in_range(nose.x, x_range)
    y_aligned = _in_range(nose.y, y_range)

    message = ""
    if not x_aligned:
        message = _directional_feedback(nose.x, 0.35, 0.25, 0.75, *_LEFT_RIGHT)
    elif not y_aligned:
        message = _directional_feedback(nose.y, 0.20, 0.10, 0.60, *_DOWN_UP)

    return AlignmentResult(
        aligned=x_aligned and y_aligned,
        feedback_message=message,
        debug={"nose_x": round(nose.x, 3), "nose_y": round(nose.y, 3)},
    )


def _both_visible(a: Optional[Landmark], b: Optional[Landmark]) -> bool:
    return is_visible(a) and is_visible(b)


def check_upper_front_alignment(pose: Optional[PoseLandmarks]) -> AlignmentResult:
    """
    Stage 2: full body facing the camera with the torso centered.

    Head, shoulders, hips, knees and either both feet or both ankles must be
    visible before the torso position is considered.
    """
    if pose is None:
        return AlignmentResult(aligned=False, feedback_message="BODY NOT DETECTED")

    visibility_gates = (
        (is_visible(pose.nose), "SHOW HEAD"),
        (_both_visible(pose.left_shoulder, pose.right_shoulder), "SHOW SHOULDERS"),
        (_both_visible(pose.left_hip, pose.right_hip), "SHOW HIPS"),
        (_both_visible(pose.left_knee, pose.right_knee), "SHOW KNEES"),
        (
            _both_visible(pose.left_foot_index, pose.right_foot_index)
            or _both_visible(pose.left_ankle, pose.right_ankle),
            "STEP BACK - SHOW FULL BODY",
        ),
    )
    for passed, message in visibility_gates:
        if not passed:
            return AlignmentResult(aligned=False, feedback_message=message)

    shoulder_center = midpoint(pose.left_shoulder, pose.right_shoulder)
    hip_center = midpoint(pose.left_hip, pose.right_hip)
    torso_x = (shoulder_center.x + hip_center.x) / 2
    torso_y = (shoulder_center.y + hip_center.y) / 2

    x_range, y_range = UPPER_FRONT_TORSO_BOX
    x_aligned = _in_range(torso_x, x_range)
    y_aligned = _in_range(torso_y, y_range)

    message = ""
    if not x_aligned:
        message = _directional_feedback(torso_x, 0.40, 0.30, 0.70, *_LEFT_RIGHT)
    elif not y_aligned:
        message = _depth_feedback(torso_y, 0.60, 0.25, 0.70)

    return AlignmentResult(
        aligned=x_aligned and y_aligned,
        feedback_message=message,
        debug={"torso_center_x": round(torso_x, 3), "torso_center_y": round(torso_y, 3)},
    )


def check_upper_side_alignment(pose: Optional[PoseLandmarks]) -> AlignmentResult:
    """Stage 3: right side profile (left shoulder nearer the camera), shoulders centered."""
    if pose is None:
        return AlignmentResult(aligned=False, feedback_message="BODY NOT DETECTED")
    if pose.left_shoulder is None or pose.right_shoulder is None:
        return AlignmentResult(aligned=False, feedback_message="SHOULDERS NOT DETECTED")

    left, right = pose.left_shoulder, pose.right_shoulder
    shoulder_distance = abs(left.x - right.x)
    is_side_view = shoulder_distance < UPPER_SIDE_MAX_SHOULDER_SEPARATION
    is_right_side = left.depth < right.depth - RIGHT_SIDE_MIN_DEPTH_GAP

    center = midpoint(left, right)
    x_range, y_range = UPPER_SIDE_SHOULDER_BOX
    x_aligned = _in_range(center.x, x_range)
    y_aligned = _in_range(center.y, y_range)

    if not is_side_view:
        message = "TURN TO YOUR RIGHT SIDE"
    elif not is_right_side:
        message = "TURN TO YOUR RIGHT (NOT LEFT)"
    elif not x_aligned:
        message = _directional_feedback(center.x, 0.35, 0.25, 0.75, *_LEFT_RIGHT)
    elif not y_aligned:
        message = _directional_feedback(center.y, 0.25, 0.15, 0.65, *_DOWN_UP)
    else:
        message = ""

    aligned = is_side_view and is_right_side and x_aligned and y_aligned
    logger.debug(
        f"Upper side check: distance={shoulder_distance:.3f} side={is_side_view} "
        f"right={is_right_side} center=({center.x:.3f}, {center.y:.3f}) aligned={aligned}"
    )
    return AlignmentResult(
        aligned=aligned,
        feedback_message=message,
        debug={
            "shoulder_distance": round(shoulder_distance, 3),
            "is_side_view": is_side_view,
            "is_right_side": is_right_side,
            "shoulder_center_x": round(center.x, 3),
            "shoulder_center_y": round(center.y, 3),
        },
    )


def _visible_below(landmark: Optional[Landmark], min_y: float) -> bool:
    return is_visible(landmark) and landmark.y > min_y


def check_lower_side_alignment(pose: Optional[PoseLandmarks]) -> AlignmentResult:
    """
    Stage 4: right side profile with the whole leg in frame and hips centered.

    Side-on stance is detected from hip separation and confirmed by shoulder
    separation; the left hip must be nearer the camera than the right. The
    head, a knee in the lower half of the frame and at least two of
    ankle/heel/foot index in the bottom 30% must be visible.
    """
    if pose is None:
        return AlignmentResult(aligned=False, feedback_message="BODY NOT DETECTED")
    if pose.left_hip is None or pose.right_hip is None:
        return AlignmentResult(aligned=False, feedback_message="HIPS NOT DETECTED")

    left_hip, right_hip = pose.left_hip, pose.right_hip
    hip_distance = abs(left_hip.x - right_hip.x)
    shoulder_distance = None
    if pose.left_shoulder is not None and pose.right_shoulder is not None:
        shoulder_distance = abs(pose.left_shoulder.x - pose.right_shoulder.x)

    is_side_view = (
        hip_distance < LOWER_SIDE_MAX_HIP_SEPARATION
        and shoulder_distance is not None
        and shoulder_distance < LOWER_SIDE_MAX_SHOULDER_SEPARATION
    )
    depth_difference = left_hip.depth - right_hip.depth
    is_right_side = left_hip.depth < right_hip.depth - RIGHT_SIDE_MIN_DEPTH_GAP

    head_visible = is_visible(pose.nose)
    knee_visible = any(
        _visible_below(knee, KNEE_MIN_Y) for knee in (pose.left_knee, pose.right_knee)
    )
    lower_leg_points = sum(
        1
        for left_point, right_point in (
            (pose.left_ankle, pose.right_ankle),
            (pose.left_heel, pose.right_heel),
            (pose.left_foot_index, pose.right_foot_index),
        )
        if _visible_below(left_point, LOWER_LEG_MIN_Y) or _visible_below(right_point, LOWER_LEG_MIN_Y)
    )
    feet_visible = lower_leg_points >= LOWER_LEG_MIN_POINTS

    hip_center = midpoint(left_hip, right_hip)
    x_range, y_range = LOWER_SIDE_HIP_BOX
    x_aligned = _in_range(hip_center.x, x_range)
    y_aligned = _in_range(hip_center.y, y_range)

    if not is_side_view:
        message = "TURN TO YOUR RIGHT SIDE"
    elif not is_right_side:
        message = "TURN TO YOUR RIGHT (NOT LEFT)"
    elif not head_visible:
        message = "SHOW HEAD"
    elif not knee_visible:
        message = "SHOW KNEES"
    elif not feet_visible:
        message = "STEP BACK - SHOW FEET"
    elif not x_aligned:
        message = _directional_feedback(hip_center.x, 0.35, 0.25, 0.75, *_LEFT_RIGHT)
    elif not y_aligned:
        message = _depth_feedback(hip_center.y, 0.70, 0.20, 0.80)
    else:
        message = ALIGNED_MESSAGE

    aligned = (
        is_side_view and is_right_side and head_visible and knee_visible
        and feet_visible and x_aligned and y_aligned
    )
    return AlignmentResult(
        aligned=aligned,
        feedback_message=message,
        debug={
            "hip_distance": round(hip_distance, 3),
            "shoulder_distance": round(shoulder_distance, 3) if shoulder_distance is not None else None,
            "is_side_view": is_side_view,
            "z_depth_difference": round(depth_difference, 3),
            "is_right_side": is_right_side,
            "lower_leg_points": lower_leg_points,
            "hip_center_x": round(hip_center.x, 3),
            "hip_center_y": round(hip_center.y, 3),
        },
    )


def check_alignment(
    stage: CaptureStage,
    face: Optional[FaceLandmarks],
    pose: Optional[PoseLandmarks],
) -> AlignmentResult:
    """Route to the check for the given capture stage."""
    if stage is CaptureStage.FACE:
        return check_face_alignment(face)
    if stage is CaptureStage.UPPER_FRONT:
        return check_upper_front_alignment(pose)
    if stage is CaptureStage.UPPER_SIDE:
        return check_upper_side_alignment(pose)
    if stage is CaptureStage.LOWER_SIDE:
        return check_lower_side_alignment(pose)
    raise ValueError(f"Unknown capture stage: {stage}")
