"""
Geometry Kernel

Pure numeric functions converting landmark coordinates into clinical angles
and ratios. Missing landmarks and degenerate configurations return None so
callers can tell "undetected" apart from "zero deviation".
"""
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np

from somatic_scan.core.extraction.landmarks import Landmark, PoseLandmarks, midpoint
from somatic_scan.utils import get_logger

logger = get_logger(__name__)

MIN_BODY_HEIGHT = 0.01
MIN_ANKLE_HEIGHT = 0.001
ARCH_RATIO_BAND = (0.0, 0.6)


def round_half_up(value: float, digits: int) -> float:
    """Round with halves away from zero for positive values (display rounding)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def distance(a: Optional[Landmark], b: Optional[Landmark]) -> Optional[float]:
    """Euclidean distance, 3D when either point carries depth, else 2D."""
    if a is None or b is None:
        return None
    delta = np.array([a.x - b.x, a.y - b.y])
    if a.z is not None or b.z is not None:
        delta = np.append(delta, a.depth - b.depth)
    return float(np.linalg.norm(delta))


def angle_of_line(a: Optional[Landmark], b: Optional[Landmark]) -> Optional[float]:
    """Angle of line a->b against the horizontal, in degrees (y axis points down)."""
    if a is None or b is None:
        return None
    return float(np.degrees(np.arctan2(b.y - a.y, b.x - a.x)))


def _interior_angle(v1: np.ndarray, v2: np.ndarray) -> Optional[float]:
    """Angle between two 2D vectors in degrees, None if either is zero-length."""
    mag1 = float(np.linalg.norm(v1))
    mag2 = float(np.linalg.norm(v2))
    if mag1 == 0 or mag2 == 0:
        return None
    cos_theta = float(np.dot(v1, v2)) / (mag1 * mag2)
    # Floating-point overshoot past +/-1 would make arccos return NaN
    cos_theta = float(np.clip(cos_theta, -1.0, 1.0))
    return float(np.degrees(np.arccos(cos_theta)))


def joint_angle(
    a: Optional[Landmark],
    b: Optional[Landmark],
    c: Optional[Landmark],
) -> Optional[float]:
    """
    Angle at vertex b between rays b->a and b->c.

    Args:
        a: First endpoint (e.g. hip)
        b: Vertex (e.g. knee)
        c: Second endpoint (e.g. ankle)

    Returns:
        Angle in [0, 180] degrees, or None if a landmark is missing or a ray
        has zero length.
    """
    if a is None or b is None or c is None:
        return None
    ba = np.array([a.x - b.x, a.y - b.y])
    bc = np.array([c.x - b.x, c.y - b.y])
    return _interior_angle(ba, bc)


def craniovertebral_angle(
    nose: Optional[Landmark],
    ear: Optional[Landmark],
    shoulder: Optional[Landmark],
) -> Optional[float]:
    """
    Craniovertebral angle (CVA) for forward head posture.

    Measured between the postural line shoulder->ear and the head line
    ear->nose, reported as 180 minus their interior angle. Around 50-60
    degrees is neutral; lower values indicate the head sits forward of the
    shoulders.

    Args:
        nose: Pose nose landmark
        ear: Pose ear landmark
        shoulder: Pose shoulder landmark on the same side as the ear

    Returns:
        CVA in degrees rounded to 1 decimal, or None for missing landmarks or
        a zero-length vector.
    """
    if nose is None or ear is None or shoulder is None:
        logger.debug("CVA: missing nose, ear or shoulder landmark")
        return None

    shoulder_to_ear = np.array([ear.x - shoulder.x, ear.y - shoulder.y])
    ear_to_nose = np.array([nose.x - ear.x, nose.y - ear.y])

    interior = _interior_angle(shoulder_to_ear, ear_to_nose)
    if interior is None:
        logger.debug("CVA: zero-length vector")
        return None

    return round_half_up(180.0 - interior, 1)


def shoulder_height_asymmetry(pose: Optional[PoseLandmarks]) -> Optional[float]:
    """
    Shoulder height difference as a percentage of body height.

    Body height is the vertical span from the average shoulder line to the
    average ankle line. Under 2% is typical.

    Returns:
        Percentage rounded to 1 decimal, or None when landmarks are missing or
        the body height is below 0.01 (degenerate frame).
    """
    if pose is None or not pose.present("left_shoulder", "right_shoulder", "left_ankle", "right_ankle"):
        return None

    shoulder_y = (pose.left_shoulder.y + pose.right_shoulder.y) / 2
    ankle_y = (pose.left_ankle.y + pose.right_ankle.y) / 2
    body_height = abs(ankle_y - shoulder_y)

    if body_height < MIN_BODY_HEIGHT:
        logger.debug(f"Shoulder asymmetry: body height too small ({body_height:.4f})")
        return None

    height_difference = abs(pose.left_shoulder.y - pose.right_shoulder.y)
    return round_half_up(height_difference / body_height * 100, 1)


def foot_arch_ratio(pose: Optional[PoseLandmarks], side: str = "left") -> Optional[float]:
    """
    Medial arch height ratio for one foot.

    The navicular is approximated as the midpoint of ankle and foot index.
    Ratio = |navicular.y - heel.y| / |ankle.y - heel.y|. Lower values mean a
    flatter arch.

    Args:
        pose: Pose landmarks
        side: 'left' or 'right'

    Returns:
        Ratio rounded to 3 decimals, or None when landmarks are missing, the
        ankle height is below 0.001, or the ratio falls outside [0, 0.6]
        (treated as a detection artifact).
    """
    if pose is None:
        return None
    if side not in ("left", "right"):
        raise ValueError(f"Unknown side: {side}")

    ankle = getattr(pose, f"{side}_ankle")
    heel = getattr(pose, f"{side}_heel")
    foot_index = getattr(pose, f"{side}_foot_index")
    if ankle is None or heel is None or foot_index is None:
        return None

    navicular = midpoint(ankle, foot_index)
    arch_height = abs(navicular.y - heel.y)
    ankle_height = abs(ankle.y - heel.y)

    if ankle_height < MIN_ANKLE_HEIGHT:
        logger.debug(f"Foot arch ({side}): ankle height too small")
        return None

    ratio = arch_height / ankle_height
    low, high = ARCH_RATIO_BAND
    if ratio < low or ratio > high:
        logger.debug(f"Foot arch ({side}): implausible ratio {ratio:.3f}, treating as detection error")
        return None

    return round_half_up(ratio, 3)


@dataclass(frozen=True)
class FootArchMeasurement:
    """Bilateral foot arch ratios."""
    left: Optional[float] = None
    right: Optional[float] = None
    average: Optional[float] = None
    asymmetry: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "left": self.left,
            "right": self.right,
            "average": self.average,
            "asymmetry": self.asymmetry,
        }


def foot_arch_both_sides(pose: Optional[PoseLandmarks]) -> FootArchMeasurement:
    """Average the two feet when both are measurable, else use the one available."""
    left = foot_arch_ratio(pose, "left")
    right = foot_arch_ratio(pose, "right")

    if left is None and right is None:
        return FootArchMeasurement()

    if left is not None and right is not None:
        average = (left + right) / 2
        asymmetry = round_half_up(abs(left - right), 3)
    else:
        average = left if left is not None else right
        asymmetry = None

    return FootArchMeasurement(
        left=left,
        right=right,
        average=round_half_up(average, 3),
        asymmetry=asymmetry,
    )


def pelvic_obliquity(pose: Optional[PoseLandmarks]) -> Optional[float]:
    """
    Lateral hip-line angle from horizontal, in degrees.

    This is obliquity (one hip higher than the other), not anterior/posterior
    tilt, which 2D keypoints cannot measure reliably. 0-3 is level, 3-8 mild,
    8-15 moderate, above 15 severe.

    Returns:
        Absolute angle rounded to 1 decimal, or None if a hip is missing.
    """
    if pose is None or not pose.present("left_hip", "right_hip"):
        return None

    angle = angle_of_line(pose.left_hip, pose.right_hip)
    if angle > 90:
        angle -= 180
    if angle < -90:
        angle += 180
    return round_half_up(abs(angle), 1)
