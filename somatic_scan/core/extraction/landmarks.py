"""
Landmark Structures

Typed landmark records and the named face/pose structs built from the raw
indexed arrays returned by the landmark detector.
"""
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional, Sequence, Union

# Face mesh indices
NOSE_TIP = 1
NOSE_BRIDGE = 6
LEFT_EYE_OUTER = 33
LEFT_NOSTRIL = 98
CHIN = 152
RIGHT_EYE_OUTER = 263
RIGHT_NOSTRIL = 327
LEFT_IRIS = 468
RIGHT_IRIS = 473

# Pose skeleton indices
POSE_NOSE = 0
POSE_LEFT_EAR = 7
POSE_LEFT_SHOULDER = 11
POSE_RIGHT_SHOULDER = 12
POSE_LEFT_HIP = 23
POSE_RIGHT_HIP = 24
POSE_LEFT_KNEE = 25
POSE_RIGHT_KNEE = 26
POSE_LEFT_ANKLE = 27
POSE_RIGHT_ANKLE = 28
POSE_LEFT_HEEL = 29
POSE_RIGHT_HEEL = 30
POSE_LEFT_FOOT_INDEX = 31
POSE_RIGHT_FOOT_INDEX = 32

FULL_POSE_LANDMARK_COUNT = 33
VISIBILITY_THRESHOLD = 0.4


@dataclass(frozen=True)
class Landmark:
    """Single normalized keypoint."""
    x: float
    y: float
    z: Optional[float] = None
    visibility: Optional[float] = None

    @classmethod
    def from_raw(cls, raw: Union["Landmark", Mapping[str, Any], Sequence[float], Any, None]) -> Optional["Landmark"]:
        """Build from a detector point.

        Accepts {x, y, z?, visibility?} mappings, (x, y[, z[, visibility]])
        sequences, and detector-native objects exposing .x/.y/.z/.visibility.
        Returns None for missing points or points without numeric x/y.
        """
        if raw is None:
            return None
        if isinstance(raw, Landmark):
            return raw
        if isinstance(raw, Mapping):
            x, y = raw.get("x"), raw.get("y")
            z, vis = raw.get("z"), raw.get("visibility")
        elif hasattr(raw, "x") and hasattr(raw, "y"):
            x, y = raw.x, raw.y
            z, vis = getattr(raw, "z", None), getattr(raw, "visibility", None)
        elif isinstance(raw, (str, bytes)) or not hasattr(raw, "__len__"):
            return None
        else:
            if len(raw) < 2:
                return None
            x, y = raw[0], raw[1]
            z = raw[2] if len(raw) > 2 else None
            vis = raw[3] if len(raw) > 3 else None
        if not _is_number(x) or not _is_number(y):
            return None
        return cls(
            x=float(x),
            y=float(y),
            z=float(z) if _is_number(z) else None,
            visibility=float(vis) if _is_number(vis) else None,
        )

    def is_visible(self, threshold: float = VISIBILITY_THRESHOLD) -> bool:
        """In frame and, when a confidence is reported, above threshold."""
        in_frame = 0.0 <= self.x <= 1.0 and 0.0 <= self.y <= 1.0
        if not in_frame:
            return False
        return self.visibility is None or self.visibility > threshold

    @property
    def depth(self) -> float:
        """Z with 0 for points that carry no depth estimate."""
        return self.z if self.z is not None else 0.0

    def to_dict(self) -> Dict[str, Any]:
        result = {"x": self.x, "y": self.y}
        if self.z is not None:
            result["z"] = self.z
        if self.visibility is not None:
            result["visibility"] = self.visibility
        return result


def is_visible(landmark: Optional[Landmark]) -> bool:
    """Visibility test that treats a missing landmark as not visible."""
    return landmark is not None and landmark.is_visible()


def midpoint(a: Landmark, b: Landmark) -> Landmark:
    """Midpoint of two landmarks (depth averaged with missing z as 0)."""
    z = None
    if a.z is not None or b.z is not None:
        z = (a.depth + b.depth) / 2
    return Landmark(x=(a.x + b.x) / 2, y=(a.y + b.y) / 2, z=z)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or value is None:
        return False
    try:
        return float(value) == float(value)  # NaN check
    except (TypeError, ValueError):
        return False


def _pick(raw: Sequence[Any], index: int) -> Optional[Landmark]:
    if index >= len(raw):
        return None
    return Landmark.from_raw(raw[index])


@dataclass(frozen=True)
class FaceLandmarks:
    """Face mesh points used by the face metrics and the stage 1 gate."""
    nose_tip: Optional[Landmark] = None
    nose_bridge: Optional[Landmark] = None
    left_eye: Optional[Landmark] = None
    right_eye: Optional[Landmark] = None
    chin: Optional[Landmark] = None
    left_nostril: Optional[Landmark] = None
    right_nostril: Optional[Landmark] = None
    left_iris: Optional[Landmark] = None
    right_iris: Optional[Landmark] = None
    point_count: int = 0

    @classmethod
    def from_raw(cls, raw: Optional[Sequence[Any]]) -> Optional["FaceLandmarks"]:
        """Convert a raw face mesh array. Empty or missing input means no face."""
        if not raw:
            return None
        return cls(
            nose_tip=_pick(raw, NOSE_TIP),
            nose_bridge=_pick(raw, NOSE_BRIDGE),
            left_eye=_pick(raw, LEFT_EYE_OUTER),
            right_eye=_pick(raw, RIGHT_EYE_OUTER),
            chin=_pick(raw, CHIN),
            left_nostril=_pick(raw, LEFT_NOSTRIL),
            right_nostril=_pick(raw, RIGHT_NOSTRIL),
            left_iris=_pick(raw, LEFT_IRIS),
            right_iris=_pick(raw, RIGHT_IRIS),
            point_count=len(raw),
        )


@dataclass(frozen=True)
class PoseLandmarks:
    """Pose skeleton points used by the body metrics and stages 2-4."""
    nose: Optional[Landmark] = None
    left_ear: Optional[Landmark] = None
    left_shoulder: Optional[Landmark] = None
    right_shoulder: Optional[Landmark] = None
    left_hip: Optional[Landmark] = None
    right_hip: Optional[Landmark] = None
    left_knee: Optional[Landmark] = None
    right_knee: Optional[Landmark] = None
    left_ankle: Optional[Landmark] = None
    right_ankle: Optional[Landmark] = None
    left_heel: Optional[Landmark] = None
    right_heel: Optional[Landmark] = None
    left_foot_index: Optional[Landmark] = None
    right_foot_index: Optional[Landmark] = None
    point_count: int = 0

    @classmethod
    def from_raw(cls, raw: Optional[Sequence[Any]]) -> Optional["PoseLandmarks"]:
        """Convert a raw 33-point pose array. Empty or missing input means no body."""
        if not raw:
            return None
        return cls(
            nose=_pick(raw, POSE_NOSE),
            left_ear=_pick(raw, POSE_LEFT_EAR),
            left_shoulder=_pick(raw, POSE_LEFT_SHOULDER),
            right_shoulder=_pick(raw, POSE_RIGHT_SHOULDER),
            left_hip=_pick(raw, POSE_LEFT_HIP),
            right_hip=_pick(raw, POSE_RIGHT_HIP),
            left_knee=_pick(raw, POSE_LEFT_KNEE),
            right_knee=_pick(raw, POSE_RIGHT_KNEE),
            left_ankle=_pick(raw, POSE_LEFT_ANKLE),
            right_ankle=_pick(raw, POSE_RIGHT_ANKLE),
            left_heel=_pick(raw, POSE_LEFT_HEEL),
            right_heel=_pick(raw, POSE_RIGHT_HEEL),
            left_foot_index=_pick(raw, POSE_LEFT_FOOT_INDEX),
            right_foot_index=_pick(raw, POSE_RIGHT_FOOT_INDEX),
            point_count=len(raw),
        )

    @property
    def is_complete(self) -> bool:
        """Detector returned the full skeleton."""
        return self.point_count >= FULL_POSE_LANDMARK_COUNT

    def present(self, *names: str) -> bool:
        """True when every named landmark was detected."""
        return all(getattr(self, name) is not None for name in names)

    def to_dict(self) -> Dict[str, Any]:
        return {
            f.name: (getattr(self, f.name).to_dict() if getattr(self, f.name) is not None else None)
            for f in fields(self)
            if f.name != "point_count"
        }
