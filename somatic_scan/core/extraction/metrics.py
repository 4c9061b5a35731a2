"""
Posture Metric Extractors

Turns one landmark frame into the face or body metrics consumed by the
pattern analyzer, and defines the per-stage StageMetrics records.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from somatic_scan.core.extraction.geometry import (
    angle_of_line,
    craniovertebral_angle,
    distance,
    foot_arch_both_sides,
    joint_angle,
    pelvic_obliquity,
    shoulder_height_asymmetry,
)
from somatic_scan.core.errors import PreconditionError
from somatic_scan.core.extraction.landmarks import FaceLandmarks, PoseLandmarks
from somatic_scan.utils import get_logger

logger = get_logger(__name__)


class CaptureStage(str, Enum):
    """The four sequential capture stages."""
    FACE = "STAGE_1_FACE"
    UPPER_FRONT = "STAGE_2_UPPER_FRONT"
    UPPER_SIDE = "STAGE_3_UPPER_SIDE"
    LOWER_SIDE = "STAGE_4_LOWER_SIDE"

    @property
    def number(self) -> int:
        return list(CaptureStage).index(self) + 1

    @property
    def uses_face(self) -> bool:
        return self is CaptureStage.FACE

    def next(self) -> Optional["CaptureStage"]:
        """Following stage, or None after the last one."""
        stages = list(CaptureStage)
        idx = stages.index(self)
        return stages[idx + 1] if idx + 1 < len(stages) else None

    @classmethod
    def from_string(cls, name: str) -> "CaptureStage":
        """Parse a stage from its value, member name or stage number."""
        if isinstance(name, cls):
            return name
        key = str(name).strip().upper()
        for member in cls:
            if key in (member.value, member.name, str(member.number), f"STAGE_{member.number}"):
                return member
        raise ValueError(f"Unknown capture stage: {name}")


def _to_dict(record: Any) -> Dict[str, Any]:
    return {f.name: getattr(record, f.name) for f in fields(record)}


@dataclass(frozen=True)
class FaceMetrics:
    """Facial symmetry metrics (ratios normalized by iris width, tilt in degrees)."""
    eye_sym: Optional[float] = None
    jaw_shift: Optional[float] = None
    head_tilt: Optional[float] = None
    nostril_asym: Optional[float] = None
    iris_width: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return _to_dict(self)


@dataclass(frozen=True)
class BodyMetrics:
    """Postural metrics from the pose skeleton."""
    shoulder_height: Optional[float] = None
    fhp_angle: Optional[float] = None
    pelvic_tilt: Optional[float] = None
    knee_angle: Optional[float] = None
    foot_arch_ratio: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return _to_dict(self)


# Metric keys committed for each stage after its capture
STAGE_METRIC_KEYS: Dict[CaptureStage, tuple] = {
    CaptureStage.FACE: ("eye_sym", "jaw_shift", "head_tilt", "nostril_asym"),
    CaptureStage.UPPER_FRONT: ("shoulder_height",),
    CaptureStage.UPPER_SIDE: ("fhp_angle",),
    CaptureStage.LOWER_SIDE: ("pelvic_tilt", "knee_angle", "foot_arch_ratio"),
}


@dataclass(frozen=True)
class StageMetrics:
    """Metrics committed for one capture stage, plus the stored image reference."""
    stage: CaptureStage
    values: Dict[str, Optional[float]]
    image_ref: Optional[str] = None

    @classmethod
    def from_live(
        cls,
        stage: CaptureStage,
        face: Optional[FaceMetrics],
        body: Optional[BodyMetrics],
        image_ref: Optional[str] = None,
    ) -> "StageMetrics":
        """Select this stage's keys from the most recent live metrics."""
        source = face if stage.uses_face else body
        values = {
            key: (getattr(source, key) if source is not None else None)
            for key in STAGE_METRIC_KEYS[stage]
        }
        return cls(stage=stage, values=values, image_ref=image_ref)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "metrics": dict(self.values),
            "image_ref": self.image_ref,
        }


class MetricExtractor(ABC):
    """Abstract base class for per-frame metric extractors."""

    def __init__(self):
        self._extraction_count = 0
        logger.info(f"{self.__class__.__name__} initialized")

    @abstractmethod
    def extract(self, landmarks: Any) -> Any:
        """Compute metrics from one frame's named landmarks."""

    @property
    def extraction_count(self) -> int:
        return self._extraction_count


class FaceMetricExtractor(MetricExtractor):
    """
    Extracts facial symmetry metrics.

    Linear distances are divided by the inter-iris distance so they are
    independent of how close the user stands to the camera.
    """

    def extract(self, face: Optional[FaceLandmarks]) -> FaceMetrics:
        self._extraction_count += 1
        if face is None:
            return FaceMetrics()

        iris_width = distance(face.left_iris, face.right_iris)
        # Without an iris measurement ratios fall back to raw normalized units
        norm_factor = iris_width if iris_width and iris_width > 0 else 1.0

        eye_sym = None
        if face.left_eye is not None and face.right_eye is not None:
            eye_sym = abs(face.left_eye.y - face.right_eye.y) / norm_factor

        jaw_shift = None
        if face.chin is not None and face.nose_bridge is not None:
            jaw_shift = abs(face.chin.x - face.nose_bridge.x) / norm_factor

        tilt = angle_of_line(face.left_eye, face.right_eye)
        head_tilt = abs(tilt) if tilt is not None else None

        nostril_asym = None
        dist_left = distance(face.nose_tip, face.left_nostril)
        dist_right = distance(face.nose_tip, face.right_nostril)
        if dist_left is not None and dist_right is not None:
            nostril_asym = abs(dist_left - dist_right) / norm_factor

        return FaceMetrics(
            eye_sym=eye_sym,
            jaw_shift=jaw_shift,
            head_tilt=head_tilt,
            nostril_asym=nostril_asym,
            iris_width=iris_width,
        )


class BodyMetricExtractor(MetricExtractor):
    """Extracts postural metrics from the pose skeleton (left side for sagittal views)."""

    def extract(self, pose: Optional[PoseLandmarks]) -> BodyMetrics:
        self._extraction_count += 1
        if pose is None:
            return BodyMetrics()

        shoulder_height = shoulder_height_asymmetry(pose)
        fhp_angle = craniovertebral_angle(pose.nose, pose.left_ear, pose.left_shoulder)
        pelvic_tilt = pelvic_obliquity(pose)
        knee_angle = joint_angle(pose.left_hip, pose.left_knee, pose.left_ankle)
        foot_arch = foot_arch_both_sides(pose)

        if fhp_angle is None:
            logger.debug("FHP angle unavailable for this frame")
        if foot_arch.average is None:
            logger.debug("Foot arch ratio unavailable for this frame")

        return BodyMetrics(
            shoulder_height=shoulder_height,
            fhp_angle=fhp_angle,
            pelvic_tilt=pelvic_tilt,
            knee_angle=knee_angle,
            foot_arch_ratio=foot_arch.average,
        )


def assemble_metrics(
    stage_metrics: Mapping[CaptureStage, StageMetrics],
) -> Tuple[FaceMetrics, BodyMetrics]:
    """
    Combine the four committed stage records into face and body metrics.

    Raises:
        PreconditionError: If any stage has not been committed
    """
    missing = [stage.value for stage in CaptureStage if stage not in stage_metrics]
    if missing:
        raise PreconditionError(f"Missing stage metrics: {', '.join(missing)}")

    face = FaceMetrics(**stage_metrics[CaptureStage.FACE].values)
    body_values: Dict[str, Optional[float]] = {}
    for stage in (CaptureStage.UPPER_FRONT, CaptureStage.UPPER_SIDE, CaptureStage.LOWER_SIDE):
        body_values.update(stage_metrics[stage].values)
    return face, BodyMetrics(**body_values)
