"""
Unit Tests for the Geometry Kernel and Metric Extractors
"""
import math
from types import SimpleNamespace

import pytest

from somatic_scan.core.errors import PreconditionError
from somatic_scan.core.extraction.geometry import (
    angle_of_line,
    craniovertebral_angle,
    distance,
    foot_arch_both_sides,
    foot_arch_ratio,
    joint_angle,
    pelvic_obliquity,
    round_half_up,
    shoulder_height_asymmetry,
)
from somatic_scan.core.extraction.landmarks import FaceLandmarks, Landmark, PoseLandmarks
from somatic_scan.core.extraction.metrics import (
    BodyMetricExtractor,
    BodyMetrics,
    CaptureStage,
    FaceMetricExtractor,
    StageMetrics,
    assemble_metrics,
)


class TestLandmark:
    """Tests for raw landmark conversion."""

    def test_from_mapping(self):
        lm = Landmark.from_raw({"x": 0.1, "y": 0.2, "z": -0.3, "visibility": 0.8})
        assert lm == Landmark(0.1, 0.2, -0.3, 0.8)

    def test_from_sequence(self):
        lm = Landmark.from_raw((0.1, 0.2))
        assert lm.x == 0.1 and lm.y == 0.2
        assert lm.z is None

    def test_from_attribute_object(self):
        point = SimpleNamespace(x=0.1, y=0.2, z=None, visibility=0.8)
        assert Landmark.from_raw(point) == Landmark(0.1, 0.2, None, 0.8)
        # Depth and confidence are optional on detector-native points
        assert Landmark.from_raw(SimpleNamespace(x=0.1, y=0.2)) == Landmark(0.1, 0.2)

    def test_unreadable_point_is_missing(self):
        assert Landmark.from_raw(object()) is None
        assert Landmark.from_raw(42) is None
        assert Landmark.from_raw("0.1,0.2") is None

    def test_non_numeric_is_missing(self):
        assert Landmark.from_raw({"x": None, "y": 0.2}) is None
        assert Landmark.from_raw({"x": float("nan"), "y": 0.2}) is None
        assert Landmark.from_raw(None) is None

    def test_visibility_threshold(self):
        assert Landmark(0.5, 0.5, visibility=0.9).is_visible()
        assert not Landmark(0.5, 0.5, visibility=0.3).is_visible()
        assert not Landmark(1.2, 0.5, visibility=0.9).is_visible()
        # No confidence reported counts as visible when in frame
        assert Landmark(0.5, 0.5).is_visible()

    def test_empty_frames_mean_not_detected(self):
        assert FaceLandmarks.from_raw([]) is None
        assert PoseLandmarks.from_raw(None) is None


class TestPrimitives:
    """Tests for distance, line angle and joint angle."""

    def test_round_half_up(self):
        assert round_half_up(2.25, 1) == 2.3
        assert round_half_up(0.1234, 3) == 0.123

    def test_distance_2d(self):
        assert distance(Landmark(0, 0), Landmark(0.3, 0.4)) == pytest.approx(0.5)

    def test_distance_3d_when_any_point_has_depth(self):
        d = distance(Landmark(0, 0, 0.0), Landmark(0, 0, 0.5))
        assert d == pytest.approx(0.5)
        # Missing z is treated as 0 when the other point has depth
        assert distance(Landmark(0, 0, 0.2), Landmark(0, 0)) == pytest.approx(0.2)

    def test_distance_missing_point(self):
        assert distance(None, Landmark(0, 0)) is None

    def test_angle_of_line(self):
        assert angle_of_line(Landmark(0, 0), Landmark(1, 0)) == pytest.approx(0.0)
        assert angle_of_line(Landmark(0, 0), Landmark(0, 1)) == pytest.approx(90.0)

    def test_joint_angle_right_angle(self):
        angle = joint_angle(Landmark(0.5, 0.3), Landmark(0.5, 0.5), Landmark(0.7, 0.5))
        assert angle == pytest.approx(90.0)

    def test_joint_angle_straight(self):
        angle = joint_angle(Landmark(0.5, 0.5), Landmark(0.5, 0.7), Landmark(0.5, 0.9))
        assert angle == pytest.approx(180.0)

    def test_joint_angle_degenerate(self):
        """Zero-length ray gives None, never NaN."""
        assert joint_angle(Landmark(0.5, 0.5), Landmark(0.5, 0.5), Landmark(0.7, 0.5)) is None
        assert joint_angle(None, Landmark(0.5, 0.5), Landmark(0.7, 0.5)) is None


class TestClinicalMetrics:
    """Tests for CVA, shoulder asymmetry, foot arch and pelvic obliquity."""

    def test_cva_perpendicular_head_line(self):
        cva = craniovertebral_angle(Landmark(0.6, 0.3), Landmark(0.5, 0.3), Landmark(0.5, 0.5))
        assert cva == 90.0

    def test_cva_degenerate(self):
        assert craniovertebral_angle(Landmark(0.6, 0.3), Landmark(0.5, 0.5), Landmark(0.5, 0.5)) is None
        assert craniovertebral_angle(None, Landmark(0.5, 0.3), Landmark(0.5, 0.5)) is None

    def test_shoulder_asymmetry_level(self, front_pose):
        pose = PoseLandmarks.from_raw(front_pose())
        assert shoulder_height_asymmetry(pose) == 0.0

    def test_shoulder_asymmetry_percentage(self, front_pose):
        pose = PoseLandmarks.from_raw(front_pose({11: (0.58, 0.31)}))
        # 0.01 / 0.595 of body height
        assert shoulder_height_asymmetry(pose) == pytest.approx(1.7)

    def test_shoulder_asymmetry_degenerate_height(self, front_pose):
        pose = PoseLandmarks.from_raw(front_pose({27: (0.55, 0.30), 28: (0.45, 0.30)}))
        assert shoulder_height_asymmetry(pose) is None

    def test_foot_arch_ratio(self, front_pose):
        pose = PoseLandmarks.from_raw(front_pose())
        assert foot_arch_ratio(pose, "left") == pytest.approx(0.167)

    def test_foot_arch_implausible_ratio(self, front_pose):
        pose = PoseLandmarks.from_raw(front_pose({31: (0.57, 0.70)}))
        assert foot_arch_ratio(pose, "left") is None

    def test_foot_arch_flat_ankle(self, front_pose):
        pose = PoseLandmarks.from_raw(front_pose({29: (0.55, 0.90)}))
        assert foot_arch_ratio(pose, "left") is None

    def test_foot_arch_bad_side(self, front_pose):
        with pytest.raises(ValueError):
            foot_arch_ratio(PoseLandmarks.from_raw(front_pose()), "middle")

    def test_foot_arch_single_side_fallback(self, front_pose):
        pose = PoseLandmarks.from_raw(front_pose({31: (0.57, 0.70)}))
        arch = foot_arch_both_sides(pose)
        assert arch.left is None
        assert arch.average == arch.right
        assert arch.asymmetry is None

    def test_pelvic_obliquity(self, front_pose):
        pose = PoseLandmarks.from_raw(front_pose({24: (0.45, 0.56)}))
        assert pelvic_obliquity(pose) == pytest.approx(5.7)

    def test_pelvic_obliquity_level(self, front_pose):
        assert pelvic_obliquity(PoseLandmarks.from_raw(front_pose())) == 0.0


JOINT_TRIPLES = [
    ((0.5, 0.3), (0.5, 0.5), (0.7, 0.5)),
    ((0.2, 0.1), (0.4, 0.6), (0.9, 0.2)),
    ((0.1, 0.1), (0.2, 0.2), (0.3, 0.3)),
    ((0.3, 0.3), (0.1, 0.1), (0.2, 0.2)),
    ((0.51, 0.52), (0.5, 0.5), (0.49, 0.48)),
    ((0.0, 1.0), (1.0, 0.0), (0.999999, 0.000001)),
]

POINT_PAIRS = [
    (Landmark(0.1, 0.2), Landmark(0.7, 0.9)),
    (Landmark(0.3, 0.3, -0.2), Landmark(0.6, 0.1)),
    (Landmark(0.0, 0.0, 0.1), Landmark(1.0, 1.0, -0.4)),
]

NUDGES = [-0.001, 0.0, 0.001]


class TestGeometryProperties:
    """Invariants that hold for any well-formed input."""

    @pytest.mark.parametrize("a,b,c", JOINT_TRIPLES)
    def test_joint_angle_symmetric_and_bounded(self, a, b, c):
        a, b, c = Landmark(*a), Landmark(*b), Landmark(*c)
        forward = joint_angle(a, b, c)
        assert forward == pytest.approx(joint_angle(c, b, a), abs=1e-9)
        assert not math.isnan(forward)
        assert 0.0 <= forward <= 180.0

    @pytest.mark.parametrize("a,b", POINT_PAIRS)
    def test_distance_symmetric(self, a, b):
        assert distance(a, b) == pytest.approx(distance(b, a))
        assert distance(a, a) == 0.0

    @pytest.mark.parametrize("dx", NUDGES)
    @pytest.mark.parametrize("dy", NUDGES)
    def test_cva_stable_under_small_motion(self, dx, dy):
        cva = craniovertebral_angle(Landmark(0.6, 0.3), Landmark(0.5 + dx, 0.3 + dy), Landmark(0.5, 0.5))
        assert cva is not None
        assert not math.isnan(cva)
        assert 0.0 <= cva <= 180.0

    def test_rounding_is_half_up_at_three_decimals(self):
        assert round_half_up(0.34567, 3) == 0.346

    def test_foot_arch_reported_to_three_decimals(self, front_pose):
        # ankle height 0.10, arch height 0.034567
        pose = PoseLandmarks.from_raw(front_pose({27: (0.55, 0.83), 31: (0.57, 0.960866)}))
        assert foot_arch_ratio(pose, "left") == 0.346


class TestMetricExtractors:
    """Tests for the per-frame face and body extractors."""

    def test_face_metrics(self, face_mesh):
        extractor = FaceMetricExtractor()
        metrics = extractor.extract(FaceLandmarks.from_raw(face_mesh()))

        assert metrics.iris_width == pytest.approx(0.16)
        assert metrics.eye_sym == pytest.approx(0.125)
        assert metrics.jaw_shift == pytest.approx(0.0625)
        assert metrics.head_tilt == pytest.approx(math.degrees(math.atan2(0.02, 0.20)))
        assert metrics.nostril_asym == pytest.approx(0.0, abs=1e-9)
        assert extractor.extraction_count == 1

    def test_face_metrics_without_iris(self, face_mesh):
        mesh = face_mesh()[:468]
        metrics = FaceMetricExtractor().extract(FaceLandmarks.from_raw(mesh))
        assert metrics.iris_width is None
        # Ratios fall back to raw normalized units
        assert metrics.eye_sym == pytest.approx(0.02)

    def test_face_metrics_no_face(self):
        metrics = FaceMetricExtractor().extract(None)
        assert metrics.to_dict() == {
            "eye_sym": None, "jaw_shift": None, "head_tilt": None,
            "nostril_asym": None, "iris_width": None,
        }

    def test_body_metrics(self, front_pose):
        metrics = BodyMetricExtractor().extract(PoseLandmarks.from_raw(front_pose()))
        assert metrics.shoulder_height == 0.0
        assert metrics.pelvic_tilt == 0.0
        assert metrics.knee_angle == pytest.approx(180.0)
        assert metrics.foot_arch_ratio == pytest.approx(0.167)
        assert metrics.fhp_angle is not None


class TestStageMetrics:
    """Tests for stage records and assembly."""

    def test_from_live_selects_stage_keys(self):
        body = BodyMetrics(shoulder_height=1.2, fhp_angle=48.0, pelvic_tilt=3.0)
        record = StageMetrics.from_live(CaptureStage.UPPER_SIDE, None, body)
        assert record.values == {"fhp_angle": 48.0}
        assert record.to_dict()["stage"] == "STAGE_3_UPPER_SIDE"

    def test_assemble_requires_all_stages(self):
        partial = {
            CaptureStage.FACE: StageMetrics(CaptureStage.FACE, {"eye_sym": 0.1}),
        }
        with pytest.raises(PreconditionError) as exc:
            assemble_metrics(partial)
        assert "STAGE_4_LOWER_SIDE" in str(exc.value)

    def test_assemble_merges_body_stages(self):
        records = {
            CaptureStage.FACE: StageMetrics(CaptureStage.FACE, {"eye_sym": 0.1, "head_tilt": 2.0}),
            CaptureStage.UPPER_FRONT: StageMetrics(CaptureStage.UPPER_FRONT, {"shoulder_height": 1.5}),
            CaptureStage.UPPER_SIDE: StageMetrics(CaptureStage.UPPER_SIDE, {"fhp_angle": 52.0}),
            CaptureStage.LOWER_SIDE: StageMetrics(
                CaptureStage.LOWER_SIDE,
                {"pelvic_tilt": 4.0, "knee_angle": 175.0, "foot_arch_ratio": 0.25},
            ),
        }
        face, body = assemble_metrics(records)
        assert face.head_tilt == 2.0
        assert body.shoulder_height == 1.5
        assert body.fhp_angle == 52.0
        assert body.foot_arch_ratio == 0.25

    def test_stage_parsing(self):
        assert CaptureStage.from_string("STAGE_2_UPPER_FRONT") is CaptureStage.UPPER_FRONT
        assert CaptureStage.from_string("lower_side") is CaptureStage.LOWER_SIDE
        assert CaptureStage.from_string(3) is CaptureStage.UPPER_SIDE
        assert CaptureStage.FACE.next() is CaptureStage.UPPER_FRONT
        assert CaptureStage.LOWER_SIDE.next() is None
        with pytest.raises(ValueError):
            CaptureStage.from_string("STAGE_9")
