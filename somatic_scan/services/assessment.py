"""
Assessment Service - Centralized Somatic Assessment Logic
"""
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from somatic_scan.config import settings
from somatic_scan.core.capture.session import CaptureSession, FrameSource, LandmarkDetector
from somatic_scan.core.capture.timing import TimingVariant
from somatic_scan.core.errors import InvalidInputError, PreconditionError
from somatic_scan.core.extraction.landmarks import FaceLandmarks, PoseLandmarks
from somatic_scan.core.extraction.metrics import (
    BodyMetricExtractor,
    BodyMetrics,
    CaptureStage,
    FaceMetricExtractor,
    FaceMetrics,
    StageMetrics,
    assemble_metrics,
)
from somatic_scan.core.inference.fusion import (
    FusionEngine,
    FusionResult,
    generate_integrated_summary,
    get_integrated_recommendations,
)
from somatic_scan.core.inference.pattern_analyzer import PatternAnalysis, PatternAnalyzer
from somatic_scan.core.inference.questionnaire import QuestionnaireResult, QuestionnaireScorer
from somatic_scan.core.validation.alignment import AlignmentResult, check_alignment
from somatic_scan.utils import get_logger

logger = get_logger(__name__)


class AssessmentService:
    """
    Service class to handle the somatic assessment business logic.
    Decouples the logic from FastAPI endpoints and the capture session.
    """

    def __init__(
        self,
        analyzer: Optional[PatternAnalyzer] = None,
        scorer: Optional[QuestionnaireScorer] = None,
    ):
        self.analyzer = analyzer or PatternAnalyzer()
        self.scorer = scorer or QuestionnaireScorer()
        self.fusion_engine = FusionEngine(self.analyzer)
        self.face_extractor = FaceMetricExtractor()
        self.body_extractor = BodyMetricExtractor()

        self._assessments: Dict[str, Dict[str, Any]] = {}

    # ------------------------------------------------------------------
    # PER-FRAME OPERATIONS
    # ------------------------------------------------------------------

    def extract_face_metrics(self, landmarks: Sequence[Any]) -> FaceMetrics:
        return self.face_extractor.extract(FaceLandmarks.from_raw(landmarks))

    def extract_body_metrics(self, landmarks: Sequence[Any]) -> BodyMetrics:
        return self.body_extractor.extract(PoseLandmarks.from_raw(landmarks))

    def check_alignment(
        self,
        stage: Any,
        face_landmarks: Optional[Sequence[Any]] = None,
        pose_landmarks: Optional[Sequence[Any]] = None,
    ) -> AlignmentResult:
        """
        Evaluate the alignment gate for one frame.

        Raises:
            InvalidInputError: If the stage is not recognised
        """
        capture_stage = self._parse_stage(stage)
        return check_alignment(
            capture_stage,
            FaceLandmarks.from_raw(face_landmarks),
            PoseLandmarks.from_raw(pose_landmarks),
        )

    def create_capture_session(
        self,
        detector_factory: Callable[[], LandmarkDetector],
        frame_source: Optional[FrameSource] = None,
    ) -> CaptureSession:
        """Build a capture session with the configured cadences and timing."""
        return CaptureSession(
            detector_factory,
            frame_source=frame_source,
            variant=TimingVariant(settings.timing_variant.lower()),
            inference_interval_ms=settings.inference_interval_ms,
            alignment_interval_ms=settings.alignment_interval_ms,
            hold_tick_ms=settings.hold_tick_ms,
            retry_delay_ms=settings.retry_delay_ms,
        )

    # ------------------------------------------------------------------
    # SCORING
    # ------------------------------------------------------------------

    def score_questionnaire(self, answers: Optional[Sequence[Optional[str]]]) -> QuestionnaireResult:
        return self.scorer.score(answers)

    def analyze_patterns(
        self,
        face: Mapping[str, Optional[float]],
        body: Mapping[str, Optional[float]],
    ) -> PatternAnalysis:
        return self.analyzer.analyze(face, body)

    def create_assessment(
        self,
        stages: Sequence[Mapping[str, Any]],
        answers: Optional[Sequence[Optional[str]]],
        subject_id: str = "ANONYMOUS",
    ) -> Dict[str, Any]:
        """
        Fuse captured stage metrics with questionnaire answers and store the result.

        Args:
            stages: Stage records ({"stage", "metrics", "image_ref"})
            answers: Questionnaire answers, one per question
            subject_id: Caller-supplied subject identifier

        Returns:
            The stored assessment record

        Raises:
            InvalidInputError: Unknown stage, unknown metric key or bad answers
            PreconditionError: A capture stage is missing
        """
        stage_metrics: Dict[CaptureStage, StageMetrics] = {}
        for record in stages:
            stage = self._parse_stage(record.get("stage"))
            stage_metrics[stage] = StageMetrics(
                stage=stage,
                values=dict(record.get("metrics") or {}),
                image_ref=record.get("image_ref"),
            )
        return self.assess(stage_metrics, answers, subject_id=subject_id)

    def assess(
        self,
        stage_metrics: Mapping[CaptureStage, StageMetrics],
        answers: Optional[Sequence[Optional[str]]],
        subject_id: str = "ANONYMOUS",
    ) -> Dict[str, Any]:
        """Classify committed stage metrics, e.g. from CaptureSession.stage_metrics."""
        if answers is None:
            raise PreconditionError("Questionnaire answers are required before fusion")

        try:
            face_metrics, body_metrics = assemble_metrics(stage_metrics)
        except TypeError as e:
            raise InvalidInputError(f"Unexpected metric in stage data: {e}")

        questionnaire = self.scorer.score(answers)
        result = self.fusion_engine.integrate_all_modalities(face_metrics, body_metrics, questionnaire)

        assessment_id = f"ASM-{uuid.uuid4().hex[:8].upper()}"
        record = self._build_record(assessment_id, subject_id, result, questionnaire, stage_metrics)
        self._assessments[assessment_id] = record

        logger.info(
            f"Assessment {assessment_id} stored: primary={result.primary.key.value} "
            f"({result.primary.score:.1f}), confidence={result.confidence.level.value}"
        )
        return record

    def get_assessment(self, assessment_id: str) -> Optional[Dict[str, Any]]:
        return self._assessments.get(assessment_id)

    # ------------------------------------------------------------------
    # HELPERS
    # ------------------------------------------------------------------

    def _parse_stage(self, stage: Any) -> CaptureStage:
        try:
            return CaptureStage.from_string(stage)
        except ValueError as e:
            raise InvalidInputError(str(e))

    def _build_record(
        self,
        assessment_id: str,
        subject_id: str,
        result: FusionResult,
        questionnaire: QuestionnaireResult,
        stage_metrics: Mapping[CaptureStage, StageMetrics],
    ) -> Dict[str, Any]:
        fusion = result.to_dict()
        stages: List[Dict[str, Any]] = [
            stage_metrics[stage].to_dict() for stage in CaptureStage if stage in stage_metrics
        ]
        return {
            "assessment_id": assessment_id,
            "subject_id": subject_id,
            "timestamp": datetime.now().isoformat(),
            "primary_pattern": fusion["primary_pattern"],
            "secondary_pattern": fusion["secondary_pattern"],
            "confidence": fusion["confidence"],
            "final_scores": fusion["final_scores"],
            "summary": generate_integrated_summary(result),
            "recommendations": get_integrated_recommendations(result),
            "fusion": fusion,
            "questionnaire": questionnaire.to_dict(),
            "stages": stages,
            "status": "success",
        }
