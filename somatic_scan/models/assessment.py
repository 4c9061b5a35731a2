"""
Assessment API Models
"""
from pydantic import BaseModel, Field
from typing import Dict, Any, List, Optional


class LandmarkInput(BaseModel):
    """A normalized landmark as produced by the detector."""
    x: float
    y: float
    z: Optional[float] = None
    visibility: Optional[float] = None


class FaceMetricsRequest(BaseModel):
    """Face mesh for one frame (478 points with iris refinement)."""
    landmarks: List[Optional[LandmarkInput]]


class BodyMetricsRequest(BaseModel):
    """Pose skeleton for one frame (33 points)."""
    landmarks: List[Optional[LandmarkInput]]


class AlignmentRequest(BaseModel):
    """Landmarks to check against a stage's alignment gate."""
    stage: str = Field(..., description="Stage value, name or number: STAGE_1_FACE, UPPER_SIDE, 3 ...")
    face_landmarks: List[Optional[LandmarkInput]] = []
    pose_landmarks: List[Optional[LandmarkInput]] = []


class AlignmentResponse(BaseModel):
    stage: str
    aligned: bool
    feedback_message: str
    debug: Dict[str, Any] = {}


class FaceMetricsModel(BaseModel):
    eye_sym: Optional[float] = None
    jaw_shift: Optional[float] = None
    head_tilt: Optional[float] = None
    nostril_asym: Optional[float] = None
    iris_width: Optional[float] = None


class BodyMetricsModel(BaseModel):
    shoulder_height: Optional[float] = None
    fhp_angle: Optional[float] = None
    pelvic_tilt: Optional[float] = None
    knee_angle: Optional[float] = None
    foot_arch_ratio: Optional[float] = None


class PatternAnalysisRequest(BaseModel):
    """Face and body metrics to score against the pattern table."""
    face: FaceMetricsModel
    body: BodyMetricsModel


class QuestionnaireScoreRequest(BaseModel):
    """One label per question; null or "" for unanswered."""
    answers: List[Optional[str]]


class StageMetricsInput(BaseModel):
    """Metrics committed for one capture stage."""
    stage: str
    metrics: Dict[str, Optional[float]]
    image_ref: Optional[str] = None


class AssessmentRequest(BaseModel):
    """Captured stages plus questionnaire answers for final classification."""
    subject_id: str = Field(default="ANONYMOUS")
    stages: List[StageMetricsInput]
    answers: List[Optional[str]]


class AssessmentResponse(BaseModel):
    """Final classification of an assessment."""
    assessment_id: str
    subject_id: str
    timestamp: str
    primary_pattern: Dict[str, Any]
    secondary_pattern: Optional[Dict[str, Any]] = None
    confidence: Dict[str, Any]
    final_scores: Dict[str, float]
    summary: str
    recommendations: List[str] = []
    fusion: Dict[str, Any]
    questionnaire: Dict[str, Any]
    stages: List[Dict[str, Any]]
    status: str = "success"


class HealthResponse(BaseModel):
    """Health status response."""
    status: str
    version: str
    uptime_seconds: float
    timestamp: str
