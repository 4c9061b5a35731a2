"""
Somatic Scan - FastAPI Application

Main application entry point with API endpoints for:
- Per-frame metric extraction and alignment checks
- Questionnaire scoring
- Pattern analysis and multi-modal assessment
"""
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from datetime import datetime
import time
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from somatic_scan.config import settings
from somatic_scan.core.errors import InvalidInputError, PreconditionError
from somatic_scan.core.extraction.metrics import CaptureStage
from somatic_scan.core.inference.patterns import PATTERN_CONFIG_VERSION, SOMATIC_PATTERNS
from somatic_scan.core.inference.questionnaire_data import QUESTIONNAIRE, QUESTIONNAIRE_VERSION
from somatic_scan.models.assessment import (
    AlignmentRequest,
    AlignmentResponse,
    AssessmentRequest,
    AssessmentResponse,
    BodyMetricsModel,
    BodyMetricsRequest,
    FaceMetricsModel,
    FaceMetricsRequest,
    HealthResponse,
    PatternAnalysisRequest,
    QuestionnaireScoreRequest,
)
from somatic_scan.services.assessment import AssessmentService
from somatic_scan.utils import configure_logging, get_logger

configure_logging(settings.log_level)
logger = get_logger(__name__)

_started_at = time.time()


# ---- FastAPI Application ----

app = FastAPI(
    title="Somatic Scan API",
    description="Posture capture metrics, somatic pattern analysis and questionnaire fusion",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---- Service (in-memory assessment storage) ----
_service = AssessmentService()


def _dump(landmarks) -> list:
    return [lm.model_dump() if lm is not None else None for lm in landmarks]


# ---- API Endpoints ----

@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        uptime_seconds=round(time.time() - _started_at, 1),
        timestamp=datetime.now().isoformat(),
    )


@app.get(f"{settings.api_prefix}/questionnaire", tags=["Questionnaire"])
async def get_questionnaire():
    """
    The questionnaire table with per-option scoring vectors.
    """
    return {
        "version": QUESTIONNAIRE_VERSION,
        "total_questions": len(QUESTIONNAIRE),
        "questions": [q.to_dict() for q in QUESTIONNAIRE],
    }


@app.post(f"{settings.api_prefix}/questionnaire/score", tags=["Questionnaire"])
async def score_questionnaire(request: QuestionnaireScoreRequest):
    """
    Score questionnaire answers into raw and normalized pattern scores.
    """
    try:
        result = _service.score_questionnaire(request.answers)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return result.to_dict()


@app.post(f"{settings.api_prefix}/metrics/face", response_model=FaceMetricsModel, tags=["Metrics"])
async def face_metrics(request: FaceMetricsRequest):
    """
    Facial symmetry metrics from one face mesh frame.
    """
    metrics = _service.extract_face_metrics(_dump(request.landmarks))
    return FaceMetricsModel(**metrics.to_dict())


@app.post(f"{settings.api_prefix}/metrics/body", response_model=BodyMetricsModel, tags=["Metrics"])
async def body_metrics(request: BodyMetricsRequest):
    """
    Postural metrics from one pose skeleton frame.
    """
    metrics = _service.extract_body_metrics(_dump(request.landmarks))
    return BodyMetricsModel(**metrics.to_dict())


@app.post(f"{settings.api_prefix}/alignment", response_model=AlignmentResponse, tags=["Metrics"])
async def alignment(request: AlignmentRequest):
    """
    Evaluate a stage's alignment gate for one frame.
    """
    try:
        stage = CaptureStage.from_string(request.stage)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    result = _service.check_alignment(
        stage,
        face_landmarks=_dump(request.face_landmarks),
        pose_landmarks=_dump(request.pose_landmarks),
    )
    return AlignmentResponse(stage=stage.value, **result.to_dict())


@app.post(f"{settings.api_prefix}/patterns/analyze", tags=["Patterns"])
async def analyze_patterns(request: PatternAnalysisRequest):
    """
    Score face and body metrics against the somatic pattern table.
    """
    analysis = _service.analyze_patterns(request.face.model_dump(), request.body.model_dump())
    return analysis.to_dict()


@app.get(f"{settings.api_prefix}/patterns", tags=["Reference"])
async def list_patterns():
    """
    List the configured somatic patterns.
    """
    return {
        "version": PATTERN_CONFIG_VERSION,
        "patterns": [p.to_dict() for p in SOMATIC_PATTERNS.values()],
    }


@app.post(f"{settings.api_prefix}/assessments", response_model=AssessmentResponse, tags=["Assessment"])
async def create_assessment(request: AssessmentRequest):
    """
    Fuse the four captured stages with questionnaire answers.

    Returns the primary/secondary pattern, confidence band, summary and
    recommendations.
    """
    try:
        record = _service.create_assessment(
            [s.model_dump() for s in request.stages],
            request.answers,
            subject_id=request.subject_id,
        )
    except (InvalidInputError, PreconditionError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Assessment failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Assessment failed: {str(e)}")

    return AssessmentResponse(**record)


@app.get(f"{settings.api_prefix}/assessments/{{assessment_id}}", response_model=AssessmentResponse, tags=["Assessment"])
async def get_assessment(assessment_id: str):
    """
    Get a stored assessment.
    """
    record = _service.get_assessment(assessment_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Assessment not found")
    return AssessmentResponse(**record)


# ---- Application Lifecycle ----

@app.on_event("startup")
async def startup_event():
    """Initialize on startup."""
    logger.info(f"{settings.app_name} API starting up...")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info(f"{settings.app_name} API shutting down...")


# ---- Run with uvicorn ----
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
