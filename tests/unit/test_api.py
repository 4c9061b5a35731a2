"""
Unit Tests for the HTTP API
"""
import pytest
from fastapi.testclient import TestClient

from somatic_scan.main import app

PREFIX = "/api/v1"

STAGES = [
    {"stage": "STAGE_1_FACE", "metrics": {"eye_sym": 0.0, "jaw_shift": 0.0, "head_tilt": 0.0, "nostril_asym": 0.0}},
    {"stage": "STAGE_2_UPPER_FRONT", "metrics": {"shoulder_height": 0.0}},
    {"stage": "STAGE_3_UPPER_SIDE", "metrics": {"fhp_angle": 40.0}},
    {"stage": "STAGE_4_LOWER_SIDE", "metrics": {"pelvic_tilt": 0.0, "knee_angle": 180.0, "foot_arch_ratio": 0.30}},
]


@pytest.fixture
def client():
    return TestClient(app)


class TestReferenceEndpoints:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_questionnaire(self, client):
        data = client.get(f"{PREFIX}/questionnaire").json()
        assert data["total_questions"] == 20
        assert data["questions"][15]["id"] == 16
        assert len(data["questions"][15]["options"]) == 3

    def test_patterns(self, client):
        data = client.get(f"{PREFIX}/patterns").json()
        assert [p["id"] for p in data["patterns"]] == [
            "upper_compression", "lower_compression", "thoracic_collapse", "lateral_asymmetry",
        ]


class TestFrameEndpoints:
    """Per-frame metrics and alignment."""

    def test_face_metrics(self, client, face_mesh):
        response = client.post(f"{PREFIX}/metrics/face", json={"landmarks": face_mesh()})
        assert response.status_code == 200
        assert response.json()["eye_sym"] == pytest.approx(0.125)

    def test_body_metrics(self, client, front_pose):
        response = client.post(f"{PREFIX}/metrics/body", json={"landmarks": front_pose()})
        assert response.status_code == 200
        assert response.json()["shoulder_height"] == 0.0

    def test_alignment(self, client, side_pose):
        response = client.post(
            f"{PREFIX}/alignment",
            json={"stage": "LOWER_SIDE", "pose_landmarks": side_pose()},
        )
        data = response.json()
        assert response.status_code == 200
        assert data["stage"] == "STAGE_4_LOWER_SIDE"
        assert data["aligned"] is True
        assert data["feedback_message"] == "PERFECT! HOLD STILL"

    def test_alignment_without_landmarks(self, client):
        data = client.post(f"{PREFIX}/alignment", json={"stage": "1"}).json()
        assert data["aligned"] is False
        assert data["feedback_message"] == "FACE NOT DETECTED"

    def test_alignment_unknown_stage(self, client):
        response = client.post(f"{PREFIX}/alignment", json={"stage": "STAGE_7"})
        assert response.status_code == 400


class TestScoringEndpoints:
    def test_questionnaire_score(self, client, balanced_answers):
        response = client.post(f"{PREFIX}/questionnaire/score", json={"answers": balanced_answers})
        assert response.status_code == 200
        assert response.json()["metadata"]["answered_count"] == 20

    def test_questionnaire_wrong_length(self, client):
        response = client.post(f"{PREFIX}/questionnaire/score", json={"answers": ["A"] * 19})
        assert response.status_code == 400
        assert "exactly 20 answers" in response.json()["detail"]

    def test_pattern_analysis(self, client):
        payload = {
            "face": STAGES[0]["metrics"],
            "body": {"fhp_angle": 40.0, "shoulder_height": 0.0},
        }
        data = client.post(f"{PREFIX}/patterns/analyze", json=payload).json()
        assert data["dominant_pattern"] == "thoracic_collapse"


class TestAssessmentEndpoints:
    """Assessment creation and retrieval."""

    def test_create_and_fetch(self, client):
        response = client.post(
            f"{PREFIX}/assessments",
            json={"subject_id": "S-1", "stages": STAGES, "answers": ["A"] * 20},
        )
        assert response.status_code == 200
        created = response.json()
        assert created["assessment_id"].startswith("ASM-")
        assert created["primary_pattern"]["id"] == "thoracic-collapse"
        assert created["confidence"]["level"] in ("HIGH", "MEDIUM", "LOW")
        assert len(created["stages"]) == 4

        fetched = client.get(f"{PREFIX}/assessments/{created['assessment_id']}")
        assert fetched.status_code == 200
        assert fetched.json()["subject_id"] == "S-1"

    def test_missing_stage(self, client):
        response = client.post(
            f"{PREFIX}/assessments",
            json={"stages": STAGES[:3], "answers": ["A"] * 20},
        )
        assert response.status_code == 400
        assert "STAGE_4_LOWER_SIDE" in response.json()["detail"]

    def test_bad_answers(self, client):
        response = client.post(f"{PREFIX}/assessments", json={"stages": STAGES, "answers": ["A"]})
        assert response.status_code == 400

    def test_unknown_metric_key(self, client):
        stages = [{"stage": "STAGE_1_FACE", "metrics": {"bogus": 1.0}}] + STAGES[1:]
        response = client.post(f"{PREFIX}/assessments", json={"stages": stages, "answers": ["A"] * 20})
        assert response.status_code == 400

    def test_unknown_assessment(self, client):
        response = client.get(f"{PREFIX}/assessments/ASM-MISSING")
        assert response.status_code == 404
        assert response.json()["detail"] == "Assessment not found"
