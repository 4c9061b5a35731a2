"""
Multi-Modal Pattern Fusion

Combines body (50%), face (30%) and questionnaire (20%) pattern scores into
the final classification, and grades how far the three modalities agree.

The body and face channels are both taken from one combined analyzer run
over face and body metrics, so they are identical. The weights therefore
reduce to 80% visual and 20% self-assessment.
"""
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from somatic_scan.core.errors import PreconditionError
from somatic_scan.core.extraction.metrics import BodyMetrics, FaceMetrics
from somatic_scan.core.inference.pattern_analyzer import PatternAnalysis, PatternAnalyzer
from somatic_scan.core.inference.patterns import PatternKey, Severity, get_pattern
from somatic_scan.core.inference.questionnaire import QuestionnaireResult
from somatic_scan.utils import get_logger

logger = get_logger(__name__)

BODY_WEIGHT = 0.50
FACE_WEIGHT = 0.30
QUESTIONNAIRE_WEIGHT = 0.20

SECONDARY_MIN_SCORE = 40

AGREEMENT_TIGHT = 15
AGREEMENT_LOOSE = 25

ScoreMap = Mapping[Any, float]


class ConfidenceLevel(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def percentage(self) -> int:
        return {"HIGH": 85, "MEDIUM": 65, "LOW": 35}[self.value]


def _coerce_scores(scores: Optional[ScoreMap]) -> Dict[PatternKey, float]:
    """Accept PatternKey or string keys; missing patterns score 0."""
    coerced = {key: 0.0 for key in PatternKey}
    for key, value in (scores or {}).items():
        coerced[PatternKey.from_string(key)] = float(value or 0)
    return coerced


@dataclass(frozen=True)
class RankedPattern:
    """A pattern with its fused score."""
    key: PatternKey
    score: float

    @property
    def severity(self) -> Severity:
        return Severity.from_score(self.score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.key.display_id,
            "name": self.key.display_name,
            "score": round(self.score, 2),
            "severity": self.severity.value,
        }


@dataclass(frozen=True)
class FusedScores:
    """Weighted per-pattern fusion before confidence grading."""
    final_scores: Dict[PatternKey, float]
    contributions: Dict[str, Dict[PatternKey, float]]
    ranked: Tuple[RankedPattern, ...]

    @property
    def primary(self) -> RankedPattern:
        return self.ranked[0]

    @property
    def secondary(self) -> Optional[RankedPattern]:
        if len(self.ranked) > 1 and self.ranked[1].score > SECONDARY_MIN_SCORE:
            return self.ranked[1]
        return None


@dataclass(frozen=True)
class ConfidenceMetrics:
    primary_score: float
    gap: float
    modality_agreement: int
    coefficient_of_variation: float
    score_range: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_score": round(self.primary_score, 1),
            "gap": round(self.gap, 1),
            "modality_agreement": self.modality_agreement,
            "coefficient_of_variation": round(self.coefficient_of_variation, 1),
            "score_range": round(self.score_range, 1),
        }


@dataclass(frozen=True)
class ConfidenceBand:
    """Heuristic confidence in the primary pattern."""
    level: ConfidenceLevel
    reasoning: Tuple[str, ...]
    metrics: ConfidenceMetrics

    @property
    def percentage(self) -> int:
        return self.level.percentage

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "percentage": self.percentage,
            "reasoning": list(self.reasoning),
            "metrics": self.metrics.to_dict(),
        }


@dataclass(frozen=True)
class FusionResult:
    """Terminal classification of an assessment."""
    primary: RankedPattern
    secondary: Optional[RankedPattern]
    confidence: ConfidenceBand
    modality_scores: Dict[str, Dict[PatternKey, float]]
    final_scores: Dict[PatternKey, float]
    contributions: Dict[str, Dict[PatternKey, float]]
    all_patterns: Tuple[RankedPattern, ...]
    visual_analysis: Optional[PatternAnalysis] = field(default=None, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        def by_key(scores: Mapping[PatternKey, float]) -> Dict[str, float]:
            return {key.value: round(value, 2) for key, value in scores.items()}

        return {
            "primary_pattern": self.primary.to_dict(),
            "secondary_pattern": self.secondary.to_dict() if self.secondary else None,
            "confidence": self.confidence.to_dict(),
            "modality_scores": {name: by_key(s) for name, s in self.modality_scores.items()},
            "final_scores": by_key(self.final_scores),
            "contributions": {name: by_key(s) for name, s in self.contributions.items()},
            "all_patterns": [p.to_dict() for p in self.all_patterns],
            "visual_analysis": self.visual_analysis.to_dict() if self.visual_analysis else None,
        }


def fuse_scores(body: ScoreMap, face: ScoreMap, questionnaire: ScoreMap) -> FusedScores:
    """
    Weighted fusion of the three modalities.

    Args:
        body: Body pattern scores (0-100)
        face: Face pattern scores (0-100)
        questionnaire: Normalized questionnaire scores (0-100)

    Returns:
        FusedScores with patterns ranked highest first
    """
    body_scores = _coerce_scores(body)
    face_scores = _coerce_scores(face)
    questionnaire_scores = _coerce_scores(questionnaire)

    final: Dict[PatternKey, float] = {}
    contributions: Dict[str, Dict[PatternKey, float]] = {"body": {}, "face": {}, "questionnaire": {}}
    for key in PatternKey:
        body_part = body_scores[key] * BODY_WEIGHT
        face_part = face_scores[key] * FACE_WEIGHT
        questionnaire_part = questionnaire_scores[key] * QUESTIONNAIRE_WEIGHT
        final[key] = body_part + face_part + questionnaire_part
        contributions["body"][key] = body_part
        contributions["face"][key] = face_part
        contributions["questionnaire"][key] = questionnaire_part

    ranked = tuple(sorted(
        (RankedPattern(key=key, score=score) for key, score in final.items()),
        key=lambda p: p.score,
        reverse=True,
    ))
    return FusedScores(final_scores=final, contributions=contributions, ranked=ranked)


def confidence_band(
    body: ScoreMap,
    face: ScoreMap,
    questionnaire: ScoreMap,
    fused: FusedScores,
) -> ConfidenceBand:
    """
    Grade agreement between the modalities on the primary pattern.

    HIGH needs a primary above 70, a gap above 30 and all three modalities
    within 15 points. MEDIUM needs a primary in [50, 70], a gap in [15, 30]
    and a spread of at most 25. Everything else is LOW.
    """
    primary = fused.primary
    secondary = fused.secondary
    primary_score = primary.score
    gap = primary_score - (secondary.score if secondary else 0.0)

    per_modality = [
        _coerce_scores(body)[primary.key],
        _coerce_scores(face)[primary.key],
        _coerce_scores(questionnaire)[primary.key],
    ]
    mean = sum(per_modality) / 3
    std_dev = math.sqrt(sum((s - mean) ** 2 for s in per_modality) / 3)
    coefficient_of_variation = std_dev / mean * 100 if mean != 0 else 0.0
    score_range = max(per_modality) - min(per_modality)

    if score_range <= AGREEMENT_TIGHT:
        agreement = 3
    elif score_range <= AGREEMENT_LOOSE:
        agreement = 2
    else:
        agreement = 1

    reasoning: List[str] = []
    if primary_score > 70 and gap > 30 and agreement == 3:
        level = ConfidenceLevel.HIGH
        reasoning.append("Primary pattern score >70%")
        reasoning.append(f"Strong gap between primary and secondary ({gap:.1f} points)")
        reasoning.append("All three modalities agree within 15%")
    elif 50 <= primary_score <= 70 and 15 <= gap <= 30 and agreement >= 2:
        level = ConfidenceLevel.MEDIUM
        reasoning.append(f"Primary pattern score {primary_score:.1f}% (50-70% range)")
        reasoning.append(f"Moderate gap ({gap:.1f} points)")
        reasoning.append("Two or more modalities in agreement")
    else:
        level = ConfidenceLevel.LOW
        if primary_score < 50:
            reasoning.append(f"Primary pattern score only {primary_score:.1f}%")
        if gap < 15:
            reasoning.append(f"Small gap between patterns ({gap:.1f} points)")
        if agreement < 2:
            reasoning.append("High variance across modalities")

    return ConfidenceBand(
        level=level,
        reasoning=tuple(reasoning),
        metrics=ConfidenceMetrics(
            primary_score=primary_score,
            gap=gap,
            modality_agreement=agreement,
            coefficient_of_variation=coefficient_of_variation,
            score_range=score_range,
        ),
    )


class FusionEngine:
    """
    Runs the pattern analyzer over the captured metrics and fuses the
    result with the questionnaire scores.
    """

    def __init__(self, analyzer: Optional[PatternAnalyzer] = None):
        self.analyzer = analyzer or PatternAnalyzer()
        self._fusion_count = 0
        logger.info("FusionEngine initialized (body 50%, face 30%, questionnaire 20%)")

    def integrate_all_modalities(
        self,
        face_metrics: Optional[Union[FaceMetrics, Mapping[str, Optional[float]]]],
        body_metrics: Optional[Union[BodyMetrics, Mapping[str, Optional[float]]]],
        questionnaire_scores: Optional[Union[QuestionnaireResult, ScoreMap]],
    ) -> FusionResult:
        """
        Produce the final classification.

        Args:
            face_metrics: Committed stage 1 metrics
            body_metrics: Committed stage 2-4 metrics
            questionnaire_scores: QuestionnaireResult or normalized scores

        Returns:
            FusionResult

        Raises:
            PreconditionError: If any modality is missing
        """
        missing = [
            name for name, value in (
                ("face metrics", face_metrics),
                ("body metrics", body_metrics),
                ("questionnaire scores", questionnaire_scores),
            ) if value is None
        ]
        if missing:
            raise PreconditionError(f"Cannot fuse without {', '.join(missing)}")

        if isinstance(questionnaire_scores, QuestionnaireResult):
            questionnaire_scores = questionnaire_scores.normalized_scores
        questionnaire = _coerce_scores(questionnaire_scores)

        visual_analysis = self.analyzer.analyze(face_metrics, body_metrics)
        visual_scores = visual_analysis.scores()
        body_scores = dict(visual_scores)
        face_scores = dict(visual_scores)

        fused = fuse_scores(body_scores, face_scores, questionnaire)
        confidence = confidence_band(body_scores, face_scores, questionnaire, fused)
        self._fusion_count += 1

        for ranked in fused.ranked:
            logger.info(f"Fused {ranked.key.value}: {ranked.score:.1f} ({ranked.severity.value})")
        logger.info(
            f"Primary pattern {fused.primary.key.value}, "
            f"confidence {confidence.level.value} ({confidence.percentage}%)"
        )

        return FusionResult(
            primary=fused.primary,
            secondary=fused.secondary,
            confidence=confidence,
            modality_scores={
                "body": body_scores,
                "face": face_scores,
                "questionnaire": questionnaire,
            },
            final_scores=fused.final_scores,
            contributions=fused.contributions,
            all_patterns=fused.ranked,
            visual_analysis=visual_analysis,
        )


def generate_integrated_summary(result: FusionResult) -> str:
    """Narrative summary of a fusion result."""
    summary = (
        "Based on comprehensive analysis across body posture, facial alignment, and self-assessment, "
        f"your primary somatic pattern is **{result.primary.key.display_name}** "
        f"with a {result.confidence.level.value.lower()} confidence level "
        f"({result.confidence.percentage}%). "
    )
    if result.secondary:
        summary += f"A secondary pattern of **{result.secondary.key.display_name}** is also present. "
    summary += (
        "\n\nThis classification integrates: "
        "50% body metrics, 30% facial analysis, and 20% questionnaire responses."
    )
    return summary


def get_integrated_recommendations(result: FusionResult) -> List[str]:
    """Recommendations for the primary pattern at its fused severity."""
    pattern = get_pattern(result.primary.key)
    if pattern is None:
        return []
    return pattern.recommendations_for(result.primary.severity)
