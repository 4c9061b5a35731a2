"""
Pattern Analyzer

Scores each somatic pattern as a weighted average of its normalized metrics.
Metrics that were not measured are left out of both the weighted sum and the
weight total, so missing data shrinks the evidence base instead of pulling
the score toward "normal".
"""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from somatic_scan.core.extraction.metrics import BodyMetrics, FaceMetrics
from somatic_scan.core.inference.patterns import (
    SOMATIC_PATTERNS,
    MetricConfig,
    MetricSource,
    PatternConfig,
    PatternKey,
    Severity,
    SeverityThresholds,
    default_normalize,
    metric_display_name,
)
from somatic_scan.utils import get_logger

logger = get_logger(__name__)

MetricInput = Union[FaceMetrics, BodyMetrics, Mapping[str, Optional[float]]]

MISSING_DATA_SUMMARY = "Unable to analyze patterns due to missing data."
NO_PATTERN_SUMMARY = (
    "No significant somatic patterns detected. "
    "Your posture and alignment are within normal ranges."
)


@dataclass
class MetricContribution:
    """One metric's share of a pattern score."""
    key: str
    name: str
    raw_value: float
    normalized_value: float
    weight: float
    contribution: float
    exceeds_threshold: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "raw_value": self.raw_value,
            "normalized_value": round(self.normalized_value, 2),
            "weight": self.weight,
            "contribution": round(self.contribution, 2),
            "exceeds_threshold": self.exceeds_threshold,
        }


@dataclass
class PatternResult:
    """Score and explanation for one pattern."""
    key: PatternKey
    name: str
    description: str
    score: float
    severity: Severity
    recommendations: List[str] = field(default_factory=list)
    metric_breakdown: List[MetricContribution] = field(default_factory=list)
    weight_sum: float = 0.0
    severity_thresholds: SeverityThresholds = field(default_factory=SeverityThresholds)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.key.value,
            "name": self.name,
            "description": self.description,
            "score": round(self.score, 2),
            "severity": self.severity.value,
            "severity_label": self.severity.label,
            "recommendations": self.recommendations,
            "metric_breakdown": [m.to_dict() for m in self.metric_breakdown],
            "weight_sum": round(self.weight_sum, 3),
            "severity_thresholds": self.severity_thresholds.to_dict(),
        }


@dataclass
class PatternAnalysis:
    """Analyzer output across all patterns."""
    patterns: Dict[PatternKey, PatternResult] = field(default_factory=dict)
    dominant_pattern: Optional[PatternKey] = None
    summary: str = ""

    def scores(self) -> Dict[PatternKey, float]:
        """Pattern scores, 0 for patterns that were not analyzed."""
        return {
            key: (self.patterns[key].score if key in self.patterns else 0.0)
            for key in PatternKey
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patterns": {key.value: result.to_dict() for key, result in self.patterns.items()},
            "dominant_pattern": self.dominant_pattern.value if self.dominant_pattern else None,
            "summary": self.summary,
        }


def _as_mapping(metrics: MetricInput) -> Mapping[str, Optional[float]]:
    if isinstance(metrics, (FaceMetrics, BodyMetrics)):
        return metrics.to_dict()
    return metrics


def _is_measured(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    try:
        return not math.isnan(float(value))
    except (TypeError, ValueError):
        return False


class PatternAnalyzer:
    """
    Weighted-average scorer for the somatic pattern table.

    Each metric is fetched from the face metrics, the body metrics, or
    computed by a derived proxy over the body metrics, then mapped to a
    0-100 dysfunction score by its normalization curve.
    """

    def __init__(self, patterns: Optional[Mapping[PatternKey, PatternConfig]] = None):
        self.patterns = dict(patterns or SOMATIC_PATTERNS)
        self._analysis_count = 0
        logger.info(f"PatternAnalyzer initialized with {len(self.patterns)} patterns")

    def analyze(self, face: Optional[MetricInput], body: Optional[MetricInput]) -> PatternAnalysis:
        """
        Score every configured pattern.

        Args:
            face: Face metrics (eye_sym, jaw_shift, head_tilt, nostril_asym)
            body: Body metrics (shoulder_height, fhp_angle, pelvic_tilt,
                knee_angle, foot_arch_ratio)

        Returns:
            PatternAnalysis with per-pattern results, the dominant pattern and
            a summary sentence
        """
        if face is None or body is None:
            logger.error("Pattern analysis requires both face and body metrics")
            return PatternAnalysis(summary=MISSING_DATA_SUMMARY)

        self._analysis_count += 1
        face_values = _as_mapping(face)
        body_values = _as_mapping(body)

        results: Dict[PatternKey, PatternResult] = {}
        for key, pattern in self.patterns.items():
            breakdown = self._metric_breakdown(pattern, face_values, body_values)
            weight_sum = sum(item.weight for item in breakdown)
            weighted = sum(item.contribution for item in breakdown)
            score = weighted / weight_sum if weight_sum > 0 else 0.0
            severity = Severity.from_score(score)

            results[key] = PatternResult(
                key=key,
                name=pattern.name,
                description=pattern.description,
                score=score,
                severity=severity,
                recommendations=pattern.recommendations_for(severity),
                metric_breakdown=sorted(breakdown, key=lambda m: m.contribution, reverse=True),
                weight_sum=weight_sum,
                severity_thresholds=pattern.severity_thresholds,
            )
            logger.info(f"{pattern.name}: {score:.1f} ({severity.value}, weight sum {weight_sum:.2f})")

        dominant = self._find_dominant(results)
        return PatternAnalysis(
            patterns=results,
            dominant_pattern=dominant,
            summary=self._summarize(results),
        )

    def score_pattern(self, key: PatternKey, face: MetricInput, body: MetricInput) -> float:
        """Score a single pattern (0 when none of its metrics were measured)."""
        pattern = self.patterns[key]
        breakdown = self._metric_breakdown(pattern, _as_mapping(face), _as_mapping(body))
        weight_sum = sum(item.weight for item in breakdown)
        if weight_sum == 0:
            return 0.0
        return sum(item.contribution for item in breakdown) / weight_sum

    def _metric_value(
        self,
        config: MetricConfig,
        key: str,
        face: Mapping[str, Optional[float]],
        body: Mapping[str, Optional[float]],
    ) -> Optional[float]:
        if config.source is MetricSource.FACE:
            return face.get(key)
        if config.source is MetricSource.BODY:
            return body.get(key)
        return config.calculate(body) if config.calculate else None

    def _metric_breakdown(
        self,
        pattern: PatternConfig,
        face: Mapping[str, Optional[float]],
        body: Mapping[str, Optional[float]],
    ) -> List[MetricContribution]:
        breakdown: List[MetricContribution] = []
        for key, config in pattern.metrics.items():
            value = self._metric_value(config, key, face, body)
            if not _is_measured(value):
                logger.debug(f"  {pattern.id}.{key}: skipped (value={value})")
                continue

            value = float(value)
            normalize = config.normalize or default_normalize
            normalized = normalize(value)
            breakdown.append(MetricContribution(
                key=key,
                name=metric_display_name(key),
                raw_value=value,
                normalized_value=normalized,
                weight=config.weight,
                contribution=normalized * config.weight,
                exceeds_threshold=bool(config.threshold) and abs(value) > config.threshold,
            ))
            logger.debug(f"  {pattern.id}.{key}: raw={value:.3f} normalized={normalized:.1f}")
        return breakdown

    @staticmethod
    def _find_dominant(results: Mapping[PatternKey, PatternResult]) -> Optional[PatternKey]:
        """Highest-scoring pattern that reaches at least mild severity."""
        max_score = 0.0
        dominant = None
        for key, result in results.items():
            if result.score > max_score and result.severity is not Severity.NONE:
                max_score = result.score
                dominant = key
        return dominant

    @staticmethod
    def _summarize(results: Mapping[PatternKey, PatternResult]) -> str:
        active = sorted(
            (r for r in results.values() if r.severity is not Severity.NONE),
            key=lambda r: r.score,
            reverse=True,
        )
        if not active:
            return NO_PATTERN_SUMMARY

        primary = active[0]
        summary = f"Primary pattern: {primary.name} ({primary.severity.value}). "
        secondary_names = [r.name for r in active[1:3]]
        if len(secondary_names) == 1:
            summary += f"Secondary pattern: {secondary_names[0]}."
        elif secondary_names:
            summary += f"Secondary patterns include {' and '.join(secondary_names)}."
        return summary
