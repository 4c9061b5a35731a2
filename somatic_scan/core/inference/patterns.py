"""
Somatic Pattern Configuration

Static definitions of the four postural patterns: metric weights, sources,
normalization curves, severity thresholds and recommendations.

The curve breakpoints are biomechanical calibration constants; they are
versioned together with the questionnaire table because weights and
severity bands are tuned jointly.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

PATTERN_CONFIG_VERSION = "1.0"


class PatternKey(str, Enum):
    """The four somatic pattern categories."""
    UPPER_COMPRESSION = "upper_compression"
    LOWER_COMPRESSION = "lower_compression"
    THORACIC_COLLAPSE = "thoracic_collapse"
    LATERAL_ASYMMETRY = "lateral_asymmetry"

    @property
    def display_id(self) -> str:
        """Kebab-case identifier used in fused results."""
        return self.value.replace("_", "-")

    @property
    def display_name(self) -> str:
        """Short title ('Upper Compression')."""
        return self.value.replace("_", " ").title()

    @classmethod
    def from_string(cls, name: str) -> "PatternKey":
        """Parse snake_case, kebab-case or camelCase pattern names."""
        if isinstance(name, cls):
            return name
        text = str(name).strip()
        if text.isupper():
            text = text.lower()
        normalized = "".join(
            "_" + ch.lower() if ch.isupper() else ch for ch in text
        ).replace("-", "_").strip("_")
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unknown pattern: {name}")


class Severity(str, Enum):
    """Severity band for any 0-100 pattern score."""
    NONE = "none"
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"

    @classmethod
    def from_score(cls, score: float) -> "Severity":
        if score < 30:
            return cls.NONE
        elif score < 50:
            return cls.MILD
        elif score < 70:
            return cls.MODERATE
        return cls.SEVERE

    @property
    def label(self) -> str:
        return "Not Detected" if self is Severity.NONE else self.value.title()


class MetricSource(str, Enum):
    FACE = "face"
    BODY = "body"
    DERIVED = "derived"


@dataclass(frozen=True)
class SeverityThresholds:
    mild: float = 30
    moderate: float = 50
    severe: float = 70

    def to_dict(self) -> Dict[str, float]:
        return {"mild": self.mild, "moderate": self.moderate, "severe": self.severe}


@dataclass(frozen=True)
class MetricConfig:
    """One weighted metric inside a pattern."""
    weight: float
    source: MetricSource
    threshold: Optional[float] = None
    normalize: Optional[Callable[[float], float]] = None
    calculate: Optional[Callable[[Mapping[str, Optional[float]]], float]] = None


@dataclass(frozen=True)
class PatternConfig:
    """Static configuration for one somatic pattern."""
    key: PatternKey
    name: str
    description: str
    metrics: Dict[str, MetricConfig]
    recommendations: Dict[Severity, List[str]] = field(default_factory=dict)
    severity_thresholds: SeverityThresholds = field(default_factory=SeverityThresholds)

    @property
    def id(self) -> str:
        return self.key.value

    def recommendations_for(self, severity: Severity) -> List[str]:
        return list(self.recommendations.get(severity, []))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "severity_thresholds": self.severity_thresholds.to_dict(),
            "metrics": {
                key: {
                    "weight": cfg.weight,
                    "source": cfg.source.value,
                    "threshold": cfg.threshold,
                }
                for key, cfg in self.metrics.items()
            },
        }


# ---- Normalization curves (raw value -> 0..100 dysfunction) ----

def cva_curve(value: float) -> float:
    """Craniovertebral angle: 60+ excellent, 50-60 normal, below 40 severe forward head."""
    if value >= 60:
        return max(0.0, 10 - (value - 60) / 3)
    if value >= 50:
        return 30 - (value - 50) * 2
    if value >= 45:
        return 50 - (value - 45) * 4
    if value >= 40:
        return 70 - (value - 40) * 4
    return min(100.0, 70 + (40 - value) * 2)


def pelvic_curve(value: float) -> float:
    """Pelvic obliquity: 0-3 level, 3-8 mild, 8-15 moderate, beyond 15 severe."""
    magnitude = abs(value)
    if magnitude <= 3:
        return 0.0
    if magnitude <= 8:
        return 30.0
    if magnitude <= 15:
        return 60.0
    return min(100.0, 60 + (magnitude - 15) * 2.5)


def scaled(full_scale: float) -> Callable[[float], float]:
    """Linear curve reaching 100 at |value| == full_scale."""
    def normalize(value: float) -> float:
        return min(100.0, abs(value) / full_scale * 100)
    return normalize


def deviation_from(ideal: float, full_scale: float) -> Callable[[float], float]:
    """Linear curve on the distance from an ideal value."""
    def normalize(value: float) -> float:
        return min(100.0, abs(value - ideal) / full_scale * 100)
    return normalize


def default_normalize(value: float) -> float:
    """Curve for metrics configured without one (derived proxies)."""
    return min(100.0, abs(value) * 10)


def neutral(metrics: Mapping[str, Optional[float]], key: str) -> float:
    """Body metric for a derived proxy, with 0 standing in for a missing value.

    Derived proxies are always computed, so an undetected input contributes
    as "no deviation" rather than removing the proxy from the average.
    """
    value = metrics.get(key)
    return 0.0 if value is None else value


# ---- Derived proxies ----

def thoracic_proxy(metrics: Mapping[str, Optional[float]]) -> float:
    return abs(neutral(metrics, "fhp_angle")) * 0.8


def pelvic_shift_proxy(metrics: Mapping[str, Optional[float]]) -> float:
    return abs(neutral(metrics, "shoulder_height")) * 50


def rib_cage_proxy(metrics: Mapping[str, Optional[float]]) -> float:
    fhp_contribution = abs(neutral(metrics, "fhp_angle")) * 0.6
    shoulder_contribution = abs(neutral(metrics, "shoulder_height")) * 20
    return min(100.0, fhp_contribution + shoulder_contribution)


def weight_distribution_proxy(metrics: Mapping[str, Optional[float]]) -> float:
    asymmetry = (
        abs(neutral(metrics, "shoulder_height")) * 40
        + abs(neutral(metrics, "pelvic_tilt")) * 2
    )
    return min(100.0, asymmetry)


METRIC_DISPLAY_NAMES: Dict[str, str] = {
    "fhp_angle": "Forward Head Posture",
    "shoulder_height": "Shoulder Asymmetry",
    "pelvic_tilt": "Pelvic Tilt",
    "knee_angle": "Knee Alignment",
    "foot_arch_ratio": "Foot Arch",
    "head_tilt": "Head Tilt",
    "jaw_shift": "Jaw Shift",
    "eye_sym": "Eye Symmetry",
    "nostril_asym": "Nostril Asymmetry",
    "thoracic_proxy": "Upper Back Rounding",
    "pelvic_shift_proxy": "Pelvic Shift",
    "rib_cage_proxy": "Rib Cage Compression",
    "weight_dist_proxy": "Weight Distribution",
}


def metric_display_name(key: str) -> str:
    return METRIC_DISPLAY_NAMES.get(key, key)


SOMATIC_PATTERNS: Dict[PatternKey, PatternConfig] = {
    PatternKey.UPPER_COMPRESSION: PatternConfig(
        key=PatternKey.UPPER_COMPRESSION,
        name="Upper Compression Pattern",
        description="Forward head posture, shoulder tension, jaw clenching",
        metrics={
            "fhp_angle": MetricConfig(0.35, MetricSource.BODY, threshold=15, normalize=cva_curve),
            "shoulder_height": MetricConfig(0.25, MetricSource.BODY, threshold=0.05, normalize=scaled(0.15)),
            "head_tilt": MetricConfig(0.10, MetricSource.FACE, threshold=5, normalize=scaled(15)),
            "jaw_shift": MetricConfig(0.10, MetricSource.FACE, threshold=0.02, normalize=scaled(0.08)),
            "eye_sym": MetricConfig(0.10, MetricSource.FACE, threshold=0.02, normalize=scaled(0.08)),
            "thoracic_proxy": MetricConfig(0.10, MetricSource.DERIVED, calculate=thoracic_proxy),
        },
        recommendations={
            Severity.NONE: [],
            Severity.MILD: [
                "Chin tucks: 3 sets of 10 reps daily",
                "Shoulder blade squeezes: 2 sets of 15 reps",
                "Neck stretches: Hold 30 seconds each side",
                "Take breaks from screen time every 30 minutes",
            ],
            Severity.MODERATE: [
                "All mild exercises plus:",
                "Wall angels: 3 sets of 12 reps",
                "Thoracic extension on foam roller: 2 minutes daily",
                "Consider ergonomic workspace assessment",
                "Practice proper head positioning during daily activities",
            ],
            Severity.SEVERE: [
                "All moderate exercises plus:",
                "Professional physical therapy assessment recommended",
                "Postural bracing may be beneficial",
                "Comprehensive ergonomic evaluation",
                "Consider chiropractic or osteopathic consultation",
            ],
        },
    ),
    PatternKey.LOWER_COMPRESSION: PatternConfig(
        key=PatternKey.LOWER_COMPRESSION,
        name="Lower Compression Pattern",
        description="Anterior pelvic tilt, knee issues, foot pronation",
        metrics={
            "pelvic_tilt": MetricConfig(0.30, MetricSource.BODY, threshold=10, normalize=pelvic_curve),
            "knee_angle": MetricConfig(0.25, MetricSource.BODY, threshold=5, normalize=deviation_from(180, 20)),
            "foot_arch_ratio": MetricConfig(
                0.25, MetricSource.BODY, threshold=0.05, normalize=deviation_from(0.30, 0.20)
            ),
            "pelvic_shift_proxy": MetricConfig(0.20, MetricSource.DERIVED, calculate=pelvic_shift_proxy),
        },
        recommendations={
            Severity.NONE: [],
            Severity.MILD: [
                "Hip flexor stretches: 3 sets of 30 seconds each side",
                "Glute bridges: 3 sets of 15 reps",
                "Foot arch strengthening exercises",
                "Calf stretches: 2 sets of 30 seconds each side",
            ],
            Severity.MODERATE: [
                "All mild exercises plus:",
                "Dead bugs: 3 sets of 10 reps",
                "Single-leg balance work: 2 minutes each side",
                "Consider orthotic assessment",
                "Strengthen core stabilizers",
            ],
            Severity.SEVERE: [
                "All moderate exercises plus:",
                "Professional biomechanical assessment recommended",
                "Gait analysis recommended",
                "Custom orthotics may be necessary",
                "Consider podiatry consultation",
            ],
        },
    ),
    PatternKey.THORACIC_COLLAPSE: PatternConfig(
        key=PatternKey.THORACIC_COLLAPSE,
        name="Thoracic Collapse Pattern",
        description="Upper back rounding, chest compression, shallow breathing",
        metrics={
            "fhp_angle": MetricConfig(0.50, MetricSource.BODY, threshold=20, normalize=cva_curve),
            "shoulder_height": MetricConfig(0.30, MetricSource.BODY, threshold=0.05, normalize=scaled(0.15)),
            "rib_cage_proxy": MetricConfig(0.20, MetricSource.DERIVED, calculate=rib_cage_proxy),
        },
        recommendations={
            Severity.NONE: [],
            Severity.MILD: [
                "Thoracic extensions: 3 sets of 10 reps",
                "Doorway chest stretches: 3 sets of 30 seconds",
                "Deep breathing exercises: 5 minutes daily",
                "Cat-cow stretches: 2 sets of 10 reps",
            ],
            Severity.MODERATE: [
                "All mild exercises plus:",
                "Foam roller thoracic mobilization: 3 minutes daily",
                "Scapular wall slides: 3 sets of 12 reps",
                "Breathing pattern assessment recommended",
                "Strengthen mid-back muscles",
            ],
            Severity.SEVERE: [
                "All moderate exercises plus:",
                "Manual therapy recommended",
                "Postural restoration therapy",
                "Respiratory function assessment",
                "Consider structural integration therapy",
            ],
        },
    ),
    PatternKey.LATERAL_ASYMMETRY: PatternConfig(
        key=PatternKey.LATERAL_ASYMMETRY,
        name="Lateral/Rotational Asymmetry Pattern",
        description="One-sided tension, uneven loading, rotational patterns",
        severity_thresholds=SeverityThresholds(mild=25, moderate=45, severe=65),
        metrics={
            "shoulder_height": MetricConfig(0.30, MetricSource.BODY, threshold=0.03, normalize=scaled(0.12)),
            "pelvic_tilt": MetricConfig(0.25, MetricSource.BODY, threshold=8, normalize=pelvic_curve),
            "head_tilt": MetricConfig(0.20, MetricSource.FACE, threshold=3, normalize=scaled(12)),
            "jaw_shift": MetricConfig(0.10, MetricSource.FACE, threshold=0.015, normalize=scaled(0.06)),
            "nostril_asym": MetricConfig(0.10, MetricSource.FACE, threshold=0.015, normalize=scaled(0.06)),
            "weight_dist_proxy": MetricConfig(0.05, MetricSource.DERIVED, calculate=weight_distribution_proxy),
        },
        recommendations={
            Severity.NONE: [],
            Severity.MILD: [
                "Unilateral stretching (focus on tight side)",
                "Balance exercises: Single-leg stands 2 min each side",
                "Mirror work to increase body awareness",
                "Avoid carrying bags on same shoulder",
            ],
            Severity.MODERATE: [
                "All mild exercises plus:",
                "Functional movement screening recommended",
                "Corrective exercises for dominant side",
                "Ergonomic assessment of daily activities",
                "Address sleeping position and mattress quality",
            ],
            Severity.SEVERE: [
                "All moderate exercises plus:",
                "Professional structural assessment recommended",
                "Possible scoliosis screening",
                "Neuromuscular re-education therapy",
                "Consider chiropractic or osteopathic evaluation",
            ],
        },
    ),
}


def get_pattern(key: Any) -> Optional[PatternConfig]:
    """Look up a pattern by key, id or display id."""
    try:
        return SOMATIC_PATTERNS[PatternKey.from_string(key)]
    except ValueError:
        return None
