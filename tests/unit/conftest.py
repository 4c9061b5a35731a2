"""
Shared fixtures: synthetic face mesh and pose skeleton frames.
"""
import pytest
from typing import Dict, Optional, Tuple

FACE_POINT_COUNT = 478
POSE_POINT_COUNT = 33


def _point(x: float, y: float, z: Optional[float] = None, visibility: float = 0.9) -> Dict[str, float]:
    point = {"x": x, "y": y, "visibility": visibility}
    if z is not None:
        point["z"] = z
    return point


# Standing, facing the camera, torso centered
FRONT_POSE: Dict[int, Tuple[float, ...]] = {
    0: (0.50, 0.15),    # nose
    7: (0.53, 0.14),    # left ear
    11: (0.58, 0.30),   # left shoulder
    12: (0.42, 0.30),   # right shoulder
    23: (0.55, 0.55),   # left hip
    24: (0.45, 0.55),   # right hip
    25: (0.55, 0.72),   # left knee
    26: (0.45, 0.72),   # right knee
    27: (0.55, 0.90),   # left ankle
    28: (0.45, 0.90),   # right ankle
    29: (0.55, 0.93),   # left heel
    30: (0.45, 0.93),   # right heel
    31: (0.57, 0.95),   # left foot index
    32: (0.43, 0.95),   # right foot index
}

# Right side to the camera: left side nearer (smaller z)
SIDE_POSE: Dict[int, Tuple[float, ...]] = {
    0: (0.45, 0.15, -0.10),
    7: (0.50, 0.17, -0.15),
    11: (0.50, 0.35, -0.20),
    12: (0.52, 0.35, 0.00),
    23: (0.50, 0.55, -0.15),
    24: (0.52, 0.55, 0.00),
    25: (0.49, 0.72, -0.10),
    26: (0.51, 0.72, 0.00),
    27: (0.50, 0.90, -0.10),
    28: (0.52, 0.90, 0.00),
    29: (0.52, 0.93, -0.10),
    30: (0.54, 0.93, 0.00),
    31: (0.44, 0.95, -0.10),
    32: (0.46, 0.95, 0.00),
}

FACE_POINTS: Dict[int, Tuple[float, float]] = {
    1: (0.50, 0.35),     # nose tip
    6: (0.50, 0.28),     # nose bridge
    33: (0.40, 0.25),    # left eye outer
    263: (0.60, 0.27),   # right eye outer
    152: (0.51, 0.55),   # chin
    98: (0.47, 0.37),    # left nostril
    327: (0.53, 0.37),   # right nostril
    468: (0.42, 0.25),   # left iris
    473: (0.58, 0.25),   # right iris
}


def _build_pose(base, overrides, visibility):
    frame = [_point(0.5, 0.5) for _ in range(POSE_POINT_COUNT)]
    for index, coords in {**base, **(overrides or {})}.items():
        frame[index] = _point(*coords, visibility=visibility.get(index, 0.9))
    return frame


@pytest.fixture
def front_pose():
    """Factory for a front-facing 33-point pose frame."""
    def make(overrides: Optional[Dict[int, Tuple[float, ...]]] = None, visibility: Optional[Dict[int, float]] = None):
        return _build_pose(FRONT_POSE, overrides, visibility or {})
    return make


@pytest.fixture
def side_pose():
    """Factory for a right-side-profile 33-point pose frame."""
    def make(overrides: Optional[Dict[int, Tuple[float, ...]]] = None, visibility: Optional[Dict[int, float]] = None):
        return _build_pose(SIDE_POSE, overrides, visibility or {})
    return make


@pytest.fixture
def face_mesh():
    """Factory for a 478-point face mesh frame."""
    def make(overrides: Optional[Dict[int, Tuple[float, float]]] = None):
        frame = [_point(0.5, 0.5) for _ in range(FACE_POINT_COUNT)]
        for index, coords in {**FACE_POINTS, **(overrides or {})}.items():
            frame[index] = _point(*coords)
        return frame
    return make


@pytest.fixture
def balanced_answers():
    """Answers with a mixed profile across all four patterns."""
    return ["A", "C", "C", "C", "A", "A", "C", "A", "C", "A",
            "A", "A", "A", "A", "A", "C", "C", "D", "A", "A"]
