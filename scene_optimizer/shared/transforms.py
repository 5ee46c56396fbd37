"""4x4 affine transform helpers.

Matrices are ``numpy`` float64 arrays in column-vector convention: a point
``p`` is transformed as ``M @ [x, y, z, 1]``, translation lives in the last
column, and ``parent @ child`` gives the child's placement in parent space.
"""

from __future__ import annotations

from typing import Iterable, Tuple

import numpy as np

from .constants import IDENTITY_EPSILON, SCALE_PRESERVE_TOLERANCE, TRANSFORM_COMPONENT_TOLERANCE


def identity() -> np.ndarray:
    return np.eye(4, dtype=np.float64)


def translation(x: float, y: float, z: float) -> np.ndarray:
    m = identity()
    m[:3, 3] = (x, y, z)
    return m


def scaling(x: float, y: float | None = None, z: float | None = None) -> np.ndarray:
    y = x if y is None else y
    z = x if z is None else z
    return np.diag([x, y, z, 1.0]).astype(np.float64)


def rotation_z(radians: float) -> np.ndarray:
    c, s = np.cos(radians), np.sin(radians)
    m = identity()
    m[0, 0], m[0, 1] = c, -s
    m[1, 0], m[1, 1] = s, c
    return m


def compose(*matrices: np.ndarray) -> np.ndarray:
    """Left-to-right product, outermost transform first."""
    out = identity()
    for m in matrices:
        out = out @ m
    return out


def decompose_scale(m: np.ndarray) -> np.ndarray:
    """Per-axis scale as the lengths of the basis columns."""
    return np.linalg.norm(m[:3, :3], axis=0)


def is_near_identity(m: np.ndarray, eps: float = IDENTITY_EPSILON) -> bool:
    return bool(np.all(np.abs(m - np.eye(4)) <= eps))


def is_identity(m: np.ndarray) -> bool:
    return bool(np.array_equal(m, np.eye(4)))


def has_non_uniform_scale(m: np.ndarray, eps: float = IDENTITY_EPSILON) -> bool:
    s = decompose_scale(m)
    return bool(np.ptp(s) > eps)


def has_rotation(m: np.ndarray, eps: float = IDENTITY_EPSILON) -> bool:
    block = m[:3, :3]
    off_diagonal = block - np.diag(np.diag(block))
    return bool(np.any(np.abs(off_diagonal) > eps))


def transform_similarity(a: np.ndarray, b: np.ndarray,
                         tol: float = TRANSFORM_COMPONENT_TOLERANCE) -> float:
    """Binary similarity: 1.0 when scale, rotation and translation all match.

    Scale is compared on the diagonal of the linear block, rotation on its
    off-diagonal terms and position on the translation column, each
    component-wise within *tol*.
    """
    block_a, block_b = a[:3, :3], b[:3, :3]
    scale_ok = np.all(np.abs(np.diag(block_a) - np.diag(block_b)) <= tol)
    rot_a = block_a - np.diag(np.diag(block_a))
    rot_b = block_b - np.diag(np.diag(block_b))
    rot_ok = np.all(np.abs(rot_a - rot_b) <= tol)
    pos_ok = np.all(np.abs(a[:3, 3] - b[:3, 3]) <= tol)
    return 1.0 if (scale_ok and rot_ok and pos_ok) else 0.0


def preserves_scale(parent: np.ndarray, child: np.ndarray,
                    tol: float = SCALE_PRESERVE_TOLERANCE) -> bool:
    """True when ``parent @ child`` keeps the product of the decomposed scales."""
    combined = decompose_scale(parent @ child)
    expected = decompose_scale(parent) * decompose_scale(child)
    return bool(np.all(np.abs(combined - expected) <= tol))


def transform_points(m: np.ndarray, points: np.ndarray) -> np.ndarray:
    if len(points) == 0:
        return np.zeros((0, 3))
    homo = np.hstack([points, np.ones((len(points), 1))])
    return (homo @ m.T)[:, :3]


def box_corners(center: Iterable[float], size: Iterable[float]) -> np.ndarray:
    c = np.asarray(center, dtype=np.float64)
    h = np.asarray(size, dtype=np.float64) / 2.0
    signs = np.array([[sx, sy, sz] for sx in (-1, 1) for sy in (-1, 1) for sz in (-1, 1)],
                     dtype=np.float64)
    return c + signs * h


def transform_box(m: np.ndarray, center, size) -> Tuple[np.ndarray, np.ndarray]:
    """Axis-aligned box enclosing the transformed corners, as (center, size)."""
    pts = transform_points(m, box_corners(center, size))
    lo, hi = pts.min(axis=0), pts.max(axis=0)
    return (lo + hi) / 2.0, hi - lo
