"""
#WHERE
    Used by graph.py, every analyzer, every optimization pass, the pipeline,
    the batch coordinator and the tests.

#WHAT
    Value types of a scene: bounds, textures, tagged material properties,
    materials, meshes and nodes. Meshes, materials and textures are treated as
    immutable once registered; passes build replacements instead of editing.

#INPUT
    numpy arrays (vertices, indices, uvs ...), names, shader descriptors.

#OUTPUT
    Bounds, Texture, ScalarValue, VectorValue, TextureRef, Material, Mesh, Node.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple, Union

import numpy as np

from scene_optimizer.shared.constants import (
    DEFAULT_TEXTURE_BPP,
    INDEX_BYTES,
    NORMAL_BYTES,
    TANGENT_BYTES,
    TEXTURE_FORMAT_BPP,
    UV_BYTES,
    VERTEX_BYTES,
)
from scene_optimizer.shared.errors import InvariantViolationError
from scene_optimizer.shared.transforms import identity


# ── Bounds ───────────────────────────────────────────────────────────────

@dataclass(slots=True)
class Bounds:
    center: np.ndarray = field(default_factory=lambda: np.zeros(3))
    size: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        self.center = np.asarray(self.center, dtype=np.float64).reshape(3)
        self.size = np.asarray(self.size, dtype=np.float64).reshape(3)

    @classmethod
    def from_points(cls, points: np.ndarray) -> "Bounds":
        if len(points) == 0:
            return cls()
        lo, hi = points.min(axis=0), points.max(axis=0)
        return cls((lo + hi) / 2.0, hi - lo)

    @property
    def min(self) -> np.ndarray:
        return self.center - self.size / 2.0

    @property
    def max(self) -> np.ndarray:
        return self.center + self.size / 2.0

    @property
    def surface_area(self) -> float:
        sx, sy, sz = self.size
        return float(2.0 * (sx * sy + sy * sz + sz * sx))

    def union(self, other: "Bounds") -> "Bounds":
        lo = np.minimum(self.min, other.min)
        hi = np.maximum(self.max, other.max)
        return Bounds((lo + hi) / 2.0, hi - lo)

    def copy(self) -> "Bounds":
        return Bounds(self.center.copy(), self.size.copy())


# ── Textures ─────────────────────────────────────────────────────────────

@dataclass(slots=True, frozen=True)
class Texture:
    name: str
    width: int
    height: int
    format: str = "RGBA"

    @property
    def bytes_per_pixel(self) -> float:
        return TEXTURE_FORMAT_BPP.get(self.format.upper(), DEFAULT_TEXTURE_BPP)

    @property
    def byte_size(self) -> int:
        return int(self.width * self.height * self.bytes_per_pixel)

    @property
    def max_side(self) -> int:
        return max(self.width, self.height)


# ── Material properties (tagged union) ───────────────────────────────────

@dataclass(slots=True, frozen=True)
class ScalarValue:
    value: float


@dataclass(slots=True, frozen=True)
class VectorValue:
    values: Tuple[float, ...]


@dataclass(slots=True, frozen=True)
class TextureRef:
    texture: str


PropertyValue = Union[ScalarValue, VectorValue, TextureRef]


@dataclass(slots=True)
class Material:
    name: str
    shader: str = "Standard"
    properties: Dict[str, PropertyValue] = field(default_factory=dict)
    keywords: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def texture_properties(self) -> Dict[str, str]:
        """Property name -> referenced texture name."""
        return {k: v.texture for k, v in self.properties.items() if isinstance(v, TextureRef)}

    @property
    def value_properties(self) -> Dict[str, PropertyValue]:
        return {k: v for k, v in self.properties.items() if not isinstance(v, TextureRef)}

    def texture_names(self) -> List[str]:
        return list(dict.fromkeys(self.texture_properties.values()))


# ── Meshes ───────────────────────────────────────────────────────────────

def _as_rows(arr, width: int, dtype=np.float64) -> np.ndarray:
    if arr is None:
        return np.zeros((0, width), dtype=dtype)
    out = np.asarray(arr, dtype=dtype)
    if out.size == 0:
        return np.zeros((0, width), dtype=dtype)
    return out.reshape(-1, width)


@dataclass(slots=True)
class Mesh:
    """Indexed triangle mesh.

    ``uvs``, ``normals`` and ``tangents`` are either empty or carry one row per
    vertex. ``bounds`` defaults to the box around the vertices.
    """

    name: str
    vertices: np.ndarray
    indices: np.ndarray
    uvs: Optional[np.ndarray] = None
    normals: Optional[np.ndarray] = None
    tangents: Optional[np.ndarray] = None
    bounds: Optional[Bounds] = None

    def __post_init__(self) -> None:
        self.vertices = _as_rows(self.vertices, 3)
        self.indices = np.asarray(self.indices, dtype=np.int64).reshape(-1)
        self.uvs = _as_rows(self.uvs, 2)
        self.normals = _as_rows(self.normals, 3)
        self.tangents = _as_rows(self.tangents, 4)
        if self.bounds is None:
            self.bounds = Bounds.from_points(self.vertices)

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def polygon_count(self) -> int:
        return len(self.indices) // 3

    @property
    def triangles(self) -> np.ndarray:
        return self.indices[: self.polygon_count * 3].reshape(-1, 3)

    @property
    def has_uvs(self) -> bool:
        return len(self.uvs) > 0

    @property
    def memory_bytes(self) -> int:
        return (
            len(self.vertices) * VERTEX_BYTES
            + len(self.uvs) * UV_BYTES
            + len(self.normals) * NORMAL_BYTES
            + len(self.tangents) * TANGENT_BYTES
            + len(self.indices) * INDEX_BYTES
        )

    def validate(self) -> None:
        if len(self.indices) % 3 != 0:
            raise InvariantViolationError(
                f"mesh {self.name!r}: index count {len(self.indices)} is not a multiple of 3"
            )
        n = len(self.vertices)
        if len(self.indices) and (self.indices.min() < 0 or self.indices.max() >= n):
            raise InvariantViolationError(f"mesh {self.name!r}: index out of range for {n} vertices")
        for label, attr in (("uvs", self.uvs), ("normals", self.normals), ("tangents", self.tangents)):
            if len(attr) not in (0, n):
                raise InvariantViolationError(
                    f"mesh {self.name!r}: {label} has {len(attr)} rows, expected 0 or {n}"
                )


# ── Nodes ────────────────────────────────────────────────────────────────

@dataclass(slots=True)
class Node:
    name: str
    transform: np.ndarray = field(default_factory=identity)
    mesh: Optional[str] = None
    material: Optional[str] = None
    children: List[int] = field(default_factory=list)
    parent: Optional[int] = None
    is_instance: bool = False
    prototype: Optional[str] = None
    bounds: Optional[Bounds] = None

    def __post_init__(self) -> None:
        self.transform = np.asarray(self.transform, dtype=np.float64).reshape(4, 4)

    @property
    def is_leaf(self) -> bool:
        return not self.children

    @property
    def is_empty(self) -> bool:
        return self.mesh is None and self.material is None

    @property
    def node_type(self) -> str:
        if self.mesh is not None:
            return "Mesh"
        if self.material is not None:
            return "Material"
        return "Transform"

    def clone(self) -> "Node":
        return Node(
            name=self.name,
            transform=self.transform.copy(),
            mesh=self.mesh,
            material=self.material,
            children=list(self.children),
            parent=self.parent,
            is_instance=self.is_instance,
            prototype=self.prototype,
            bounds=self.bounds.copy() if self.bounds is not None else None,
        )
