"""
Model

Represents one glTF mesh primitive flattened into world space, with its
vertices, indices and material.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from pyrr import Matrix44, Vector3, Vector4

from ..errors import BadModeError
from .material import Material


class Mode(IntEnum):
    """glTF primitive topology (values match the glTF ``mode`` field)."""

    POINTS = 0
    LINES = 1
    LINE_LOOP = 2
    LINE_STRIP = 3
    TRIANGLES = 4
    TRIANGLE_STRIP = 5
    TRIANGLE_FAN = 6

    @property
    def is_triangles(self) -> bool:
        return self in (Mode.TRIANGLES, Mode.TRIANGLE_STRIP, Mode.TRIANGLE_FAN)

    @property
    def is_lines(self) -> bool:
        return self in (Mode.LINES, Mode.LINE_LOOP, Mode.LINE_STRIP)


@dataclass(eq=False)
class Vertex:
    """
    A single vertex.

    Attributes:
        position: World-space position
        normal: Unit normal (zero only for degenerate geometry)
        tangent: xyz tangent + w handedness (+1/-1); all zero when unavailable
        tex_coord: UV set 0
        color: RGBA vertex color, None unless vertex colors are enabled
    """

    position: Vector3 = field(default_factory=lambda: Vector3([0.0, 0.0, 0.0]))
    normal: Vector3 = field(default_factory=lambda: Vector3([0.0, 0.0, 0.0]))
    tangent: Vector4 = field(default_factory=lambda: Vector4([0.0, 0.0, 0.0, 0.0]))
    tex_coord: np.ndarray = field(default_factory=lambda: np.zeros(2, dtype='f4'))
    color: Optional[Vector4] = None


def triangle_indices(mode: Mode, indices: np.ndarray) -> np.ndarray:
    """
    Decompose an index list into triangles.

    Strips alternate winding and fans pivot around the first vertex, following
    the glTF 2.0 rules so every triangle keeps the primitive's winding.

    Args:
        mode: Primitive topology
        indices: Flat index list

    Returns:
        (T, 3) array of vertex indices; empty for point and line modes
    """
    indices = np.asarray(indices, dtype=np.int64)
    count = len(indices)

    if mode == Mode.TRIANGLES:
        usable = count - count % 3
        return indices[:usable].reshape(-1, 3)

    if mode == Mode.TRIANGLE_STRIP and count >= 3:
        i = np.arange(count - 2)
        odd = i % 2
        return np.stack([indices[i], indices[i + 1 + odd], indices[i + 2 - odd]], axis=1)

    if mode == Mode.TRIANGLE_FAN and count >= 3:
        i = np.arange(1, count - 1)
        return np.stack([indices[i], indices[i + 1], np.full_like(i, indices[0])], axis=1)

    return np.empty((0, 3), dtype=np.int64)


def line_indices(mode: Mode, indices: np.ndarray) -> np.ndarray:
    """Decompose an index list into (L, 2) line segments."""
    indices = np.asarray(indices, dtype=np.int64)
    count = len(indices)

    if mode == Mode.LINES:
        usable = count - count % 2
        return indices[:usable].reshape(-1, 2)

    if mode in (Mode.LINE_STRIP, Mode.LINE_LOOP) and count >= 2:
        segments = np.stack([indices[:-1], indices[1:]], axis=1)
        if mode == Mode.LINE_LOOP:
            segments = np.vstack([segments, [[indices[-1], indices[0]]]])
        return segments

    return np.empty((0, 2), dtype=np.int64)


@dataclass(eq=False)
class Model:
    """
    Geometry to be rendered with a single material.

    Vertex attributes are stored as parallel numpy arrays in world space;
    :meth:`vertices` builds independent :class:`Vertex` values from them.
    ``indices`` is always populated: when the source has no index buffer it
    is the identity sequence 0..vertex_count-1.
    """

    positions: np.ndarray
    normals: np.ndarray
    tangents: np.ndarray
    tex_coords: np.ndarray
    indices: np.ndarray
    material: Material
    transform: Matrix44
    mode: Mode = Mode.TRIANGLES
    colors: Optional[np.ndarray] = None
    has_normals: bool = False
    has_tangents: bool = False
    has_tex_coords: bool = False
    has_indices: bool = False
    name: Optional[str] = None
    node_name: Optional[str] = None
    extras: Optional[Dict[str, Any]] = None

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(triangle_indices(self.mode, self.indices))

    @property
    def has_transparency(self) -> bool:
        """True when the material is alpha blended (triangles may need sorting)."""
        return self.material.is_transparent

    def vertex(self, index: int) -> Vertex:
        """Build the Vertex at ``index``."""
        return Vertex(
            position=Vector3(self.positions[index]),
            normal=Vector3(self.normals[index]),
            tangent=Vector4(self.tangents[index]),
            tex_coord=self.tex_coords[index].copy(),
            color=Vector4(self.colors[index]) if self.colors is not None else None,
        )

    def vertices(self) -> List[Vertex]:
        """List of raw vertices; use :attr:`indices` to assemble primitives."""
        return [self.vertex(i) for i in range(self.vertex_count)]

    def triangles(self) -> List[Tuple[Vertex, Vertex, Vertex]]:
        """
        Triangles ready to be rendered.

        Raises:
            BadModeError: If the mode is not TRIANGLES, TRIANGLE_STRIP or TRIANGLE_FAN
        """
        if not self.mode.is_triangles:
            raise BadModeError(self.mode)
        return [tuple(self.vertex(i) for i in tri) for tri in triangle_indices(self.mode, self.indices)]

    def lines(self) -> List[Tuple[Vertex, Vertex]]:
        """
        Line segments ready to be rendered.

        Raises:
            BadModeError: If the mode is not LINES, LINE_LOOP or LINE_STRIP
        """
        if not self.mode.is_lines:
            raise BadModeError(self.mode)
        return [tuple(self.vertex(i) for i in seg) for seg in line_indices(self.mode, self.indices)]

    def points(self) -> List[Vertex]:
        """
        Points ready to be rendered.

        Raises:
            BadModeError: If the mode is not POINTS
        """
        if self.mode != Mode.POINTS:
            raise BadModeError(self.mode)
        return [self.vertex(int(i)) for i in self.indices]

    def __repr__(self):
        return (f"Model(name={self.name!r}, mode={self.mode.name}, "
                f"vertices={self.vertex_count}, indices={len(self.indices)})")
