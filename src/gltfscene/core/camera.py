"""
Camera Module

glTF cameras placed in world space, with perspective or orthographic projection.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import numpy as np
import pygltflib
from pyrr import Matrix44, Vector3, vector

from ..errors import ParseError


@dataclass(frozen=True)
class PerspectiveProjection:
    """
    Perspective projection parameters.

    Attributes:
        yfov: Vertical field of view in radians
        znear: Near clipping plane distance
        zfar: Far clipping plane distance (``math.inf`` for an infinite projection)
        aspect_ratio: Width / height, None when the viewport decides
    """

    yfov: float
    znear: float
    zfar: float = math.inf
    aspect_ratio: Optional[float] = None


@dataclass(frozen=True)
class OrthographicProjection:
    """
    Orthographic projection parameters.

    Attributes:
        xmag: Horizontal half-extent of the view volume
        ymag: Vertical half-extent of the view volume
        znear: Near clipping plane distance
        zfar: Far clipping plane distance
    """

    xmag: float
    ymag: float
    znear: float
    zfar: float


Projection = Union[PerspectiveProjection, OrthographicProjection]


@dataclass(eq=False)
class Camera:
    """
    Camera instantiated by a scene node.

    The transform is the node's world matrix (camera to world) in pyrr's
    row-vector layout: rows 0-2 hold the right/up/backward axes, row 3 the
    position. glTF cameras look down their local -Z axis.
    """

    projection: Projection
    transform: Matrix44 = field(default_factory=Matrix44.identity)
    name: Optional[str] = None
    extras: Optional[Dict[str, Any]] = None

    @classmethod
    def from_gltf(cls, gltf_camera: pygltflib.Camera, transform: Matrix44,
                  capture_names: bool = False, capture_extras: bool = False) -> "Camera":
        """
        Build a camera from its glTF definition.

        Args:
            gltf_camera: glTF camera object
            transform: World transform of the node carrying the camera
            capture_names: Keep the camera name
            capture_extras: Keep the camera extras

        Returns:
            Camera in world space
        """
        if gltf_camera.type == "orthographic" and gltf_camera.orthographic is not None:
            ortho = gltf_camera.orthographic
            projection = OrthographicProjection(
                xmag=float(ortho.xmag),
                ymag=float(ortho.ymag),
                znear=float(ortho.znear),
                zfar=float(ortho.zfar),
            )
        elif gltf_camera.perspective is not None:
            pers = gltf_camera.perspective
            projection = PerspectiveProjection(
                yfov=float(pers.yfov),
                znear=float(pers.znear),
                zfar=float(pers.zfar) if pers.zfar is not None else math.inf,
                aspect_ratio=float(pers.aspectRatio) if pers.aspectRatio is not None else None,
            )
        else:
            raise ParseError(f"Camera has no projection parameters (type={gltf_camera.type!r})")

        return cls(
            projection=projection,
            transform=Matrix44(transform),
            name=gltf_camera.name if capture_names else None,
            extras=dict(gltf_camera.extras or {}) if capture_extras else None,
        )

    @property
    def position(self) -> Vector3:
        """Position of the camera."""
        return Vector3(np.asarray(self.transform)[3, :3])

    @property
    def right(self) -> Vector3:
        """Right vector of the camera."""
        return Vector3(vector.normalise(np.array(self.transform[0, :3])))

    @property
    def up(self) -> Vector3:
        """Up vector of the camera."""
        return Vector3(vector.normalise(np.array(self.transform[1, :3])))

    @property
    def forward(self) -> Vector3:
        """Local +Z axis (the camera looks the opposite way)."""
        return Vector3(vector.normalise(np.array(self.transform[2, :3])))

    def apply_transform_vector(self, direction) -> Vector3:
        """
        Rotate/scale a direction from camera space into world space.

        Args:
            direction: 3-component vector in camera space

        Returns:
            World-space vector (translation ignored)
        """
        return Vector3(np.asarray(direction, dtype='f4') @ np.asarray(self.transform)[:3, :3])

    def get_projection_matrix(self, aspect_ratio: Optional[float] = None) -> Matrix44:
        """
        Get the projection matrix (glTF 2.0 Appendix "Projection Matrices").

        Args:
            aspect_ratio: Viewport aspect ratio; falls back to the camera's own
                value, then 1.0

        Returns:
            4x4 matrix in pyrr's row-vector layout
        """
        proj = self.projection
        m = np.zeros((4, 4), dtype='f4')

        if isinstance(proj, OrthographicProjection):
            n, f = proj.znear, proj.zfar
            m[0, 0] = 1.0 / proj.xmag
            m[1, 1] = 1.0 / proj.ymag
            m[2, 2] = 2.0 / (n - f)
            m[2, 3] = (f + n) / (n - f)
            m[3, 3] = 1.0
            return Matrix44(m.T)

        aspect = aspect_ratio or proj.aspect_ratio or 1.0
        tan_half = math.tan(0.5 * proj.yfov)
        n, f = proj.znear, proj.zfar
        m[0, 0] = 1.0 / (aspect * tan_half)
        m[1, 1] = 1.0 / tan_half
        m[3, 2] = -1.0
        if math.isinf(f):
            m[2, 2] = -1.0
            m[2, 3] = -2.0 * n
        else:
            m[2, 2] = (f + n) / (n - f)
            m[2, 3] = 2.0 * f * n / (n - f)
        return Matrix44(m.T)
