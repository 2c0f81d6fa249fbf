"""
Light Module

Punctual lights (KHR_lights_punctual) placed in world space: directional,
point and spot.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np
from pyrr import Matrix44, Vector3, vector

from ..config.settings import (
    DEFAULT_LIGHT_COLOR,
    DEFAULT_LIGHT_INTENSITY,
    DEFAULT_SPOT_INNER_CONE,
    DEFAULT_SPOT_OUTER_CONE,
)
from ..errors import ParseError


def _vec3(value, fallback: Tuple[float, float, float]) -> Tuple[float, float, float]:
    """Utility to coerce JSON vectors into tuples."""

    if value is None:
        value = fallback
    if len(value) != 3:
        raise ParseError(f"Expected 3 components, got {value}")
    return tuple(float(v) for v in value)


def _direction(transform: Matrix44) -> Vector3:
    """Lights shine along their node's local -Z axis."""
    return Vector3(vector.normalise(-np.array(transform[2, :3], dtype='f4')))


def _position(transform: Matrix44) -> Vector3:
    return Vector3(np.asarray(transform)[3, :3])


@dataclass(eq=False)
class DirectionalLight:
    """
    Light infinitely far away, emitting along ``direction``.

    Intensity is in lux (lm/m2); there is no attenuation.
    """

    direction: Vector3
    color: Vector3 = field(default_factory=lambda: Vector3(DEFAULT_LIGHT_COLOR))
    intensity: float = DEFAULT_LIGHT_INTENSITY
    transform: Matrix44 = field(default_factory=Matrix44.identity)
    name: Optional[str] = None
    extras: Optional[Dict[str, Any]] = None


@dataclass(eq=False)
class PointLight:
    """
    Light emitting in all directions from ``position``.

    Intensity is in candela (lm/sr). ``range`` is None for an unbounded light.
    """

    position: Vector3
    color: Vector3 = field(default_factory=lambda: Vector3(DEFAULT_LIGHT_COLOR))
    intensity: float = DEFAULT_LIGHT_INTENSITY
    range: Optional[float] = None
    transform: Matrix44 = field(default_factory=Matrix44.identity)
    name: Optional[str] = None
    extras: Optional[Dict[str, Any]] = None


@dataclass(eq=False)
class SpotLight:
    """
    Light emitting a cone along ``direction`` from ``position``.

    Cone angles are in radians; full intensity inside ``inner_cone_angle``,
    falling off to zero at ``outer_cone_angle``.
    """

    position: Vector3
    direction: Vector3
    color: Vector3 = field(default_factory=lambda: Vector3(DEFAULT_LIGHT_COLOR))
    intensity: float = DEFAULT_LIGHT_INTENSITY
    range: Optional[float] = None
    inner_cone_angle: float = DEFAULT_SPOT_INNER_CONE
    outer_cone_angle: float = DEFAULT_SPOT_OUTER_CONE
    transform: Matrix44 = field(default_factory=Matrix44.identity)
    name: Optional[str] = None
    extras: Optional[Dict[str, Any]] = None

    def get_spot_cosines(self) -> Tuple[float, float]:
        """Return (cos inner, cos outer) for cone falloff."""
        return float(np.cos(self.inner_cone_angle)), float(np.cos(self.outer_cone_angle))


Light = Union[DirectionalLight, PointLight, SpotLight]


def light_from_gltf(definition: Dict[str, Any], transform: Matrix44,
                    capture_names: bool = False, capture_extras: bool = False) -> Light:
    """
    Create a light from a KHR_lights_punctual definition.

    Args:
        definition: Light entry of the document-level ``lights`` array
        transform: World transform of the node carrying the light
        capture_names: Keep the light name
        capture_extras: Keep the light extras

    Returns:
        DirectionalLight, PointLight or SpotLight
    """
    light_type = definition.get("type")
    transform = Matrix44(transform)

    common = dict(
        color=Vector3(_vec3(definition.get("color"), DEFAULT_LIGHT_COLOR)),
        intensity=float(definition.get("intensity", DEFAULT_LIGHT_INTENSITY)),
        transform=transform,
        name=definition.get("name") if capture_names else None,
        extras=dict(definition.get("extras") or {}) if capture_extras else None,
    )
    light_range = definition.get("range")
    light_range = float(light_range) if light_range is not None else None

    if light_type == "directional":
        return DirectionalLight(direction=_direction(transform), **common)

    if light_type == "point":
        return PointLight(position=_position(transform), range=light_range, **common)

    if light_type == "spot":
        spot = definition.get("spot") or {}
        return SpotLight(
            position=_position(transform),
            direction=_direction(transform),
            range=light_range,
            inner_cone_angle=float(spot.get("innerConeAngle", DEFAULT_SPOT_INNER_CONE)),
            outer_cone_angle=float(spot.get("outerConeAngle", DEFAULT_SPOT_OUTER_CONE)),
            **common,
        )

    raise ParseError(f"Unsupported light type: {light_type}")
