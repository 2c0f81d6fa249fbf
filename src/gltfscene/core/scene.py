"""
Scene

Flattened contents of one glTF scene.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .camera import Camera
from .light import Light

if TYPE_CHECKING:
    from ..loaders.model import Model


@dataclass(eq=False)
class Scene:
    """
    Cameras, lights and models of one glTF scene, in traversal order.

    Every entry is already in world space; nothing refers back to the
    source document.
    """

    cameras: List[Camera] = field(default_factory=list)
    lights: List[Light] = field(default_factory=list)
    models: List["Model"] = field(default_factory=list)
    name: Optional[str] = None
    extras: Optional[Dict[str, Any]] = None

    def get_object_count(self) -> int:
        """Total number of cameras, lights and models."""
        return len(self.cameras) + len(self.lights) + len(self.models)

    def __iter__(self):
        # Allows ``cameras, lights, models = scene``
        return iter((self.cameras, self.lights, self.models))

    def __repr__(self):
        return (f"Scene(name={self.name!r}, cameras={len(self.cameras)}, "
                f"lights={len(self.lights)}, models={len(self.models)})")
