"""Scene-level objects: cameras, lights and scenes"""
from .camera import Camera, OrthographicProjection, PerspectiveProjection, Projection
from .light import DirectionalLight, Light, PointLight, SpotLight, light_from_gltf
from .scene import Scene

__all__ = [
    "Camera",
    "PerspectiveProjection",
    "OrthographicProjection",
    "Projection",
    "Light",
    "DirectionalLight",
    "PointLight",
    "SpotLight",
    "light_from_gltf",
    "Scene",
]
