"""
glTF Scene Loader

Loads glTF 2.0 assets (.gltf and .glb) into flat, world-space scenes of
cameras, lights and renderable models.
"""

# Errors
from .errors import (
    BadModeError,
    DecodeError,
    GltfLoadError,
    ImageDecodeError,
    IoError,
    MissingAttributeError,
    ParseError,
)

# Scene objects
from .core import (
    Camera,
    DirectionalLight,
    Light,
    OrthographicProjection,
    PerspectiveProjection,
    PointLight,
    Scene,
    SpotLight,
)

# Loaders
from .loaders import (
    GltfLoader,
    ImageData,
    LoadOptions,
    Material,
    Mode,
    Model,
    TextureSlot,
    Vertex,
    load,
    load_bytes,
)

__version__ = "0.1.0"
__all__ = [
    # Loading
    "GltfLoader",
    "LoadOptions",
    "load",
    "load_bytes",
    # Scene
    "Scene",
    "Camera",
    "PerspectiveProjection",
    "OrthographicProjection",
    "Light",
    "DirectionalLight",
    "PointLight",
    "SpotLight",
    "Model",
    "Mode",
    "Vertex",
    "Material",
    "TextureSlot",
    "ImageData",
    # Errors
    "GltfLoadError",
    "ParseError",
    "IoError",
    "DecodeError",
    "ImageDecodeError",
    "MissingAttributeError",
    "BadModeError",
]
