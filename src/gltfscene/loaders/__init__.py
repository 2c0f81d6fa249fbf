"""Loader utilities for glTF documents, buffers, materials and meshes."""

from .image_loader import ImageData, ResourceResolver
from .material import Material, MaterialResolver, TextureSlot
from .model import Mode, Model, Vertex
from .gltf_loader import GltfLoader, LoadOptions, load, load_bytes

__all__ = [
    'ImageData',
    'ResourceResolver',
    'Material',
    'MaterialResolver',
    'TextureSlot',
    'Mode',
    'Model',
    'Vertex',
    'GltfLoader',
    'LoadOptions',
    'load',
    'load_bytes',
]
