"""
Material

PBR metallic-roughness material properties with decoded textures.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np
import pygltflib
from pyrr import Vector3, Vector4

from ..config.settings import (
    DEFAULT_ALPHA_CUTOFF,
    DEFAULT_ALPHA_MODE,
    DEFAULT_BASE_COLOR,
    DEFAULT_EMISSIVE,
    DEFAULT_METALLIC,
    DEFAULT_NORMAL_SCALE,
    DEFAULT_OCCLUSION_STRENGTH,
    DEFAULT_ROUGHNESS,
    SRGB_GAMMA,
)
from ..errors import ParseError
from .image_loader import ImageData, ResourceResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class TextureSlot:
    """
    A resolved texture reference.

    Attributes:
        image: Decoded RGBA pixels
        tex_coord: Index of the TEXCOORD_n set used to sample it
        scale: Normal scale or occlusion strength (1.0 for other slots)
    """

    image: ImageData
    tex_coord: int = 0
    scale: float = 1.0

    def sample(self, tex_coords) -> np.ndarray:
        """Texel under ``tex_coords`` as floats in 0-1."""
        return self.image.sample(tex_coords[0], tex_coords[1]).astype(np.float32) / 255.0


@dataclass(eq=False)
class Material:
    """
    Represents a PBR material with textures.

    Numeric fields always hold glTF default values when the source leaves them
    unset; texture slots are None when absent.

    The metallic-roughness texture is stored as-is. Sample it with
    :meth:`get_metallic` (blue channel) and :meth:`get_roughness` (green channel).
    """

    name: Optional[str] = None
    extras: Optional[Dict[str, Any]] = None

    base_color_factor: Vector4 = field(default_factory=lambda: Vector4(DEFAULT_BASE_COLOR))
    base_color_texture: Optional[TextureSlot] = None

    metallic_factor: float = DEFAULT_METALLIC
    roughness_factor: float = DEFAULT_ROUGHNESS
    metallic_roughness_texture: Optional[TextureSlot] = None

    normal_texture: Optional[TextureSlot] = None

    emissive_factor: Vector3 = field(default_factory=lambda: Vector3(DEFAULT_EMISSIVE))
    emissive_texture: Optional[TextureSlot] = None

    occlusion_texture: Optional[TextureSlot] = None

    alpha_mode: str = DEFAULT_ALPHA_MODE
    alpha_cutoff: float = DEFAULT_ALPHA_CUTOFF
    double_sided: bool = False

    @classmethod
    def default(cls) -> "Material":
        """Material used by primitives that reference none."""
        return cls()

    @property
    def normal_scale(self) -> float:
        return self.normal_texture.scale if self.normal_texture else DEFAULT_NORMAL_SCALE

    @property
    def occlusion_strength(self) -> float:
        return self.occlusion_texture.scale if self.occlusion_texture else DEFAULT_OCCLUSION_STRENGTH

    @property
    def is_transparent(self) -> bool:
        """Blended materials need back-to-front sorting by the consumer."""
        return self.alpha_mode == "BLEND"

    def has_base_color(self) -> bool:
        """Check if material has base color texture"""
        return self.base_color_texture is not None

    def has_normal_map(self) -> bool:
        """Check if material has normal map"""
        return self.normal_texture is not None

    def has_metallic_roughness(self) -> bool:
        """Check if material has metallic/roughness texture"""
        return self.metallic_roughness_texture is not None

    # ------------------------------------------------------------------
    # Sampling helpers
    # ------------------------------------------------------------------

    def get_base_color_alpha(self, tex_coords) -> Vector4:
        """
        Base color (linear RGB + alpha) at a texture coordinate.

        The texel is decoded from sRGB and multiplied by the base color factor.
        Without a texture the factor alone is returned.
        """
        result = np.array(self.base_color_factor, dtype=np.float32)
        if self.base_color_texture is not None:
            texel = self.base_color_texture.sample(tex_coords)
            texel[:3] = np.power(texel[:3], SRGB_GAMMA)
            result = result * texel
        return Vector4(result)

    def get_base_color(self, tex_coords) -> Vector3:
        return Vector3(np.asarray(self.get_base_color_alpha(tex_coords))[:3])

    def get_metallic(self, tex_coords) -> float:
        """Metalness: factor times the blue channel of the metallic-roughness texture."""
        if self.metallic_roughness_texture is None:
            return float(self.metallic_factor)
        return float(self.metallic_factor * self.metallic_roughness_texture.sample(tex_coords)[2])

    def get_roughness(self, tex_coords) -> float:
        """Roughness: factor times the green channel of the metallic-roughness texture."""
        if self.metallic_roughness_texture is None:
            return float(self.roughness_factor)
        return float(self.roughness_factor * self.metallic_roughness_texture.sample(tex_coords)[1])

    def get_normal(self, tex_coords) -> Optional[Vector3]:
        """
        Tangent-space normal from the normal map, or None without one.

        Follows the glTF normalTexture definition: only x and y are multiplied
        by the scale, z is kept as sampled. Scaling all three components would
        give different numbers.
        """
        if self.normal_texture is None:
            return None
        texel = self.normal_texture.sample(tex_coords)[:3]
        normal = texel * 2.0 - 1.0
        normal[:2] *= self.normal_texture.scale
        return Vector3(normal)

    def get_occlusion(self, tex_coords) -> Optional[float]:
        """
        Ambient occlusion from the red channel, or None without a map.

        Strength blends towards no occlusion as ``1 + strength * (r - 1)``, the
        glTF occlusionTexture formula, rather than scaling the texel by it.
        """
        if self.occlusion_texture is None:
            return None
        sample = self.occlusion_texture.sample(tex_coords)[0]
        return float(1.0 + self.occlusion_texture.scale * (sample - 1.0))

    def get_emissive(self, tex_coords) -> Vector3:
        """Emissive color: factor, modulated by the emissive texture if any."""
        result = np.array(self.emissive_factor, dtype=np.float32)
        if self.emissive_texture is not None:
            result = result * self.emissive_texture.sample(tex_coords)[:3]
        return Vector3(result)


class MaterialResolver:
    """
    Builds Material records from glTF material definitions.

    Materials are cached by index, so every primitive referencing the same
    glTF material receives the same Material value.
    """

    def __init__(self, gltf: pygltflib.GLTF2, resources: ResourceResolver,
                 capture_names: bool = False, capture_extras: bool = False):
        self.gltf = gltf
        self.resources = resources
        self.capture_names = capture_names
        self.capture_extras = capture_extras
        self._cache: Dict[Optional[int], Material] = {}

    def resolve(self, material_idx: Optional[int]) -> Material:
        """
        Get the material for a primitive.

        Args:
            material_idx: Primitive's material index (None for the default material)

        Returns:
            Populated Material
        """
        if material_idx in self._cache:
            return self._cache[material_idx]

        if material_idx is None:
            material = Material.default()
        else:
            materials = self.gltf.materials or []
            if not 0 <= material_idx < len(materials):
                raise ParseError(f"Invalid material index: {material_idx}")
            material = self._parse_material(materials[material_idx])
            logger.debug("  Material: %s", materials[material_idx].name or f"Material_{material_idx}")

        self._cache[material_idx] = material
        return material

    def _parse_material(self, gltf_mat: pygltflib.Material) -> Material:
        material = Material()

        if self.capture_names:
            material.name = gltf_mat.name
        if self.capture_extras:
            material.extras = dict(gltf_mat.extras or {})

        # PBR metallic roughness
        pbr = gltf_mat.pbrMetallicRoughness
        if pbr is not None:
            if pbr.baseColorFactor is not None:
                material.base_color_factor = Vector4(pbr.baseColorFactor)
            if pbr.metallicFactor is not None:
                material.metallic_factor = float(pbr.metallicFactor)
            if pbr.roughnessFactor is not None:
                material.roughness_factor = float(pbr.roughnessFactor)
            material.base_color_texture = self._load_slot(pbr.baseColorTexture)
            material.metallic_roughness_texture = self._load_slot(pbr.metallicRoughnessTexture)

        # Normal map
        normal_info = gltf_mat.normalTexture
        material.normal_texture = self._load_slot(
            normal_info, getattr(normal_info, "scale", None), DEFAULT_NORMAL_SCALE
        )

        # Occlusion
        occlusion_info = gltf_mat.occlusionTexture
        material.occlusion_texture = self._load_slot(
            occlusion_info, getattr(occlusion_info, "strength", None), DEFAULT_OCCLUSION_STRENGTH
        )

        # Emissive
        if gltf_mat.emissiveFactor is not None:
            material.emissive_factor = Vector3(gltf_mat.emissiveFactor)
        material.emissive_texture = self._load_slot(gltf_mat.emissiveTexture)

        # Alpha mode and cutoff pass through verbatim
        if gltf_mat.alphaMode:
            material.alpha_mode = gltf_mat.alphaMode
        if gltf_mat.alphaCutoff is not None:
            material.alpha_cutoff = float(gltf_mat.alphaCutoff)
        material.double_sided = bool(gltf_mat.doubleSided)

        return material

    def _load_slot(self, texture_info, factor: Optional[float] = None,
                   default_factor: float = 1.0) -> Optional[TextureSlot]:
        if texture_info is None or texture_info.index is None:
            return None
        return TextureSlot(
            image=self.resources.load_texture(texture_info.index),
            tex_coord=texture_info.texCoord or 0,
            scale=float(factor) if factor is not None else default_factor,
        )
