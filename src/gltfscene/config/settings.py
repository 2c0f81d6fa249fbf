"""
Loader Configuration Settings

All configuration constants for the glTF scene loader.
Modify these values to change loader defaults.
"""

import math

# ============================================================================
# Optional Features
# ============================================================================

CAPTURE_NAMES = False   # Keep glTF name strings on cameras, lights, models, materials
CAPTURE_EXTRAS = False  # Keep glTF "extras" blobs (free-form JSON)
VERTEX_COLOR = False    # Decode the COLOR_0 vertex attribute

# ============================================================================
# Images
# ============================================================================

# MIME type -> Pillow format name. Anything else is rejected.
SUPPORTED_IMAGE_FORMATS = {
    "image/png": "PNG",
    "image/jpeg": "JPEG",
}

IMAGE_PIXEL_MODE = "RGBA"  # Every decoded image is converted to 8-bit RGBA
SRGB_GAMMA = 2.2           # Approximate sRGB -> linear decode for base color texels

# ============================================================================
# Material Defaults (glTF 2.0 values)
# ============================================================================

DEFAULT_BASE_COLOR = (1.0, 1.0, 1.0, 1.0)
DEFAULT_METALLIC = 1.0
DEFAULT_ROUGHNESS = 1.0
DEFAULT_EMISSIVE = (0.0, 0.0, 0.0)
DEFAULT_NORMAL_SCALE = 1.0
DEFAULT_OCCLUSION_STRENGTH = 1.0
DEFAULT_ALPHA_MODE = "OPAQUE"  # "OPAQUE", "MASK" or "BLEND"
DEFAULT_ALPHA_CUTOFF = 0.5

# ============================================================================
# Light Defaults (KHR_lights_punctual)
# ============================================================================

LIGHTS_EXTENSION = "KHR_lights_punctual"
DEFAULT_LIGHT_COLOR = (1.0, 1.0, 1.0)
DEFAULT_LIGHT_INTENSITY = 1.0
DEFAULT_SPOT_INNER_CONE = 0.0
DEFAULT_SPOT_OUTER_CONE = math.pi / 4.0

# ============================================================================
# Geometry
# ============================================================================

GEOMETRY_EPSILON = 1e-8  # Vectors shorter than this are treated as zero
