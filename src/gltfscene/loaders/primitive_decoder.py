"""
Primitive Decoder

Reads a glTF mesh primitive's accessors into vertex/index arrays and
computes normals and tangents the source omits.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pygltflib

from ..config.settings import GEOMETRY_EPSILON
from ..errors import MissingAttributeError, ParseError
from .image_loader import ResourceResolver
from .model import Mode, triangle_indices

logger = logging.getLogger(__name__)

# componentType -> little-endian numpy dtype
COMPONENT_DTYPES = {
    5120: np.dtype('<i1'),  # BYTE
    5121: np.dtype('<u1'),  # UNSIGNED_BYTE
    5122: np.dtype('<i2'),  # SHORT
    5123: np.dtype('<u2'),  # UNSIGNED_SHORT
    5125: np.dtype('<u4'),  # UNSIGNED_INT
    5126: np.dtype('<f4'),  # FLOAT
}

COMPONENT_COUNTS = {
    'SCALAR': 1,
    'VEC2': 2,
    'VEC3': 3,
    'VEC4': 4,
    'MAT2': 4,
    'MAT3': 9,
    'MAT4': 16,
}


@dataclass(eq=False)
class PrimitiveData:
    """Local-space vertex data of one primitive, after synthesis."""

    positions: np.ndarray
    normals: np.ndarray
    tangents: np.ndarray
    tex_coords: np.ndarray
    indices: np.ndarray
    mode: Mode
    colors: Optional[np.ndarray] = None
    has_normals: bool = False
    has_tangents: bool = False
    has_tex_coords: bool = False
    has_indices: bool = False

    @property
    def vertex_count(self) -> int:
        return len(self.positions)


def read_accessor(gltf: pygltflib.GLTF2, resources: ResourceResolver, accessor_idx: int) -> np.ndarray:
    """
    Get the data of an accessor.

    Honors byte offsets, byte stride, the normalized flag and sparse storage.

    Args:
        gltf: GLTF data
        resources: Buffer resolver of the current load
        accessor_idx: Accessor index

    Returns:
        Array of shape (count, components); float32 when normalized or float,
        the raw integer type otherwise
    """
    accessors = gltf.accessors or []
    if accessor_idx is None or not 0 <= accessor_idx < len(accessors):
        raise ParseError(f"Invalid accessor index: {accessor_idx}")
    accessor = accessors[accessor_idx]

    if accessor.componentType not in COMPONENT_DTYPES:
        raise ParseError(f"Unsupported accessor component type: {accessor.componentType}")
    if accessor.type not in COMPONENT_COUNTS:
        raise ParseError(f"Unsupported accessor type: {accessor.type}")

    dtype = COMPONENT_DTYPES[accessor.componentType]
    component_count = COMPONENT_COUNTS[accessor.type]
    count = accessor.count

    if accessor.bufferView is not None:
        view_data = resources.buffer_view_data(accessor.bufferView)
        view = gltf.bufferViews[accessor.bufferView]
        array = _read_elements(view_data, accessor.byteOffset or 0, view.byteStride,
                               dtype, component_count, count)
    else:
        # No buffer view: all zeros unless overridden by sparse values
        array = np.zeros((count, component_count), dtype=dtype)

    if accessor.sparse is not None and accessor.sparse.count:
        array = _apply_sparse(resources, accessor.sparse, array, dtype, component_count)

    if accessor.normalized:
        array = _normalize(array)

    return array


def _read_elements(data: bytes, offset: int, stride: Optional[int], dtype: np.dtype,
                   component_count: int, count: int) -> np.ndarray:
    element_size = dtype.itemsize * component_count
    stride = stride or element_size

    if count == 0:
        return np.zeros((0, component_count), dtype=dtype)

    end_offset = offset + stride * (count - 1) + element_size
    if end_offset > len(data):
        raise ParseError(f"Accessor reads past its buffer view ({end_offset} > {len(data)} bytes)")

    array = np.ndarray(
        shape=(count, component_count),
        dtype=dtype,
        buffer=data,
        offset=offset,
        strides=(stride, dtype.itemsize),
    )
    return array.copy()


def _apply_sparse(resources: ResourceResolver, sparse, array: np.ndarray, dtype: np.dtype,
                  component_count: int) -> np.ndarray:
    index_dtype = COMPONENT_DTYPES.get(sparse.indices.componentType)
    if index_dtype is None or index_dtype.kind != 'u':
        raise ParseError(f"Unsupported sparse index type: {sparse.indices.componentType}")

    index_data = resources.buffer_view_data(sparse.indices.bufferView)
    indices = _read_elements(index_data, sparse.indices.byteOffset or 0, None,
                             index_dtype, 1, sparse.count).ravel()

    value_data = resources.buffer_view_data(sparse.values.bufferView)
    values = _read_elements(value_data, sparse.values.byteOffset or 0, None,
                            dtype, component_count, sparse.count)

    if len(indices) and indices.max() >= len(array):
        raise ParseError("Sparse accessor index out of range")

    array = array.copy()
    array[indices.astype(np.int64)] = values
    return array


def _normalize(array: np.ndarray) -> np.ndarray:
    """Map normalized integer components to floats (glTF 2.0 section 3.11)."""
    if array.dtype.kind == 'f':
        return array
    info = np.iinfo(array.dtype)
    result = array.astype(np.float32) / float(info.max)
    if info.min < 0:
        result = np.maximum(result, -1.0)
    return result


def _read_attribute(gltf, resources, attributes, name: str, components: int) -> Optional[np.ndarray]:
    accessor_idx = getattr(attributes, name, None)
    if accessor_idx is None:
        return None
    data = read_accessor(gltf, resources, accessor_idx)
    if data.shape[1] != components:
        raise ParseError(f"{name} must have {components} components, got {data.shape[1]}")
    return data.astype(np.float32)


def decode_primitive(gltf: pygltflib.GLTF2, resources: ResourceResolver,
                     primitive: pygltflib.Primitive, vertex_color: bool = False) -> PrimitiveData:
    """
    Extract vertex data from a primitive.

    Args:
        gltf: GLTF data
        resources: Buffer resolver of the current load
        primitive: Mesh primitive
        vertex_color: Decode COLOR_0 as well

    Returns:
        PrimitiveData with local-space arrays; missing normals and tangents
        are synthesized over the complete primitive
    """
    attributes = primitive.attributes

    # Get positions (required)
    positions = _read_attribute(gltf, resources, attributes, 'POSITION', 3)
    if positions is None:
        raise MissingAttributeError("Mesh primitive has no POSITION attribute")
    vertex_count = len(positions)

    try:
        mode = Mode(primitive.mode if primitive.mode is not None else Mode.TRIANGLES)
    except ValueError as exc:
        raise ParseError(f"Unknown primitive mode: {primitive.mode}") from exc

    # Get indices (optional)
    if primitive.indices is not None:
        indices = read_accessor(gltf, resources, primitive.indices).ravel()
        if indices.dtype.kind != 'u':
            raise ParseError(f"Index accessor must be unsigned, got {indices.dtype}")
        indices = indices.astype(np.uint32)
        if len(indices) and int(indices.max()) >= vertex_count:
            raise ParseError("Index buffer references a vertex past the end of the primitive")
        has_indices = True
    else:
        indices = np.arange(vertex_count, dtype=np.uint32)
        has_indices = False

    normals = _read_attribute(gltf, resources, attributes, 'NORMAL', 3)
    tangents = _read_attribute(gltf, resources, attributes, 'TANGENT', 4)
    tex_coords = _read_attribute(gltf, resources, attributes, 'TEXCOORD_0', 2)

    colors = None
    if vertex_color:
        colors = _read_colors(gltf, resources, attributes, vertex_count)

    has_tex_coords = tex_coords is not None

    faces = triangle_indices(mode, indices)

    if normals is None:
        logger.debug("    Generating normals...")
        normals = generate_normals(positions, faces)

    if tex_coords is None:
        tex_coords = np.zeros((vertex_count, 2), dtype=np.float32)

    if tangents is None:
        if has_tex_coords:
            logger.debug("    Generating tangents for normal mapping...")
            tangents = generate_tangents(positions, normals, tex_coords, faces)
        else:
            # Zero tangent means "unavailable"
            tangents = np.zeros((vertex_count, 4), dtype=np.float32)

    return PrimitiveData(
        positions=positions,
        normals=normals,
        tangents=tangents,
        tex_coords=tex_coords,
        indices=indices,
        mode=mode,
        colors=colors,
        has_normals=bool(np.any(normals)),
        has_tangents=bool(np.any(tangents)),
        has_tex_coords=has_tex_coords,
        has_indices=has_indices,
    )


def _read_colors(gltf, resources, attributes, vertex_count: int) -> np.ndarray:
    accessor_idx = getattr(attributes, 'COLOR_0', None)
    if accessor_idx is None:
        return np.ones((vertex_count, 4), dtype=np.float32)

    colors = read_accessor(gltf, resources, accessor_idx)
    if colors.dtype.kind != 'f':
        # Integer colors are always normalized in glTF
        colors = _normalize(colors)
    colors = colors.astype(np.float32)

    if colors.shape[1] == 3:
        alpha = np.ones((len(colors), 1), dtype=np.float32)
        colors = np.hstack([colors, alpha])
    elif colors.shape[1] != 4:
        raise ParseError(f"COLOR_0 must be VEC3 or VEC4, got {colors.shape[1]} components")
    return colors


def normalize_rows(vectors: np.ndarray) -> np.ndarray:
    """Scale each row to unit length; rows shorter than the epsilon become zero."""
    lengths = np.linalg.norm(vectors, axis=1, keepdims=True)
    safe = np.where(lengths > GEOMETRY_EPSILON, lengths, 1.0)
    return np.where(lengths > GEOMETRY_EPSILON, vectors / safe, 0.0)


def generate_normals(positions: np.ndarray, faces: np.ndarray) -> np.ndarray:
    """
    Generate smooth normals by summing unit face normals into each vertex.

    Every triangle contributes its unit face normal once to each of its three
    vertices, so the result is weighted by face count, not by area.

    Args:
        positions: (N, 3) vertex positions
        faces: (T, 3) triangle vertex indices in primitive winding order

    Returns:
        (N, 3) unit normals; zero for vertices that only touch degenerate faces
    """
    accumulated = np.zeros_like(positions, dtype=np.float64)
    if len(faces):
        v0 = positions[faces[:, 0]].astype(np.float64)
        v1 = positions[faces[:, 1]].astype(np.float64)
        v2 = positions[faces[:, 2]].astype(np.float64)

        face_normals = normalize_rows(np.cross(v1 - v0, v2 - v0))
        for corner in range(3):
            np.add.at(accumulated, faces[:, corner], face_normals)

    return normalize_rows(accumulated).astype(np.float32)


def generate_tangents(positions: np.ndarray, normals: np.ndarray, tex_coords: np.ndarray,
                      faces: np.ndarray) -> np.ndarray:
    """
    Generate tangents using Lengyel's method.

    Reference: http://www.terathon.com/code/tangent.html

    Args:
        positions: (N, 3) vertex positions
        normals: (N, 3) unit vertex normals
        tex_coords: (N, 2) texture coordinates
        faces: (T, 3) triangle vertex indices

    Returns:
        (N, 4) tangents: unit xyz orthogonal to the normal, w = +1 or -1
    """
    vertex_count = len(positions)
    tan1 = np.zeros((vertex_count, 3), dtype=np.float64)
    tan2 = np.zeros((vertex_count, 3), dtype=np.float64)

    if len(faces):
        v0 = positions[faces[:, 0]].astype(np.float64)
        v1 = positions[faces[:, 1]].astype(np.float64)
        v2 = positions[faces[:, 2]].astype(np.float64)
        uv0 = tex_coords[faces[:, 0]].astype(np.float64)
        uv1 = tex_coords[faces[:, 1]].astype(np.float64)
        uv2 = tex_coords[faces[:, 2]].astype(np.float64)

        # Edge vectors and UV deltas
        edge1 = v1 - v0
        edge2 = v2 - v0
        duv1 = uv1 - uv0
        duv2 = uv2 - uv0

        det = duv1[:, 0] * duv2[:, 1] - duv1[:, 1] * duv2[:, 0]
        valid = np.abs(det) > GEOMETRY_EPSILON
        r = np.where(valid, 1.0 / np.where(valid, det, 1.0), 0.0)[:, None]

        sdir = (edge1 * duv2[:, 1:2] - edge2 * duv1[:, 1:2]) * r
        tdir = (edge2 * duv1[:, 0:1] - edge1 * duv2[:, 0:1]) * r

        for corner in range(3):
            np.add.at(tan1, faces[:, corner], sdir)
            np.add.at(tan2, faces[:, corner], tdir)

    n = normals.astype(np.float64)

    # Gram-Schmidt orthogonalize
    t = tan1 - n * np.sum(n * tan1, axis=1, keepdims=True)
    t = normalize_rows(t)

    # Fallback for vertices with no usable UV gradient: any axis perpendicular to the normal
    missing = np.linalg.norm(t, axis=1) == 0.0
    if np.any(missing):
        axis = np.where(np.abs(n[missing, 0:1]) < 0.9, [[1.0, 0.0, 0.0]], [[0.0, 1.0, 0.0]])
        fallback = axis - n[missing] * np.sum(n[missing] * axis, axis=1, keepdims=True)
        t[missing] = normalize_rows(fallback)

    # Handedness: which side of the normal/tangent plane the bitangent lies on
    handedness = np.where(np.sum(np.cross(n, t) * tan2, axis=1) < 0.0, -1.0, 1.0)

    return np.hstack([t, handedness[:, None]]).astype(np.float32)
