"""
GLTF/GLB Loader

Loads GLTF and GLB assets into flat, world-space scenes of cameras, lights
and models.
"""

import logging
import struct
from dataclasses import dataclass, fields
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import pygltflib
from pyrr import Matrix44, Quaternion

from ..config.settings import CAPTURE_EXTRAS, CAPTURE_NAMES, LIGHTS_EXTENSION, VERTEX_COLOR
from ..core.camera import Camera
from ..core.light import light_from_gltf
from ..core.scene import Scene
from ..errors import IoError, ParseError
from .image_loader import ResourceResolver
from .material import MaterialResolver
from .model import Model
from .primitive_decoder import PrimitiveData, decode_primitive, normalize_rows

logger = logging.getLogger(__name__)

GLB_MAGIC = b"glTF"

# Raised by pygltflib / dataclasses_json on malformed documents
_PARSE_FAILURES = (ValueError, KeyError, TypeError, AttributeError, IndexError, struct.error)


@dataclass
class LoadOptions:
    """
    Optional features honoured by a load.

    Attributes:
        names: Capture glTF name strings
        extras: Capture glTF "extras" blobs
        vertex_color: Decode the COLOR_0 vertex attribute
    """

    names: bool = CAPTURE_NAMES
    extras: bool = CAPTURE_EXTRAS
    vertex_color: bool = VERTEX_COLOR

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LoadOptions":
        """Create options from a plain mapping; unknown keys are ignored."""
        data = data or {}
        known = {f.name for f in fields(cls)}
        return cls(**{k: bool(v) for k, v in data.items() if k in known})


class GltfLoader:
    """
    Loads GLTF/GLB assets and flattens every scene into world space.
    """

    def __init__(self, options: Optional[LoadOptions] = None):
        """
        Initialize loader.

        Args:
            options: Optional features; defaults come from config.settings
        """
        self.options = options or LoadOptions()

    def load(self, filepath: Union[str, Path]) -> List[Scene]:
        """
        Load a GLTF or GLB file.

        Args:
            filepath: Path to .gltf or .glb file

        Returns:
            One Scene per scene of the document, in document order
        """
        filepath = Path(filepath)
        logger.debug("Loading model: %s", filepath)

        if not filepath.is_file():
            raise IoError(f"No such file: {filepath}")

        try:
            data = filepath.read_bytes()
        except OSError as exc:
            raise IoError(f"Failed to read {filepath}: {exc}") from exc

        gltf = parse_document(data, str(filepath))
        return self._load_document(gltf, filepath.parent, str(filepath))

    def load_bytes(self, data: bytes, base_dir: Optional[Union[str, Path]] = None) -> List[Scene]:
        """
        Load an asset already in memory.

        Args:
            data: GLB container or glTF JSON text
            base_dir: Directory external URIs are relative to; without one,
                external URIs raise IoError

        Returns:
            One Scene per scene of the document, in document order
        """
        gltf = parse_document(data, "<bytes>")
        base = Path(base_dir) if base_dir is not None else None
        return self._load_document(gltf, base, "<bytes>")

    def _load_document(self, gltf: pygltflib.GLTF2, base_dir: Optional[Path], source: str) -> List[Scene]:
        resources = ResourceResolver(gltf, base_dir)
        materials = MaterialResolver(gltf, resources,
                                     capture_names=self.options.names,
                                     capture_extras=self.options.extras)
        lights = self._document_lights(gltf)

        scenes = []
        for gltf_scene in gltf.scenes or []:
            scene = Scene(
                name=gltf_scene.name if self.options.names else None,
                extras=dict(gltf_scene.extras or {}) if self.options.extras else None,
            )
            for node_idx in gltf_scene.nodes or []:
                self._process_node(gltf, node_idx, Matrix44.identity(), scene,
                                   resources, materials, lights)
            scenes.append(scene)

        logger.info("Loaded %s: %d scene(s), %d model(s), %d camera(s), %d light(s)",
                    source, len(scenes),
                    sum(len(s.models) for s in scenes),
                    sum(len(s.cameras) for s in scenes),
                    sum(len(s.lights) for s in scenes))
        return scenes

    def _document_lights(self, gltf: pygltflib.GLTF2) -> List[Dict[str, Any]]:
        extension = (gltf.extensions or {}).get(LIGHTS_EXTENSION) or {}
        return list(extension.get("lights") or [])

    def _process_node(self, gltf: pygltflib.GLTF2, node_idx: int, parent_transform: Matrix44,
                      scene: Scene, resources: ResourceResolver, materials: MaterialResolver,
                      lights: List[Dict[str, Any]]):
        """
        Recursively flatten a node and its children (depth-first, post-order).

        Args:
            gltf: GLTF data
            node_idx: Index of current node
            parent_transform: World transform of the parent node
            scene: Scene being filled
            resources: Buffer/image resolver of the current load
            materials: Material resolver of the current load
            lights: Document-level KHR_lights_punctual definitions
        """
        if gltf.nodes is None or not 0 <= node_idx < len(gltf.nodes):
            raise ParseError(f"Invalid node index: {node_idx}")
        node = gltf.nodes[node_idx]

        local_transform = self._get_node_transform(node)
        world_transform = Matrix44(np.asarray(local_transform) @ np.asarray(parent_transform))

        # Children are flattened before the node's own payload
        for child_idx in node.children or []:
            self._process_node(gltf, child_idx, world_transform, scene,
                               resources, materials, lights)

        if node.camera is not None:
            if gltf.cameras is None or not 0 <= node.camera < len(gltf.cameras):
                raise ParseError(f"Invalid camera index: {node.camera}")
            scene.cameras.append(Camera.from_gltf(gltf.cameras[node.camera], world_transform,
                                                  capture_names=self.options.names,
                                                  capture_extras=self.options.extras))

        node_light = (node.extensions or {}).get(LIGHTS_EXTENSION)
        if node_light is not None:
            light_idx = node_light.get("light")
            if light_idx is None or not 0 <= light_idx < len(lights):
                raise ParseError(f"Invalid light index: {light_idx}")
            scene.lights.append(light_from_gltf(lights[light_idx], world_transform,
                                                capture_names=self.options.names,
                                                capture_extras=self.options.extras))

        if node.mesh is not None:
            if gltf.meshes is None or not 0 <= node.mesh < len(gltf.meshes):
                raise ParseError(f"Invalid mesh index: {node.mesh}")
            mesh = gltf.meshes[node.mesh]
            for prim_idx, primitive in enumerate(mesh.primitives):
                data = decode_primitive(gltf, resources, primitive,
                                        vertex_color=self.options.vertex_color)
                logger.debug("  Primitive %d of mesh %s: %d vertices, %d indices, %s",
                             prim_idx, mesh.name or node.mesh, data.vertex_count,
                             len(data.indices), data.mode.name)
                scene.models.append(self._create_model(data, materials.resolve(primitive.material),
                                                       world_transform, mesh, node))

    def _create_model(self, data: PrimitiveData, material, world_transform: Matrix44,
                      mesh: pygltflib.Mesh, node: pygltflib.Node) -> Model:
        positions, normals, tangents = bake_to_world(data.positions, data.normals,
                                                     data.tangents, world_transform)
        return Model(
            positions=positions,
            normals=normals,
            tangents=tangents,
            tex_coords=data.tex_coords,
            indices=data.indices,
            material=material,
            transform=world_transform,
            mode=data.mode,
            colors=data.colors,
            has_normals=bool(np.any(normals)),
            has_tangents=bool(np.any(tangents)),
            has_tex_coords=data.has_tex_coords,
            has_indices=data.has_indices,
            name=mesh.name if self.options.names else None,
            node_name=node.name if self.options.names else None,
            extras=dict(mesh.extras or {}) if self.options.extras else None,
        )

    def _get_node_transform(self, node: pygltflib.Node) -> Matrix44:
        """
        Extract transformation matrix from a GLTF node.

        Args:
            node: GLTF node

        Returns:
            4x4 local matrix in pyrr's row-vector layout
        """
        # glTF matrices are column-major, which reads row by row as pyrr's layout
        if node.matrix is not None and len(node.matrix) == 16:
            return Matrix44(np.array(node.matrix, dtype='f4').reshape(4, 4))

        # Build from TRS; row vectors apply scale, then rotation, then translation
        matrix = np.eye(4, dtype='f4')

        if node.scale is not None:
            matrix = matrix @ np.asarray(Matrix44.from_scale(node.scale[:3]))

        if node.rotation is not None:
            # pyrr builds the column-vector form of the rotation
            matrix = matrix @ np.asarray(Matrix44.from_quaternion(Quaternion(node.rotation))).T

        if node.translation is not None:
            matrix = matrix @ np.asarray(Matrix44.from_translation(node.translation[:3]))

        return Matrix44(matrix)


def parse_document(data: bytes, source: str) -> pygltflib.GLTF2:
    """
    Parse a GLB container or glTF JSON text.

    Args:
        data: Raw asset bytes
        source: Label used in error messages

    Returns:
        Parsed document
    """
    try:
        if data[:4] == GLB_MAGIC:
            gltf = pygltflib.GLTF2.load_binary_from_file_object(BytesIO(data))
        else:
            gltf = pygltflib.GLTF2.from_json(data.decode("utf-8-sig"))
    except (OSError,) + _PARSE_FAILURES as exc:
        # In-memory bytes: an OSError here is a truncated or malformed container
        raise ParseError(f"Failed to parse {source}: {exc}") from exc

    if gltf is None:
        raise ParseError(f"Not a glTF asset: {source}")
    return gltf

def bake_to_world(positions: np.ndarray, normals: np.ndarray, tangents: np.ndarray,
                  transform: Matrix44):
    """
    Transform local vertex attributes into world space.

    Args:
        positions: (N, 3) local positions
        normals: (N, 3) local normals
        tangents: (N, 4) local tangents with handedness in w
        transform: World matrix (row-vector layout)

    Returns:
        Tuple of (positions, normals, tangents) as float32 arrays
    """
    matrix = np.asarray(transform, dtype=np.float64)
    linear = matrix[:3, :3]

    homogeneous = np.hstack([positions.astype(np.float64), np.ones((len(positions), 1))]) @ matrix
    w = homogeneous[:, 3:4]
    w = np.where(np.abs(w) > 1e-12, w, 1.0)
    world_positions = homogeneous[:, :3] / w

    det = np.linalg.det(linear)
    if abs(det) > 1e-12:
        normal_matrix = np.linalg.inv(linear).T
    else:
        # Singular transform (zero scale): no inverse to take
        normal_matrix = linear
    world_normals = normalize_rows(normals.astype(np.float64) @ normal_matrix)

    world_tangents = np.zeros_like(tangents, dtype=np.float64)
    world_tangents[:, :3] = normalize_rows(tangents[:, :3].astype(np.float64) @ linear)
    world_tangents[:, 3] = tangents[:, 3] * (-1.0 if det < 0 else 1.0)
    # Tangents that vanished carry no handedness either
    world_tangents[~np.any(world_tangents[:, :3], axis=1), 3] = 0.0

    return (world_positions.astype(np.float32),
            world_normals.astype(np.float32),
            world_tangents.astype(np.float32))


def load(filepath: Union[str, Path], options: Optional[LoadOptions] = None, **flags) -> List[Scene]:
    """
    Load a GLTF/GLB file.

    Args:
        filepath: Path to .gltf or .glb file
        options: Load options; individual ``names``/``extras``/``vertex_color``
            keyword flags override them

    Returns:
        List of scenes in document order
    """
    return GltfLoader(_merge_options(options, flags)).load(filepath)


def load_bytes(data: bytes, base_dir: Optional[Union[str, Path]] = None,
               options: Optional[LoadOptions] = None, **flags) -> List[Scene]:
    """Load a GLB container or glTF JSON held in memory."""
    return GltfLoader(_merge_options(options, flags)).load_bytes(data, base_dir)


def _merge_options(options: Optional[LoadOptions], flags: Dict[str, Any]) -> LoadOptions:
    options = options or LoadOptions()
    if not flags:
        return options
    known = {f.name for f in fields(LoadOptions)}
    unknown = set(flags) - known
    if unknown:
        raise TypeError(f"Unknown load option(s): {', '.join(sorted(unknown))}")
    merged = {f.name: getattr(options, f.name) for f in fields(LoadOptions)}
    merged.update({k: bool(v) for k, v in flags.items()})
    return LoadOptions(**merged)
