"""Shared fixtures: glTF assets assembled on the fly"""

import base64
import json
import struct
from io import BytesIO

import numpy as np
import pytest
from PIL import Image

FLOAT = 5126
UNSIGNED_BYTE = 5121
UNSIGNED_SHORT = 5123
UNSIGNED_INT = 5125
SHORT = 5122

DTYPES = {
    5120: '<i1',
    UNSIGNED_BYTE: '<u1',
    SHORT: '<i2',
    UNSIGNED_SHORT: '<u2',
    UNSIGNED_INT: '<u4',
    FLOAT: '<f4',
}

ACCESSOR_TYPES = {1: "SCALAR", 2: "VEC2", 3: "VEC3", 4: "VEC4"}

TRIANGLE_POSITIONS = [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]
TRIANGLE_UVS = [[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]]


def png_bytes(color=(255, 0, 0, 255), size=(2, 2), fmt="PNG"):
    """Encode a solid-color image"""
    mode = "RGB" if fmt == "JPEG" else "RGBA"
    img = Image.new(mode, size, color[:3] if mode == "RGB" else color)
    out = BytesIO()
    img.save(out, format=fmt)
    return out.getvalue()


def data_uri(data, mime="application/octet-stream"):
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


class GltfBuilder:
    """
    Minimal glTF document writer.

    Binary data is accumulated into a single buffer which is emitted as a
    data URI, an external .bin file or a GLB binary chunk.
    """

    def __init__(self):
        self.blob = bytearray()
        self.doc = {
            "asset": {"version": "2.0"},
            "buffers": [],
            "bufferViews": [],
            "accessors": [],
            "meshes": [],
            "nodes": [],
            "scenes": [],
        }

    def add_view(self, raw, stride=None):
        while len(self.blob) % 4:
            self.blob.append(0)
        view = {"buffer": 0, "byteOffset": len(self.blob), "byteLength": len(raw)}
        if stride:
            view["byteStride"] = stride
        self.blob.extend(raw)
        self.doc["bufferViews"].append(view)
        return len(self.doc["bufferViews"]) - 1

    def add_accessor(self, values, component_type=FLOAT, normalized=False):
        array = np.asarray(values, dtype=DTYPES[component_type])
        if array.ndim == 1:
            array = array.reshape(-1, 1)
        view = self.add_view(array.tobytes())
        accessor = {
            "bufferView": view,
            "componentType": component_type,
            "count": len(array),
            "type": ACCESSOR_TYPES[array.shape[1]],
        }
        if normalized:
            accessor["normalized"] = True
        self.doc["accessors"].append(accessor)
        return len(self.doc["accessors"]) - 1

    def add_primitive(self, positions, indices=None, index_type=UNSIGNED_SHORT, mode=None,
                      material=None, **attributes):
        """Build a primitive dict; extra attributes are given as NAME=accessor index"""
        primitive = {"attributes": {"POSITION": self.add_accessor(positions)}}
        primitive["attributes"].update(attributes)
        if indices is not None:
            primitive["indices"] = self.add_accessor(indices, index_type)
        if mode is not None:
            primitive["mode"] = mode
        if material is not None:
            primitive["material"] = material
        return primitive

    def add_mesh(self, *primitives, name=None):
        mesh = {"primitives": list(primitives)}
        if name is not None:
            mesh["name"] = name
        self.doc["meshes"].append(mesh)
        return len(self.doc["meshes"]) - 1

    def add_node(self, **fields):
        self.doc["nodes"].append(fields)
        return len(self.doc["nodes"]) - 1

    def add_scene(self, nodes, **fields):
        self.doc["scenes"].append(dict(nodes=list(nodes), **fields))
        return len(self.doc["scenes"]) - 1

    def add_material(self, **fields):
        self.doc.setdefault("materials", []).append(fields)
        return len(self.doc["materials"]) - 1

    def add_image(self, uri=None, data=None, mime_type=None):
        """Add an image and a texture sampling it; returns the texture index"""
        image = {}
        if uri is not None:
            image["uri"] = uri
        if data is not None:
            image["bufferView"] = self.add_view(data)
        if mime_type is not None:
            image["mimeType"] = mime_type
        self.doc.setdefault("images", []).append(image)
        self.doc.setdefault("textures", []).append({"source": len(self.doc["images"]) - 1})
        return len(self.doc["textures"]) - 1

    def add_light(self, **definition):
        extensions = self.doc.setdefault("extensions", {})
        lights = extensions.setdefault("KHR_lights_punctual", {"lights": []})["lights"]
        lights.append(definition)
        self.doc.setdefault("extensionsUsed", ["KHR_lights_punctual"])
        return len(lights) - 1

    def add_camera(self, **definition):
        self.doc.setdefault("cameras", []).append(definition)
        return len(self.doc["cameras"]) - 1

    def triangle_scene(self, **node_fields):
        """One scene, one node, one triangle without normals or indices"""
        mesh = self.add_mesh(self.add_primitive(TRIANGLE_POSITIONS))
        node = self.add_node(mesh=mesh, **node_fields)
        self.add_scene([node])
        return self

    def to_json(self, buffer_uri=None):
        doc = json.loads(json.dumps(self.doc))
        if self.blob:
            buffer = {"byteLength": len(self.blob)}
            if buffer_uri is not None:
                buffer["uri"] = buffer_uri
            doc["buffers"] = [buffer]
        else:
            del doc["buffers"]
            del doc["bufferViews"]
        return json.dumps(doc)

    def to_gltf_bytes(self):
        """Self-contained JSON with the buffer embedded as a data URI"""
        return self.to_json(data_uri(bytes(self.blob))).encode("utf-8")

    def write_gltf(self, path, external_bin=False):
        if external_bin:
            bin_name = path.stem + ".bin"
            (path.parent / bin_name).write_bytes(bytes(self.blob))
            path.write_text(self.to_json(bin_name))
        else:
            path.write_bytes(self.to_gltf_bytes())
        return path

    def to_glb(self):
        json_chunk = self.to_json().encode("utf-8")
        json_chunk += b" " * (-len(json_chunk) % 4)
        bin_chunk = bytes(self.blob) + b"\x00" * (-len(self.blob) % 4)

        chunks = struct.pack("<II", len(json_chunk), 0x4E4F534A) + json_chunk
        if bin_chunk:
            chunks += struct.pack("<II", len(bin_chunk), 0x004E4942) + bin_chunk
        return struct.pack("<4sII", b"glTF", 2, 12 + len(chunks)) + chunks

    def write_glb(self, path):
        path.write_bytes(self.to_glb())
        return path


@pytest.fixture
def builder():
    return GltfBuilder()


@pytest.fixture
def triangle_gltf(tmp_path, builder):
    """Path to a .gltf holding the single-triangle scene"""
    return builder.triangle_scene().write_gltf(tmp_path / "triangle.gltf")
