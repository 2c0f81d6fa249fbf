"""Tests for loading whole glTF/GLB assets"""

import math

import numpy as np
import pytest

import gltfscene
from gltfscene import (
    DecodeError,
    DirectionalLight,
    GltfLoader,
    ImageDecodeError,
    IoError,
    LoadOptions,
    MissingAttributeError,
    Mode,
    ParseError,
    PerspectiveProjection,
    PointLight,
)
from gltfscene.loaders.gltf_loader import bake_to_world

from conftest import TRIANGLE_POSITIONS, TRIANGLE_UVS, GltfBuilder, data_uri, png_bytes


def _textured_triangle(builder, image_uri=None, image_data=None):
    texture = builder.add_image(uri=image_uri, data=image_data,
                                mime_type="image/png" if image_data is not None else None)
    material = builder.add_material(pbrMetallicRoughness={"baseColorTexture": {"index": texture}})
    uvs = builder.add_accessor(TRIANGLE_UVS)
    mesh = builder.add_mesh(builder.add_primitive(TRIANGLE_POSITIONS, material=material, TEXCOORD_0=uvs))
    builder.add_scene([builder.add_node(mesh=mesh)])
    return builder


def test_load_single_triangle(triangle_gltf):
    """Test one triangle without normals or material"""
    scenes = gltfscene.load(triangle_gltf)

    assert len(scenes) == 1
    cameras, lights, models = scenes[0]
    assert cameras == []
    assert lights == []
    assert len(models) == 1

    model = models[0]
    assert model.vertex_count == 3
    assert np.array_equal(model.indices, [0, 1, 2])
    assert np.allclose(model.normals, [[0.0, 0.0, 1.0]] * 3)
    assert model.has_normals
    assert not model.has_tangents
    assert np.allclose(model.tangents, 0.0)
    assert model.mode == Mode.TRIANGLES


def test_default_material(triangle_gltf):
    """Test primitives without a material use glTF defaults"""
    material = gltfscene.load(triangle_gltf)[0].models[0].material
    assert np.allclose(np.asarray(material.base_color_factor), [1.0, 1.0, 1.0, 1.0])
    assert material.metallic_factor == 1.0
    assert material.roughness_factor == 1.0
    assert not material.has_base_color()
    assert material.normal_texture is None


def test_scenes_in_document_order(tmp_path):
    """Test one Scene per document scene, in order"""
    builder = GltfBuilder()
    mesh = builder.add_mesh(builder.add_primitive(TRIANGLE_POSITIONS))
    builder.add_scene([builder.add_node(mesh=mesh)], name="first")
    builder.add_scene([], name="empty")
    builder.add_scene([builder.add_node(mesh=mesh), builder.add_node(mesh=mesh)], name="third")

    scenes = gltfscene.load(builder.write_gltf(tmp_path / "scenes.gltf"), names=True)

    assert [s.name for s in scenes] == ["first", "empty", "third"]
    assert [len(s.models) for s in scenes] == [1, 0, 2]


def test_no_scenes(tmp_path):
    """Test documents without scenes load as an empty list"""
    builder = GltfBuilder()
    builder.add_mesh(builder.add_primitive(TRIANGLE_POSITIONS))
    assert gltfscene.load(builder.write_gltf(tmp_path / "noscene.gltf")) == []


def test_index_count_preserved(tmp_path):
    """Test the index buffer is kept in full"""
    builder = GltfBuilder()
    quad = [[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]]
    mesh = builder.add_mesh(builder.add_primitive(quad, indices=[0, 1, 2, 0, 2, 3]))
    builder.add_scene([builder.add_node(mesh=mesh)])

    model = gltfscene.load(builder.write_gltf(tmp_path / "quad.gltf"))[0].models[0]
    assert len(model.indices) == 6
    assert model.has_indices
    assert len(model.triangles()) == 2


def test_node_hierarchy_transforms(tmp_path):
    """Test parent transforms apply to children"""
    builder = GltfBuilder()
    mesh = builder.add_mesh(builder.add_primitive(TRIANGLE_POSITIONS))
    child = builder.add_node(mesh=mesh, translation=[0.0, 0.0, 5.0])
    parent = builder.add_node(children=[child], translation=[10.0, 0.0, 0.0], scale=[2.0, 2.0, 2.0])
    builder.add_scene([parent])

    model = gltfscene.load(builder.write_gltf(tmp_path / "tree.gltf"))[0].models[0]

    # child local: p + (0,0,5); parent: 2 * that + (10,0,0)
    assert np.allclose(model.positions, [[10, 0, 10], [12, 0, 10], [10, 2, 10]])
    assert np.allclose(np.asarray(model.transform)[3, :3], [10.0, 0.0, 10.0])
    assert np.allclose(model.normals, [[0.0, 0.0, 1.0]] * 3)


def test_node_matrix(tmp_path):
    """Test column-major node matrices"""
    builder = GltfBuilder()
    mesh = builder.add_mesh(builder.add_primitive(TRIANGLE_POSITIONS))
    matrix = [1, 0, 0, 0,
              0, 1, 0, 0,
              0, 0, 1, 0,
              3, 4, 5, 1]
    builder.add_scene([builder.add_node(mesh=mesh, matrix=matrix)])

    model = gltfscene.load(builder.write_gltf(tmp_path / "matrix.gltf"))[0].models[0]
    assert np.allclose(model.positions[0], [3.0, 4.0, 5.0])


def test_node_rotation_turns_normals(tmp_path):
    """Test rotations reach positions and normals"""
    builder = GltfBuilder()
    mesh = builder.add_mesh(builder.add_primitive(TRIANGLE_POSITIONS))
    s = math.sqrt(0.5)
    builder.add_scene([builder.add_node(mesh=mesh, rotation=[0.0, s, 0.0, s])])

    model = gltfscene.load(builder.write_gltf(tmp_path / "rot.gltf"))[0].models[0]

    # +90 degrees about Y: +X goes to -Z, +Z goes to +X
    assert np.allclose(model.positions[1], [0.0, 0.0, -1.0], atol=1e-6)
    assert np.allclose(model.normals, [[1.0, 0.0, 0.0]] * 3, atol=1e-6)


def test_scale_rotation_translation_order(tmp_path):
    """Test TRS nodes scale first, then rotate, then translate"""
    builder = GltfBuilder()
    mesh = builder.add_mesh(builder.add_primitive(TRIANGLE_POSITIONS))
    s = math.sqrt(0.5)
    builder.add_scene([builder.add_node(mesh=mesh, scale=[2.0, 2.0, 2.0],
                                        rotation=[0.0, s, 0.0, s], translation=[1.0, 0.0, 0.0])])

    model = gltfscene.load(builder.write_gltf(tmp_path / "trs.gltf"))[0].models[0]

    # (1,0,0) -> (2,0,0) -> (0,0,-2) -> (1,0,-2)
    assert np.allclose(model.positions[1], [1.0, 0.0, -2.0], atol=1e-6)
    assert np.allclose(model.positions[2], [1.0, 2.0, 0.0], atol=1e-6)


def test_children_before_parent(tmp_path):
    """Test a node's children are emitted before its own camera, light and meshes"""
    builder = GltfBuilder()
    parent_mesh = builder.add_mesh(builder.add_primitive(TRIANGLE_POSITIONS), name="parent")
    child_mesh = builder.add_mesh(builder.add_primitive(TRIANGLE_POSITIONS), name="child")
    parent_cam = builder.add_camera(type="perspective", name="parent",
                                    perspective={"yfov": 0.7, "znear": 0.1})
    child_cam = builder.add_camera(type="perspective", name="child",
                                   perspective={"yfov": 0.7, "znear": 0.1})
    parent_light = builder.add_light(type="point", name="parent")
    child_light = builder.add_light(type="point", name="child")

    child = builder.add_node(mesh=child_mesh, camera=child_cam,
                             extensions={"KHR_lights_punctual": {"light": child_light}})
    parent = builder.add_node(mesh=parent_mesh, camera=parent_cam, children=[child],
                              extensions={"KHR_lights_punctual": {"light": parent_light}})
    builder.add_scene([parent])

    scene = gltfscene.load(builder.write_gltf(tmp_path / "order.gltf"), names=True)[0]

    assert [m.name for m in scene.models] == ["child", "parent"]
    assert [c.name for c in scene.cameras] == ["child", "parent"]
    assert [light.name for light in scene.lights] == ["child", "parent"]


def test_bake_mirrored_flips_handedness():
    """Test negative scale flips tangent handedness and keeps normals unit"""
    mirror = np.diag([-1.0, 2.0, 1.0, 1.0]).astype('f4')
    positions = np.array(TRIANGLE_POSITIONS, dtype=np.float32)
    normals = np.array([[0.0, 0.0, 1.0]] * 3, dtype=np.float32)
    tangents = np.array([[1.0, 0.0, 0.0, 1.0]] * 3, dtype=np.float32)

    world_p, world_n, world_t = bake_to_world(positions, normals, tangents, mirror)

    assert np.allclose(world_p[2], [0.0, 2.0, 0.0])
    assert np.allclose(np.linalg.norm(world_n, axis=1), 1.0)
    assert np.allclose(world_t[:, :3], [[-1.0, 0.0, 0.0]] * 3)
    assert np.allclose(world_t[:, 3], -1.0)


def test_glb_matches_gltf(tmp_path):
    """Test GLB and JSON containers load the same geometry"""
    builder = GltfBuilder()
    builder.triangle_scene()

    from_gltf = gltfscene.load(builder.write_gltf(tmp_path / "a.gltf"))[0].models[0]
    from_glb = gltfscene.load(builder.write_glb(tmp_path / "a.glb"))[0].models[0]

    assert np.array_equal(from_gltf.positions, from_glb.positions)
    assert np.array_equal(from_gltf.normals, from_glb.normals)


def test_load_bytes_glb():
    """Test GLB data held in memory"""
    builder = GltfBuilder()
    builder.triangle_scene()
    scenes = gltfscene.load_bytes(builder.to_glb())
    assert len(scenes[0].models) == 1


def test_load_bytes_external_needs_base_dir(tmp_path):
    """Test external buffers need a base directory when loading bytes"""
    builder = GltfBuilder()
    builder.triangle_scene()
    builder.write_gltf(tmp_path / "ext.gltf", external_bin=True)
    data = (tmp_path / "ext.gltf").read_bytes()

    with pytest.raises(IoError):
        gltfscene.load_bytes(data)
    assert len(gltfscene.load_bytes(data, base_dir=tmp_path)[0].models) == 1


def test_external_buffer(tmp_path):
    """Test buffers stored in a .bin next to the asset"""
    builder = GltfBuilder()
    builder.triangle_scene()
    model = gltfscene.load(builder.write_gltf(tmp_path / "ext.gltf", external_bin=True))[0].models[0]
    assert np.allclose(model.positions, TRIANGLE_POSITIONS)


def test_reload_is_deterministic(triangle_gltf):
    """Test loading the same asset twice yields equal data"""
    first = gltfscene.load(triangle_gltf)[0].models[0]
    second = gltfscene.load(triangle_gltf)[0].models[0]

    assert np.array_equal(first.positions, second.positions)
    assert np.array_equal(first.normals, second.normals)
    assert np.array_equal(first.tangents, second.tangents)
    assert np.array_equal(first.indices, second.indices)


def test_embedded_and_external_images_match(tmp_path):
    """Test a data URI image decodes to the same pixels as the external file"""
    png = png_bytes((10, 200, 30, 255), size=(4, 4))
    (tmp_path / "tex.png").write_bytes(png)

    embedded = _textured_triangle(GltfBuilder(), image_uri=data_uri(png, "image/png"))
    external = _textured_triangle(GltfBuilder(), image_uri="tex.png")

    a = gltfscene.load(embedded.write_gltf(tmp_path / "embedded.gltf"))[0].models[0]
    b = gltfscene.load(external.write_gltf(tmp_path / "external.gltf"))[0].models[0]

    pixels_a = a.material.base_color_texture.image.pixels
    pixels_b = b.material.base_color_texture.image.pixels
    assert np.array_equal(pixels_a, pixels_b)
    assert np.array_equal(pixels_a[0, 0], [10, 200, 30, 255])


def test_image_in_glb_buffer_view(tmp_path):
    """Test images stored in the GLB binary chunk"""
    builder = _textured_triangle(GltfBuilder(), image_data=png_bytes((1, 2, 3, 255)))
    model = gltfscene.load(builder.write_glb(tmp_path / "tex.glb"))[0].models[0]

    assert np.array_equal(model.material.base_color_texture.image.pixels[0, 0], [1, 2, 3, 255])
    assert model.has_tangents
    assert np.allclose(np.abs(model.tangents[:, 3]), 1.0)


def test_shared_material(tmp_path):
    """Test primitives referencing one material share it"""
    builder = GltfBuilder()
    material = builder.add_material(alphaMode="BLEND")
    mesh = builder.add_mesh(builder.add_primitive(TRIANGLE_POSITIONS, material=material),
                            builder.add_primitive(TRIANGLE_POSITIONS, material=material))
    builder.add_scene([builder.add_node(mesh=mesh)])

    models = gltfscene.load(builder.write_gltf(tmp_path / "shared.gltf"))[0].models
    assert len(models) == 2
    assert models[0].material is models[1].material
    assert models[0].has_transparency


def test_cameras_and_lights(tmp_path):
    """Test camera and light nodes end up in the scene"""
    builder = GltfBuilder()
    camera = builder.add_camera(type="perspective", perspective={"yfov": 0.7, "znear": 0.1})
    sun = builder.add_light(type="directional", intensity=3.0, name="Sun")
    lamp = builder.add_light(type="point", color=[1.0, 0.0, 0.0])

    cam_node = builder.add_node(camera=camera, translation=[0.0, 1.0, 5.0])
    sun_node = builder.add_node(extensions={"KHR_lights_punctual": {"light": sun}})
    lamp_node = builder.add_node(extensions={"KHR_lights_punctual": {"light": lamp}},
                                 translation=[2.0, 3.0, 4.0])
    builder.add_scene([cam_node, sun_node, lamp_node])

    scene = gltfscene.load(builder.write_gltf(tmp_path / "rig.gltf"))[0]

    assert len(scene.cameras) == 1
    assert isinstance(scene.cameras[0].projection, PerspectiveProjection)
    assert np.allclose(np.asarray(scene.cameras[0].position), [0.0, 1.0, 5.0])

    assert len(scene.lights) == 2
    sun_light, lamp_light = scene.lights
    assert isinstance(sun_light, DirectionalLight)
    assert sun_light.intensity == pytest.approx(3.0)
    assert sun_light.name is None
    assert isinstance(lamp_light, PointLight)
    assert np.allclose(np.asarray(lamp_light.position), [2.0, 3.0, 4.0])
    assert np.allclose(np.asarray(lamp_light.color), [1.0, 0.0, 0.0])


def test_invalid_light_index(tmp_path):
    """Test nodes pointing at missing lights raise ParseError"""
    builder = GltfBuilder()
    builder.add_scene([builder.add_node(extensions={"KHR_lights_punctual": {"light": 3}})])
    with pytest.raises(ParseError):
        gltfscene.load(builder.write_gltf(tmp_path / "badlight.gltf"))


def test_names_and_extras_flags(tmp_path):
    """Test names and extras only appear when enabled"""
    builder = GltfBuilder()
    mesh = builder.add_mesh(builder.add_primitive(TRIANGLE_POSITIONS), name="Tri")
    builder.doc["meshes"][mesh]["extras"] = {"lod": 0}
    builder.add_scene([builder.add_node(mesh=mesh, name="TriNode")], name="Main")
    path = builder.write_gltf(tmp_path / "named.gltf")

    plain = gltfscene.load(path)[0]
    assert plain.name is None
    assert plain.models[0].name is None
    assert plain.models[0].extras is None

    options = LoadOptions.from_dict({"names": True, "extras": True, "unknown": 1})
    rich = GltfLoader(options).load(path)[0]
    assert rich.name == "Main"
    assert rich.models[0].name == "Tri"
    assert rich.models[0].node_name == "TriNode"
    assert rich.models[0].extras == {"lod": 0}


def test_vertex_color_flag(tmp_path):
    """Test vertex colors are decoded only when enabled"""
    builder = GltfBuilder()
    colors = builder.add_accessor([[1.0, 0.0, 0.0, 0.5]] * 3)
    mesh = builder.add_mesh(builder.add_primitive(TRIANGLE_POSITIONS, COLOR_0=colors))
    builder.add_scene([builder.add_node(mesh=mesh)])
    path = builder.write_gltf(tmp_path / "colors.gltf")

    assert gltfscene.load(path)[0].models[0].colors is None
    colored = gltfscene.load(path, vertex_color=True)[0].models[0]
    assert np.allclose(colored.colors, [[1.0, 0.0, 0.0, 0.5]] * 3)


def test_unknown_option():
    """Test unknown keyword flags are rejected"""
    with pytest.raises(TypeError):
        gltfscene.load("unused.gltf", textures=True)


def test_missing_file(tmp_path):
    """Test a missing path raises IoError"""
    with pytest.raises(IoError):
        gltfscene.load(tmp_path / "nope.gltf")


def test_malformed_json(tmp_path):
    """Test invalid JSON raises ParseError"""
    path = tmp_path / "broken.gltf"
    path.write_text("{ this is not json")
    with pytest.raises(ParseError):
        gltfscene.load(path)


def test_malformed_base64(tmp_path):
    """Test a corrupt data URI buffer raises DecodeError"""
    builder = GltfBuilder()
    builder.triangle_scene()
    path = tmp_path / "bad64.gltf"
    path.write_text(builder.to_json("data:application/octet-stream;base64,@@@@"))
    with pytest.raises(DecodeError):
        gltfscene.load(path)


def test_corrupt_image(tmp_path):
    """Test undecodable textures raise ImageDecodeError"""
    builder = _textured_triangle(GltfBuilder(), image_uri=data_uri(b"not a png", "image/png"))
    with pytest.raises(ImageDecodeError):
        gltfscene.load(builder.write_gltf(tmp_path / "badimg.gltf"))


def test_missing_external_image(tmp_path):
    """Test missing image files raise IoError"""
    builder = _textured_triangle(GltfBuilder(), image_uri="missing.png")
    with pytest.raises(IoError):
        gltfscene.load(builder.write_gltf(tmp_path / "noimg.gltf"))


def test_missing_position_attribute(tmp_path):
    """Test primitives without POSITION raise MissingAttributeError"""
    builder = GltfBuilder()
    normals = builder.add_accessor([[0.0, 0.0, 1.0]] * 3)
    mesh = builder.add_mesh({"attributes": {"NORMAL": normals}})
    builder.add_scene([builder.add_node(mesh=mesh)])
    with pytest.raises(MissingAttributeError):
        gltfscene.load(builder.write_gltf(tmp_path / "nopos.gltf"))


def test_line_primitive(tmp_path):
    """Test line primitives load and expose lines"""
    builder = GltfBuilder()
    mesh = builder.add_mesh(builder.add_primitive(TRIANGLE_POSITIONS, mode=2))
    builder.add_scene([builder.add_node(mesh=mesh)])

    model = gltfscene.load(builder.write_gltf(tmp_path / "loop.gltf"))[0].models[0]
    assert model.mode == Mode.LINE_LOOP
    assert len(model.lines()) == 3
    assert not model.has_normals
