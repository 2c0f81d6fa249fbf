#!/usr/bin/env python3
"""
glTF Scene Inspector

Loads a GLTF/GLB asset and reports what each scene flattens into:
- Cameras with their projection and world position
- Lights with type, color and intensity
- Models with vertex/index counts, flags and material summary

Usage:
    python inspect_gltf.py path/to/model.gltf [--names] [--extras] [--vertex-color] [--verbose]
"""

import logging
import sys
from pathlib import Path

from gltfscene import (
    DirectionalLight,
    GltfLoadError,
    GltfLoader,
    LoadOptions,
    PerspectiveProjection,
    PointLight,
)


class SceneInspector:
    """Prints a summary of every scene of an asset."""

    def __init__(self, options: LoadOptions):
        self.loader = GltfLoader(options)
        self.warnings = []

    def inspect(self, filepath: str) -> bool:
        """Load and report an asset. Returns False when loading failed."""
        filepath = Path(filepath)
        print(f"Inspecting glTF asset: {filepath}")
        print("=" * 60)

        try:
            scenes = self.loader.load(filepath)
        except GltfLoadError as e:
            print(f"ERROR: {type(e).__name__}: {e}")
            return False

        print(f"Scenes: {len(scenes)}")
        for scene_idx, scene in enumerate(scenes):
            self._print_scene(scene_idx, scene)

        self._print_summary()
        return True

    def _print_scene(self, scene_idx, scene):
        label = f" '{scene.name}'" if scene.name else ""
        print(f"\nScene {scene_idx}{label}:")
        print(f"   Cameras: {len(scene.cameras)}")
        print(f"   Lights: {len(scene.lights)}")
        print(f"   Models: {len(scene.models)}")

        for camera in scene.cameras:
            proj = camera.projection
            kind = "perspective" if isinstance(proj, PerspectiveProjection) else "orthographic"
            pos = camera.position
            print(f"   📷 {camera.name or 'camera'} ({kind}) at ({pos[0]:.2f}, {pos[1]:.2f}, {pos[2]:.2f})")

        for light in scene.lights:
            if isinstance(light, DirectionalLight):
                kind = "directional"
            elif isinstance(light, PointLight):
                kind = "point"
            else:
                kind = "spot"
            color = light.color
            print(f"   💡 {light.name or 'light'} ({kind}) color=({color[0]:.2f}, {color[1]:.2f}, "
                  f"{color[2]:.2f}) intensity={light.intensity:.2f}")

        for model in scene.models:
            material = model.material
            print(f"   🔺 {model.name or 'model'}: {model.mode.name}, {model.vertex_count} vertices, "
                  f"{len(model.indices)} indices")
            print(f"      normals={model.has_normals} tangents={model.has_tangents} "
                  f"uv={model.has_tex_coords} indexed={model.has_indices}")
            print(f"      material {material.name or '(unnamed)'}: alpha={material.alpha_mode} "
                  f"base_color_map={material.has_base_color()} normal_map={material.has_normal_map()}")

            if not model.has_normals:
                self.warnings.append(f"{model.name or 'model'} has no usable normals")
            if material.has_normal_map() and not model.has_tangents:
                self.warnings.append(f"{model.name or 'model'} has a normal map but no tangents")

    def _print_summary(self):
        print("\n" + "=" * 60)
        if not self.warnings:
            print("No warnings")
            return
        print(f"⚠️  {len(self.warnings)} Warnings:")
        for warning in self.warnings:
            print(f"   • {warning}")


def main():
    """Main entry point."""
    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    flags = {a for a in sys.argv[1:] if a.startswith("--")}

    if len(args) != 1:
        print("Usage: python inspect_gltf.py path/to/model.gltf "
              "[--names] [--extras] [--vertex-color] [--verbose]")
        sys.exit(1)

    logging.basicConfig(level=logging.DEBUG if "--verbose" in flags else logging.INFO,
                        format="%(levelname)s %(name)s: %(message)s")

    options = LoadOptions(
        names="--names" in flags,
        extras="--extras" in flags,
        vertex_color="--vertex-color" in flags,
    )
    inspector = SceneInspector(options)
    success = inspector.inspect(args[0])
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
