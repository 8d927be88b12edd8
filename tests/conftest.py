"""Pytest configuration for path tracer tests.

Taichi is initialised once per session, before any module that declares
fields is imported; test modules therefore import pathtracer modules inside
the test bodies.
"""

import pytest

TEST_THREADS = 8


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialise the CPU runtime once for the whole session.

    Repeated ti.init() calls would invalidate fields declared by modules
    that were already imported.
    """
    from pathtracer.runtime import init_runtime

    init_runtime(thread_count=TEST_THREADS, seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Reset every registry, the scene and the camera around each test."""
    from pathtracer.camera.thin_lens import reset_camera
    from pathtracer.materials.dielectric import clear_dielectric_materials
    from pathtracer.materials.emissive import clear_emissive_materials
    from pathtracer.materials.lambertian import clear_lambertian_materials
    from pathtracer.materials.metal import clear_metal_materials
    from pathtracer.materials.texture import clear_textures
    from pathtracer.scene.intersection import clear_scene
    from pathtracer.scene.manager import (
        DEFAULT_BACKGROUND_BOTTOM,
        DEFAULT_BACKGROUND_TOP,
        _clear_material_tracking,
        set_background,
    )

    def _clear_all():
        clear_scene()
        clear_textures()
        clear_lambertian_materials()
        clear_metal_materials()
        clear_dielectric_materials()
        clear_emissive_materials()
        _clear_material_tracking()
        set_background(DEFAULT_BACKGROUND_TOP, DEFAULT_BACKGROUND_BOTTOM)
        reset_camera()

    _clear_all()
    yield
    _clear_all()
