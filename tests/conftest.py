"""Pytest configuration for lumen tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear shapes, textures, materials and the render target around each test."""
    # Import here so that Taichi is initialized before any field is declared
    from lumen.core.integrator import clear_render_target
    from lumen.materials import clear_all_materials
    from lumen.scene.intersection import clear_scene
    from lumen.scene.manager import _clear_material_tracking
    from lumen.textures.texture import clear_textures

    def _clear_all():
        clear_scene()
        clear_textures()
        clear_all_materials()
        _clear_material_tracking()
        clear_render_target()

    _clear_all()
    yield
    _clear_all()


@pytest.fixture
def scene_manager():
    """A fresh SceneManager."""
    from lumen.scene.manager import SceneManager

    return SceneManager()
