"""Ready-made scenes.

Each factory clears the scene, fills it through a SceneManager, builds it,
and returns the manager together with a camera framing the scene.

Scenes:
    create_cornell_box_scene: The Cornell box with two rotated blocks lit by
        a ceiling area light, on a black background
    create_sphere_field_scene: A checkered ground covered in small random
        spheres around three large ones, under a sky gradient, with depth
        of field
    create_perlin_spheres_scene: Two marble-textured spheres

Example:
    >>> scene, camera = create_cornell_box_scene()
    >>> framebuffer = Renderer(RenderConfig(image_height=200, samples_per_pixel=64,
    ...                                     aspect_ratio=1.0), camera).render()
"""

from dataclasses import dataclass

import numpy as np

from pathtracer.camera.thin_lens import ThinLensCamera
from pathtracer.scene.manager import SceneManager

# =============================================================================
# Cornell Box
# =============================================================================

BOX_SIZE = 555.0


@dataclass
class CornellBoxParams:
    """Adjustable parts of the Cornell box.

    Attributes:
        light_intensity: Multiplier on the ceiling light's color.
        light_color: Color of the ceiling light.
        left_wall_color: Albedo of the wall at x = BOX_SIZE (left in the image).
        right_wall_color: Albedo of the wall at x = 0 (right in the image).
        white_color: Albedo of the floor, ceiling, back wall and blocks.
    """

    light_intensity: float = 15.0
    light_color: tuple[float, float, float] = (1.0, 1.0, 1.0)
    left_wall_color: tuple[float, float, float] = (0.12, 0.45, 0.15)
    right_wall_color: tuple[float, float, float] = (0.65, 0.05, 0.05)
    white_color: tuple[float, float, float] = (0.73, 0.73, 0.73)


def create_cornell_box_scene(
    params: CornellBoxParams | None = None,
) -> tuple[SceneManager, ThinLensCamera]:
    """Build the Cornell box.

    The box spans [0, 555] on every axis and is open towards -z, where the
    camera sits. A tall block and a short block stand on the floor, rotated
    about y by 15 and -18 degrees.

    Args:
        params: Colors and light strength; defaults to the classic values.

    Returns:
        The built scene and a square-aspect camera looking into the box.
    """
    if params is None:
        params = CornellBoxParams()
    s = BOX_SIZE

    scene = SceneManager()
    red = scene.add_lambertian_material(albedo=params.right_wall_color)
    green = scene.add_lambertian_material(albedo=params.left_wall_color)
    white = scene.add_lambertian_material(albedo=params.white_color)
    light = scene.add_emissive_material(emission=params.light_color, intensity=params.light_intensity)

    scene.add_quad((s, 0.0, 0.0), (0.0, s, 0.0), (0.0, 0.0, s), green)
    scene.add_quad((0.0, 0.0, 0.0), (0.0, s, 0.0), (0.0, 0.0, s), red)
    scene.add_quad((343.0, s - 1.0, 332.0), (-130.0, 0.0, 0.0), (0.0, 0.0, -105.0), light)
    scene.add_quad((0.0, 0.0, 0.0), (s, 0.0, 0.0), (0.0, 0.0, s), white)
    scene.add_quad((s, s, s), (-s, 0.0, 0.0), (0.0, 0.0, -s), white)
    scene.add_quad((0.0, 0.0, s), (s, 0.0, 0.0), (0.0, s, 0.0), white)

    scene.add_cuboid(
        (0.0, 0.0, 0.0), (165.0, 330.0, 165.0), white, rotation=(0.0, 15.0, 0.0), translation=(265.0, 0.0, 295.0)
    )
    scene.add_cuboid(
        (0.0, 0.0, 0.0), (165.0, 165.0, 165.0), white, rotation=(0.0, -18.0, 0.0), translation=(130.0, 0.0, 65.0)
    )

    scene.set_background((0.0, 0.0, 0.0))
    scene.build()

    camera = ThinLensCamera(
        lookfrom=(278.0, 278.0, -800.0),
        lookat=(278.0, 278.0, 0.0),
        vup=(0.0, 1.0, 0.0),
        vfov=40.0,
        aspect_ratio=1.0,
        aperture=0.0,
        focus_dist=10.0,
    )
    return scene, camera


# =============================================================================
# Sphere Field
# =============================================================================


def create_sphere_field_scene(
    seed: int = 0, grid: int = 11
) -> tuple[SceneManager, ThinLensCamera]:
    """Build a field of small random spheres around three large ones.

    Small spheres sit on a ``(2 * grid)^2`` lattice with random jitter; each
    is diffuse (80%), metal (15%) or glass (5%).

    Args:
        seed: Seed for the placement and material choices.
        grid: Half-width of the lattice of small spheres.

    Returns:
        The built scene and a 16:9 camera with a small aperture focused at
        distance 10.
    """
    rng = np.random.default_rng(seed)
    scene = SceneManager()

    checker = scene.add_checker_texture((0.2, 0.3, 0.1), (0.9, 0.9, 0.9), scale=10.0)
    ground = scene.add_lambertian_material(texture_id=checker)
    scene.add_sphere((0.0, -1000.0, 0.0), 1000.0, ground)

    glass = scene.add_dielectric_material(ior=1.5)
    clearing = np.array([4.0, 0.2, 0.0])
    for a in range(-grid, grid):
        for b in range(-grid, grid):
            center = np.array([a + 0.9 * rng.random(), 0.2, b + 0.9 * rng.random()])
            if np.linalg.norm(center - clearing) <= 0.9:
                continue
            choose = rng.random()
            if choose < 0.8:
                albedo = tuple(float(c) for c in rng.random(3) * rng.random(3))
                material = scene.add_lambertian_material(albedo=albedo)
            elif choose < 0.95:
                albedo = tuple(float(c) for c in rng.uniform(0.5, 1.0, 3))
                material = scene.add_metal_material(albedo, fuzz=float(rng.uniform(0.0, 0.5)))
            else:
                material = glass
            scene.add_sphere(tuple(center), 0.2, material)

    scene.add_sphere((0.0, 1.0, 0.0), 1.0, glass)
    scene.add_sphere((-4.0, 1.0, 0.0), 1.0, scene.add_lambertian_material(albedo=(0.4, 0.2, 0.1)))
    scene.add_sphere((4.0, 1.0, 0.0), 1.0, scene.add_metal_material((0.7, 0.6, 0.5), fuzz=0.0))

    scene.set_background((0.5, 0.7, 1.0), (1.0, 1.0, 1.0))
    scene.build()

    camera = ThinLensCamera(
        lookfrom=(13.0, 2.0, 3.0),
        lookat=(0.0, 0.0, 0.0),
        vup=(0.0, 1.0, 0.0),
        vfov=20.0,
        aspect_ratio=16.0 / 9.0,
        aperture=0.1,
        focus_dist=10.0,
    )
    return scene, camera


def create_perlin_spheres_scene() -> tuple[SceneManager, ThinLensCamera]:
    """Two marble spheres, one as the ground."""
    scene = SceneManager()
    marble = scene.add_lambertian_material(texture_id=scene.add_noise_texture(scale=4.0))
    scene.add_sphere((0.0, -1000.0, 0.0), 1000.0, marble)
    scene.add_sphere((0.0, 2.0, 0.0), 2.0, marble)
    scene.build()

    camera = ThinLensCamera(
        lookfrom=(13.0, 2.0, 3.0),
        lookat=(0.0, 0.0, 0.0),
        vup=(0.0, 1.0, 0.0),
        vfov=20.0,
        aspect_ratio=16.0 / 9.0,
    )
    return scene, camera
