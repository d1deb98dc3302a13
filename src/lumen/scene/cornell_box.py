"""The Cornell box, built from transformed rectangles.

The box spans [0, box_size]^3 with its open side toward -Z, where the
camera stands. As seen from the camera, the red wall is on the right and
the green wall on the left. The floor, ceiling and back are white. A
rectangular light hangs just below the ceiling. Three spheres rest on the
floor: one diffuse, one fuzzy metal, one glass.

Every wall is the same kind of local rectangle in the plane z = k, placed
by a rotation and a translation, so the scene also exercises transforms.

Example:
    >>> scene, camera, light = create_cornell_box_scene()
    >>> image = render_scene(scene, camera, RenderSettings(128, 128, 16))
"""

from dataclasses import dataclass

from lumen.camera.pinhole import PinholeCamera
from lumen.core.transform import Transform
from lumen.scene.manager import SceneManager


@dataclass
class CornellBoxParams:
    """Light and wall colors of the box.

    Left and right are as seen from the camera. The light emits
    ``light_intensity * light_color``.
    """

    light_intensity: float = 15.0
    light_color: tuple[float, float, float] = (1.0, 1.0, 1.0)
    left_wall_color: tuple[float, float, float] = (0.12, 0.45, 0.15)
    right_wall_color: tuple[float, float, float] = (0.65, 0.05, 0.05)
    back_wall_color: tuple[float, float, float] = (0.73, 0.73, 0.73)


BOX_SIZE = 555.0

# Light footprint on the ceiling
LIGHT_WIDTH = 130.0
LIGHT_DEPTH = 105.0

SPHERE_RADIUS = 80.0
DIFFUSE_SPHERE_ALBEDO = (0.73, 0.73, 0.73)
METAL_SPHERE_ALBEDO = (0.95, 0.93, 0.88)
METAL_SPHERE_FUZZ = 0.3
GLASS_SPHERE_IOR = 1.5


def create_cornell_box_scene(
    box_size: float = BOX_SIZE,
    params: CornellBoxParams | None = None,
) -> tuple[SceneManager, PinholeCamera, int]:
    """Populate a fresh SceneManager with the Cornell box.

    Args:
        box_size: Edge length of the box.
        params: Light and wall colors; the defaults are the classic ones.

    Returns:
        (scene, camera, light material id). The scene is not built yet.
    """
    if params is None:
        params = CornellBoxParams()

    scene = SceneManager()

    # The camera looks along +Z with +X on its left, so the x = 0 wall is on
    # the right of the image
    red_mat = scene.add_lambertian_material(albedo=params.right_wall_color, name="red")
    green_mat = scene.add_lambertian_material(albedo=params.left_wall_color, name="green")
    white_mat = scene.add_lambertian_material(albedo=params.back_wall_color, name="white")

    emit = tuple(c * params.light_intensity for c in params.light_color)
    light_mat = scene.add_diffuse_light_material(emit=emit, name="light")

    diffuse_mat = scene.add_lambertian_material(albedo=DIFFUSE_SPHERE_ALBEDO)
    metal_mat = scene.add_metal_material(albedo=METAL_SPHERE_ALBEDO, fuzz=METAL_SPHERE_FUZZ)
    glass_mat = scene.add_dielectric_material(ior=GLASS_SPHERE_IOR)

    # x = 0: local (x, y) -> world (0, y, -x)
    scene.add_rectangle(
        red_mat,
        bounds=(-box_size, 0.0, 0.0, box_size),
        transform=Transform(rotate=(0.0, 90.0, 0.0)),
    )
    # x = box_size: local (x, y) -> world (box_size, y, x)
    scene.add_rectangle(
        green_mat,
        bounds=(0.0, 0.0, box_size, box_size),
        transform=Transform(translate=(box_size, 0.0, 0.0), rotate=(0.0, -90.0, 0.0)),
    )
    # z = box_size, no transform needed
    scene.add_rectangle(white_mat, bounds=(0.0, 0.0, box_size, box_size), offset=box_size)
    # y = 0: local (x, y) -> world (x, 0, -y)
    scene.add_rectangle(
        white_mat,
        bounds=(0.0, -box_size, box_size, 0.0),
        transform=Transform(rotate=(-90.0, 0.0, 0.0)),
    )
    # y = box_size: local (x, y) -> world (x, box_size, y)
    scene.add_rectangle(
        white_mat,
        bounds=(0.0, 0.0, box_size, box_size),
        transform=Transform(translate=(0.0, box_size, 0.0), rotate=(90.0, 0.0, 0.0)),
    )

    x0 = (box_size - LIGHT_WIDTH) / 2.0
    z0 = (box_size - LIGHT_DEPTH) / 2.0
    scene.add_rectangle(
        light_mat,
        bounds=(x0, z0, x0 + LIGHT_WIDTH, z0 + LIGHT_DEPTH),
        transform=Transform(translate=(0.0, box_size - 1.0, 0.0), rotate=(90.0, 0.0, 0.0)),
    )

    placements = (
        (diffuse_mat, (box_size * 0.27, SPHERE_RADIUS, box_size * 0.35)),
        (metal_mat, (box_size * 0.73, SPHERE_RADIUS, box_size * 0.35)),
        (glass_mat, (box_size * 0.5, SPHERE_RADIUS, box_size * 0.65)),
    )
    for material, center in placements:
        scene.add_sphere(material, radius=SPHERE_RADIUS, transform=Transform(translate=center))

    camera = PinholeCamera(
        position=(box_size / 2.0, box_size / 2.0, -800.0),
        direction=(0.0, 0.0, 1.0),
        up=(0.0, 1.0, 0.0),
        fov=40.0,
    )
    return scene, camera, light_mat
