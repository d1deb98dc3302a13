"""Taichi path tracer for analytic and implicit surfaces.

This package renders declaratively described scenes with Monte Carlo path
tracing, with support for:
- Transformed shapes (rectangles, spheres, tori, cubes)
- Implicit surfaces solved by ray marching and bisection
- Textured materials (Lambertian, metal, dielectric, diffuse light)
- A bounding volume hierarchy for nearest-hit queries

Subpackages:
    core: Rays, transforms, root finding, the integrator and the render loop
    geometry: Shape primitives and intersection algorithms
    textures: Solid, checker and image textures
    materials: Scattering and emission models
    scene: Scene storage, BVH, scene manager and scene description loader
    camera: Camera model with ray generation
    preview: Tone mapping, preview display and PNG export
"""

__version__ = "0.1.0"
