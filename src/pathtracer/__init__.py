"""Offline Monte Carlo path tracer built on Taichi's CPU backend.

This package renders in-memory scenes of spheres, oriented boxes, triangles
and triangle meshes with Lambertian, metal, dielectric and emissive
materials. Rendering runs on a fixed pool of worker threads, each owning a
disjoint set of framebuffer rows.

Subpackages:
    core: Rays, the path-tracing integrator, the render scheduler and framebuffer
    geometry: Primitive intersection routines and the BVH builder
    materials: Scattering models and textures
    scene: Scene storage, the scene manager and preset scenes
    camera: Thin-lens camera with optional depth of field
    output: Image export through Pillow

Modules that declare Taichi fields must be imported after
``pathtracer.runtime.init_runtime()`` has been called.
"""

__version__ = "0.1.0"
