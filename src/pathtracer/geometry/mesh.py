"""Triangle mesh description.

A ``Mesh`` holds indexed triangles plus optional per-vertex normals and UVs
and an optional 4x4 object-to-world transform. ``flatten`` bakes the transform
into per-triangle world-space arrays, which is the form the scene uploads and
builds a per-mesh BVH over.
"""

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt


@dataclass
class MeshTriangles:
    """World-space per-triangle arrays of a flattened mesh (F triangles)."""

    v0: npt.NDArray[np.float64]
    v1: npt.NDArray[np.float64]
    v2: npt.NDArray[np.float64]
    n0: npt.NDArray[np.float64]
    n1: npt.NDArray[np.float64]
    n2: npt.NDArray[np.float64]
    uv0: npt.NDArray[np.float64]
    uv1: npt.NDArray[np.float64]
    uv2: npt.NDArray[np.float64]
    has_normals: bool
    has_uvs: bool

    def __len__(self) -> int:
        return int(self.v0.shape[0])

    def areas(self) -> npt.NDArray[np.float64]:
        return 0.5 * np.linalg.norm(np.cross(self.v1 - self.v0, self.v2 - self.v0), axis=1)


class Mesh:
    """Indexed triangle mesh.

    Args:
        vertices: (V, 3) vertex positions in object space.
        indices: (F, 3) vertex indices per triangle, or a flat array of 3F.
        normals: Optional (V, 3) per-vertex normals in object space.
        uvs: Optional (V, 2) per-vertex texture coordinates.
        transform: Optional 4x4 object-to-world matrix applied to column
            vectors (``world = M @ [x, y, z, 1]``).

    Raises:
        ValueError: If any array has the wrong shape, an index is out of range,
            or the transform is singular.
    """

    def __init__(
        self,
        vertices: npt.ArrayLike,
        indices: npt.ArrayLike,
        normals: npt.ArrayLike | None = None,
        uvs: npt.ArrayLike | None = None,
        transform: npt.ArrayLike | None = None,
    ) -> None:
        self.vertices = np.asarray(vertices, dtype=np.float64)
        if self.vertices.ndim != 2 or self.vertices.shape[1] != 3:
            raise ValueError(f"vertices must have shape (V, 3), got {self.vertices.shape}")

        idx = np.asarray(indices)
        if idx.size % 3 != 0 or (idx.ndim == 2 and idx.shape[1] != 3) or idx.ndim > 2:
            raise ValueError(f"indices must have shape (F, 3) or (3F,), got {idx.shape}")
        if idx.size and not np.issubdtype(idx.dtype, np.integer):
            raise ValueError(f"indices must be integers, got dtype {idx.dtype}")
        self.indices = idx.reshape(-1, 3).astype(np.int64)
        if self.indices.size and (
            self.indices.min() < 0 or self.indices.max() >= len(self.vertices)
        ):
            raise ValueError(
                f"indices must lie in [0, {len(self.vertices)}), got range "
                f"[{self.indices.min()}, {self.indices.max()}]"
            )

        self.normals = None
        if normals is not None:
            self.normals = np.asarray(normals, dtype=np.float64)
            if self.normals.shape != self.vertices.shape:
                raise ValueError(
                    f"normals must match vertices shape {self.vertices.shape}, got {self.normals.shape}"
                )

        self.uvs = None
        if uvs is not None:
            self.uvs = np.asarray(uvs, dtype=np.float64)
            if self.uvs.shape != (len(self.vertices), 2):
                raise ValueError(
                    f"uvs must have shape ({len(self.vertices)}, 2), got {self.uvs.shape}"
                )

        self.transform = np.eye(4)
        if transform is not None:
            self.transform = np.asarray(transform, dtype=np.float64)
            if self.transform.shape != (4, 4):
                raise ValueError(f"transform must be 4x4, got {self.transform.shape}")
            if abs(np.linalg.det(self.transform[:3, :3])) < 1e-12:
                raise ValueError("transform has a singular linear part")

    @property
    def triangle_count(self) -> int:
        return int(self.indices.shape[0])

    def world_vertices(self) -> npt.NDArray[np.float64]:
        linear = self.transform[:3, :3]
        return self.vertices @ linear.T + self.transform[:3, 3]

    def world_normals(self) -> npt.NDArray[np.float64] | None:
        """Vertex normals transformed by the inverse transpose and renormalised."""
        if self.normals is None:
            return None
        normal_matrix = np.linalg.inv(self.transform[:3, :3]).T
        transformed = self.normals @ normal_matrix.T
        lengths = np.linalg.norm(transformed, axis=1, keepdims=True)
        return np.divide(transformed, lengths, out=np.zeros_like(transformed), where=lengths > 0)

    def flatten(self) -> MeshTriangles:
        """Per-triangle world-space arrays with the transform applied."""
        verts = self.world_vertices()
        i0, i1, i2 = self.indices[:, 0], self.indices[:, 1], self.indices[:, 2]

        normals = self.world_normals()
        zeros3 = np.zeros((self.triangle_count, 3))
        n0 = n1 = n2 = zeros3
        if normals is not None:
            n0, n1, n2 = normals[i0], normals[i1], normals[i2]

        zeros2 = np.zeros((self.triangle_count, 2))
        uv0 = uv1 = uv2 = zeros2
        if self.uvs is not None:
            uv0, uv1, uv2 = self.uvs[i0], self.uvs[i1], self.uvs[i2]

        return MeshTriangles(
            v0=verts[i0],
            v1=verts[i1],
            v2=verts[i2],
            n0=n0,
            n1=n1,
            n2=n2,
            uv0=uv0,
            uv1=uv1,
            uv2=uv2,
            has_normals=normals is not None,
            has_uvs=self.uvs is not None,
        )


def quad_mesh(
    corner: npt.ArrayLike, edge_u: npt.ArrayLike, edge_v: npt.ArrayLike
) -> Mesh:
    """Parallelogram ``corner + s*edge_u + t*edge_v`` as a two-triangle mesh.

    The winding makes ``cross(edge_u, edge_v)`` the front-facing normal, and
    UVs run from (0, 0) at the corner to (1, 1) at the opposite vertex.
    """
    q = np.asarray(corner, dtype=np.float64)
    u = np.asarray(edge_u, dtype=np.float64)
    v = np.asarray(edge_v, dtype=np.float64)
    vertices = np.array([q, q + u, q + u + v, q + v])
    uvs = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
    return Mesh(vertices, [[0, 1, 2], [0, 2, 3]], uvs=uvs)
