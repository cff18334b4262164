"""
Midpoint (1-to-4) subdivision.

Every triangle (A, B, C) is replaced by four children built from its edge
midpoints mAB, mAC, mBC. Edges shared by two triangles resolve to a single
midpoint vertex, so the refined surface has no cracks.
"""

from __future__ import annotations

import logging
import time

import numpy as np

from .mesh_data import MeshData, validate_topology

_LOGGER = logging.getLogger(__name__)


def edge_key(i, j):
    """
    Order-independent key for the vertex pair (i, j).

    Uses ``m * (m + 1) + min(i, j)`` with ``m = max(i, j)``, which is injective
    over non-negative index pairs. Works on ints and on integer numpy arrays.
    """
    if isinstance(i, np.ndarray) or isinstance(j, np.ndarray):
        hi = np.maximum(i, j).astype(np.int64, copy=False)
        lo = np.minimum(i, j).astype(np.int64, copy=False)
        return hi * (hi + 1) + lo
    hi = max(int(i), int(j))
    lo = min(int(i), int(j))
    return hi * (hi + 1) + lo


class MidpointSubdivider:
    """Builds the next refinement level of a mesh."""

    def subdivide(self, mesh: MeshData) -> MeshData:
        """
        Return a new mesh with 4x the triangles of ``mesh``.

        The input mesh is left untouched. Original vertices keep their ids;
        midpoint vertices are appended in the order their edge is first met
        (per triangle: A-C, A-B, B-C). Normals are recomputed from scratch.
        """
        vertices = np.asarray(mesh.vertices, dtype=np.float64)
        indices = np.asarray(mesh.indices, dtype=np.int64)
        validate_topology(vertices, indices)

        t0 = time.perf_counter()
        faces = indices.reshape(-1, 3)
        n_orig = int(len(vertices))
        n_faces = int(len(faces))

        if n_faces == 0:
            return MeshData(vertices=vertices.copy(), indices=indices.copy(), filepath=mesh.filepath)

        a = faces[:, 0]
        b = faces[:, 1]
        c = faces[:, 2]

        # (T, 3) endpoint pairs in creation order: A-C, A-B, B-C
        ends_0 = np.stack([a, a, b], axis=1).reshape(-1)
        ends_1 = np.stack([c, b, c], axis=1).reshape(-1)
        keys = edge_key(ends_0, ends_1)

        unique_keys, first_seen, inverse = np.unique(keys, return_index=True, return_inverse=True)
        inverse = np.asarray(inverse).reshape(-1)

        # Rank unique edges by first occurrence so ids follow the triangle walk.
        order = np.argsort(first_seen, kind="stable")
        rank = np.empty_like(order)
        rank[order] = np.arange(len(order))

        n_mid = int(len(unique_keys))
        mid_src = first_seen[order]
        midpoints = 0.5 * (vertices[ends_0[mid_src]] + vertices[ends_1[mid_src]])

        new_vertices = np.empty((n_orig + n_mid, 3), dtype=np.float64)
        new_vertices[:n_orig] = vertices
        new_vertices[n_orig:] = midpoints

        mid_ids = (n_orig + rank[inverse]).reshape(-1, 3)
        m_ac = mid_ids[:, 0]
        m_ab = mid_ids[:, 1]
        m_bc = mid_ids[:, 2]

        children = np.stack(
            [
                np.stack([a, m_ab, m_ac], axis=1),
                np.stack([m_ac, m_ab, m_bc], axis=1),
                np.stack([m_ac, m_bc, c], axis=1),
                np.stack([m_ab, b, m_bc], axis=1),
            ],
            axis=1,
        )
        new_indices = children.reshape(-1)

        result = MeshData(vertices=new_vertices, indices=new_indices, filepath=mesh.filepath)

        _LOGGER.info(
            "Subdivided mesh: %d -> %d triangles, %d -> %d vertices (%d midpoints) in %.3fs",
            n_faces,
            result.n_triangles,
            n_orig,
            result.n_vertices,
            n_mid,
            time.perf_counter() - t0,
        )
        return result


def subdivide(mesh: MeshData, levels: int = 1) -> MeshData:
    """Apply midpoint subdivision ``levels`` times (0 returns a copy)."""
    levels = int(levels)
    if levels < 0:
        raise ValueError(f"levels must be >= 0, got {levels}")
    if levels == 0:
        mesh.validate()
        return mesh.copy()

    subdivider = MidpointSubdivider()
    out = mesh
    for _ in range(levels):
        out = subdivider.subdivide(out)
    return out
