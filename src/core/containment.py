"""
Point-in-mesh test by ray parity.

A ray leaves the query point along the fixed direction (1, 1, 0) and every
forward hit is counted with the Moller-Trumbore ray/triangle test. An odd
count means the point is inside. The mesh is assumed closed and not
self-intersecting.

The direction is not randomized, so a ray that grazes an edge or a vertex
can be counted twice or not at all. Points on grid-aligned symmetry planes
of a mesh are the usual victims.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from .mesh_data import MeshData, validate_topology

_LOGGER = logging.getLogger(__name__)

RAY_DIRECTION = np.array([1.0, 1.0, 0.0], dtype=np.float64)
EPSILON = float(np.finfo(np.float64).eps)


def _as_point(point: Sequence[float]) -> np.ndarray:
    p = np.asarray(point, dtype=np.float64).reshape(-1)
    if p.shape != (3,):
        raise ValueError(f"point must have 3 components, got shape {np.shape(point)}")
    return p


def ray_triangle_hits(
    origin: Sequence[float],
    direction: Sequence[float],
    v0: np.ndarray,
    v1: np.ndarray,
    v2: np.ndarray,
    *,
    eps: float = EPSILON,
) -> np.ndarray:
    """
    Boolean mask of triangles (v0[k], v1[k], v2[k]) hit in front of ``origin``.

    Rays parallel to a triangle plane (|det| < eps) and hits at t <= eps are
    rejected.
    """
    o = np.asarray(origin, dtype=np.float64)
    d = np.asarray(direction, dtype=np.float64)
    v0 = np.atleast_2d(np.asarray(v0, dtype=np.float64))
    v1 = np.atleast_2d(np.asarray(v1, dtype=np.float64))
    v2 = np.atleast_2d(np.asarray(v2, dtype=np.float64))

    edge1 = v1 - v0
    edge2 = v2 - v0
    h = np.cross(d, edge2)
    det = np.einsum("ij,ij->i", edge1, h)

    hits = np.abs(det) >= eps
    safe_det = np.where(hits, det, 1.0)

    s = o - v0
    u = np.einsum("ij,ij->i", s, h) / safe_det
    hits &= (u >= 0.0) & (u <= 1.0)

    q = np.cross(s, edge1)
    v = (q @ d) / safe_det
    hits &= (v >= 0.0) & (u + v <= 1.0)

    t = np.einsum("ij,ij->i", edge2, q) / safe_det
    hits &= t > eps
    return hits


def count_ray_intersections(
    mesh: MeshData,
    point: Sequence[float],
    direction: Sequence[float] = RAY_DIRECTION,
) -> int:
    vertices = np.asarray(mesh.vertices, dtype=np.float64)
    indices = np.asarray(mesh.indices, dtype=np.int64)
    validate_topology(vertices, indices)

    p = _as_point(point)
    faces = indices.reshape(-1, 3)
    if len(faces) == 0:
        return 0

    hits = ray_triangle_hits(
        p,
        direction,
        vertices[faces[:, 0]],
        vertices[faces[:, 1]],
        vertices[faces[:, 2]],
    )
    return int(np.count_nonzero(hits))


def is_point_inside(mesh: MeshData, point: Sequence[float]) -> bool:
    """True if ``point`` lies inside the closed surface of ``mesh``."""
    count = count_ray_intersections(mesh, point)
    inside = count % 2 == 1
    _LOGGER.debug("Containment query %s: %d crossings -> %s", list(np.asarray(point, dtype=float)), count, inside)
    return inside
