"""
Geometry model: vertex/index storage and smooth vertex normals.

A mesh is an (N, 3) vertex position array, an (N, 3) normal accumulator and a
flat index array whose consecutive triples name triangles. Triangle normals
follow the convention ``cross(A - B, C - B)`` and are never normalized here;
their length is twice the triangle area.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import trimesh


class MeshTopologyError(ValueError):
    """Index data that does not describe valid triangles for the vertex set."""


def validate_topology(vertices: np.ndarray, indices: np.ndarray) -> None:
    """
    Raise MeshTopologyError unless every index names an existing vertex and
    the index count is a multiple of 3.
    """
    if vertices.ndim != 2 or vertices.shape[1] != 3:
        raise MeshTopologyError(
            f"Invalid topology: vertices must have shape (N, 3), got {vertices.shape}"
        )
    if indices.ndim != 1:
        raise MeshTopologyError(
            f"Invalid topology: indices must be a flat sequence, got shape {indices.shape}"
        )
    if indices.size % 3 != 0:
        raise MeshTopologyError(
            f"Invalid topology: index count {indices.size} is not a multiple of 3"
        )
    if indices.size == 0:
        return

    n_vertices = int(vertices.shape[0])
    lo = int(indices.min())
    hi = int(indices.max())
    if lo < 0 or hi >= n_vertices:
        bad = int(lo if lo < 0 else hi)
        pos = int(np.flatnonzero(indices == bad)[0])
        raise MeshTopologyError(
            f"Invalid topology: index {bad} at position {pos} is outside "
            f"[0, {n_vertices})"
        )


def triangle_normal(a: Sequence[float], b: Sequence[float], c: Sequence[float]) -> np.ndarray:
    """Unnormalized normal of triangle (A, B, C): ``cross(A - B, C - B)``."""
    b_arr = np.asarray(b, dtype=np.float64)
    e1 = np.asarray(a, dtype=np.float64) - b_arr
    e2 = np.asarray(c, dtype=np.float64) - b_arr
    return np.cross(e1, e2)


def face_normals(vertices: np.ndarray, indices: np.ndarray) -> np.ndarray:
    """(M, 3) unnormalized normals for every triangle of the index array."""
    faces = np.asarray(indices, dtype=np.int64).reshape(-1, 3)
    if len(faces) == 0:
        return np.zeros((0, 3), dtype=np.float64)
    v_a = vertices[faces[:, 0]]
    v_b = vertices[faces[:, 1]]
    v_c = vertices[faces[:, 2]]
    return np.cross(v_a - v_b, v_c - v_b)


def accumulate_normals(normals: np.ndarray, vertices: np.ndarray, indices: np.ndarray) -> None:
    """
    Add each triangle's unnormalized normal to its three vertices, in index
    order. ``normals`` is expected to be zeroed by the caller.
    """
    faces = np.asarray(indices, dtype=np.int64).reshape(-1, 3)
    if len(faces) == 0:
        return
    fn = face_normals(vertices, indices)
    np.add.at(normals, faces[:, 0], fn)
    np.add.at(normals, faces[:, 1], fn)
    np.add.at(normals, faces[:, 2], fn)


@dataclass(frozen=True)
class TriangleView:
    """
    Snapshot of one triangle: its three vertex ids and their positions.

    Positions are copied when the view is taken, so a view never observes
    later edits to the mesh it came from.
    """
    index: int
    vertex_ids: tuple[int, int, int]
    a: np.ndarray
    b: np.ndarray
    c: np.ndarray

    def normal(self) -> np.ndarray:
        return triangle_normal(self.a, self.b, self.c)

    def area(self) -> float:
        return 0.5 * float(np.linalg.norm(self.normal()))


@dataclass
class MeshData:
    """
    Triangle mesh container.

    Attributes:
        vertices: (N, 3) vertex positions
        indices: (3M,) flat triangle index array, counter-clockwise triples
        normals: (N, 3) accumulated (unnormalized) vertex normals
        filepath: source file, if loaded from disk
    """
    vertices: np.ndarray
    indices: np.ndarray
    normals: Optional[np.ndarray] = None
    filepath: Optional[Path] = None

    _bounds: Optional[np.ndarray] = field(default=None, repr=False)

    def __post_init__(self):
        self.vertices = np.asarray(self.vertices, dtype=np.float64)
        if self.vertices.size == 0:
            self.vertices = self.vertices.reshape(0, 3)
        self.indices = np.asarray(self.indices, dtype=np.int64).reshape(-1)

        validate_topology(self.vertices, self.indices)

        if self.normals is None:
            self.normals = np.zeros_like(self.vertices)
            self.calculate_normals()
        else:
            self.normals = np.asarray(self.normals, dtype=np.float64)
            if self.normals.shape != self.vertices.shape:
                raise ValueError(
                    f"normals shape {self.normals.shape} does not match vertices {self.vertices.shape}"
                )

    @classmethod
    def from_faces(cls, vertices, faces, **kwargs) -> 'MeshData':
        """Build from an (M, 3) face array instead of a flat index list."""
        return cls(vertices=vertices, indices=np.asarray(faces).reshape(-1), **kwargs)

    @property
    def n_vertices(self) -> int:
        return int(len(self.vertices))

    @property
    def n_triangles(self) -> int:
        return int(self.indices.size // 3)

    @property
    def faces(self) -> np.ndarray:
        """(M, 3) view of the index array"""
        return self.indices.reshape(-1, 3)

    @property
    def bounds(self) -> np.ndarray:
        """[[min_x, min_y, min_z], [max_x, max_y, max_z]]"""
        if self._bounds is None:
            if self.n_vertices == 0:
                self._bounds = np.zeros((2, 3), dtype=np.float64)
            else:
                self._bounds = np.array([
                    self.vertices.min(axis=0),
                    self.vertices.max(axis=0),
                ])
        return self._bounds

    @property
    def extents(self) -> np.ndarray:
        return self.bounds[1] - self.bounds[0]

    def validate(self) -> None:
        """Re-check topology, e.g. after the arrays were edited in place."""
        validate_topology(np.asarray(self.vertices), np.asarray(self.indices))

    def triangle(self, i: int) -> TriangleView:
        """Triangle ``i`` (0-based, in index order)."""
        n = self.n_triangles
        if i < 0 or i >= n:
            raise IndexError(f"triangle index {i} out of range for {n} triangles")
        ids = self.indices[3 * i:3 * i + 3]
        return TriangleView(
            index=int(i),
            vertex_ids=(int(ids[0]), int(ids[1]), int(ids[2])),
            a=self.vertices[ids[0]].copy(),
            b=self.vertices[ids[1]].copy(),
            c=self.vertices[ids[2]].copy(),
        )

    def face_normals(self) -> np.ndarray:
        return face_normals(self.vertices, self.indices)

    def triangle_areas(self) -> np.ndarray:
        return 0.5 * np.linalg.norm(self.face_normals(), axis=1)

    def clear_normals(self) -> None:
        assert self.normals is not None
        self.normals.fill(0.0)

    def calculate_normals(self) -> None:
        """
        Accumulate face normals into the vertex normals.

        Expects zeroed normals (fresh mesh or after clear_normals()); use
        recompute_normals() to do both.
        """
        assert self.normals is not None
        accumulate_normals(self.normals, self.vertices, self.indices)

    def recompute_normals(self) -> None:
        self.clear_normals()
        self.calculate_normals()

    def unit_normals(self) -> np.ndarray:
        """Normalized copy of the vertex normals for shading consumers."""
        assert self.normals is not None
        norms = np.linalg.norm(self.normals, axis=1, keepdims=True)
        norms[norms == 0] = 1
        return self.normals / norms

    def copy(self) -> 'MeshData':
        assert self.normals is not None
        return MeshData(
            vertices=self.vertices.copy(),
            indices=self.indices.copy(),
            normals=self.normals.copy(),
            filepath=self.filepath,
        )

    def to_trimesh(self) -> 'trimesh.Trimesh':
        return trimesh.Trimesh(
            vertices=self.vertices,
            faces=self.faces,
            process=False,
        )

    @classmethod
    def from_trimesh(cls, mesh: 'trimesh.Trimesh', filepath: Optional[Path] = None) -> 'MeshData':
        return cls(
            vertices=np.asarray(mesh.vertices, dtype=np.float64),
            indices=np.asarray(mesh.faces, dtype=np.int64).reshape(-1),
            filepath=filepath,
        )
