import unittest
from collections import Counter

import numpy as np
import trimesh

from src.core.mesh_data import MeshData, MeshTopologyError
from src.core.subdivision import MidpointSubdivider, edge_key, subdivide


def _make_square() -> MeshData:
    vertices = np.array(
        [
            [0.0, 0.0, 0.0],
            [1.0, 0.0, 0.0],
            [1.0, 1.0, 0.0],
            [0.0, 1.0, 0.0],
        ],
        dtype=np.float64,
    )
    return MeshData(vertices=vertices, indices=[0, 2, 1, 0, 3, 2])


def _make_unit_cube() -> MeshData:
    # trimesh winds faces for cross(B - A, C - A); reverse them so that
    # cross(A - B, C - B) points outward.
    box = trimesh.creation.box(extents=(1.0, 1.0, 1.0))
    vertices = np.asarray(box.vertices, dtype=np.float64) + 0.5
    faces = np.asarray(box.faces, dtype=np.int64)[:, ::-1]
    return MeshData(vertices=vertices, indices=faces.reshape(-1))


def _edge_use_counts(mesh: MeshData) -> Counter:
    counts: Counter = Counter()
    for a, b, c in mesh.faces:
        for i, j in ((a, b), (b, c), (c, a)):
            counts[edge_key(int(i), int(j))] += 1
    return counts


class TestEdgeKey(unittest.TestCase):
    def test_symmetric(self):
        for i, j in [(0, 1), (3, 7), (12, 5), (1000, 999999)]:
            self.assertEqual(edge_key(i, j), edge_key(j, i))

    def test_injective_over_unordered_pairs(self):
        keys = {edge_key(i, j) for i in range(60) for j in range(i + 1)}
        self.assertEqual(len(keys), 60 * 61 // 2)

    def test_array_form_matches_scalar_form(self):
        i = np.array([0, 4, 9, 2], dtype=np.int64)
        j = np.array([3, 1, 9, 8], dtype=np.int64)
        expected = [edge_key(int(a), int(b)) for a, b in zip(i, j)]
        np.testing.assert_array_equal(edge_key(i, j), expected)
        np.testing.assert_array_equal(edge_key(i, j), edge_key(j, i))


class TestMidpointSubdivision(unittest.TestCase):
    def test_single_triangle_layout(self):
        mesh = MeshData(
            vertices=[[0.0, 0.0, 0.0], [2.0, 0.0, 0.0], [0.0, 2.0, 0.0]],
            indices=[0, 1, 2],
        )
        out = MidpointSubdivider().subdivide(mesh)

        self.assertEqual(out.n_triangles, 4)
        self.assertEqual(out.n_vertices, 6)
        # Midpoints are appended per triangle in A-C, A-B, B-C order.
        np.testing.assert_allclose(out.vertices[:3], mesh.vertices)
        np.testing.assert_allclose(out.vertices[3], [0.0, 1.0, 0.0])  # mAC
        np.testing.assert_allclose(out.vertices[4], [1.0, 0.0, 0.0])  # mAB
        np.testing.assert_allclose(out.vertices[5], [1.0, 1.0, 0.0])  # mBC
        np.testing.assert_array_equal(
            out.indices,
            [0, 4, 3, 3, 4, 5, 3, 5, 2, 4, 1, 5],
        )

    def test_children_keep_parent_orientation(self):
        mesh = MeshData(
            vertices=[[0.0, 0.0, 0.0], [2.0, 0.0, 0.0], [0.0, 2.0, 0.0]],
            indices=[0, 1, 2],
        )
        parent = mesh.face_normals()[0]
        out = subdivide(mesh)
        for child in out.face_normals():
            self.assertGreater(float(np.dot(child, parent)), 0.0)
        # Children split the parent area evenly.
        np.testing.assert_allclose(out.triangle_areas(), np.full(4, 0.5))

    def test_shared_edge_reuses_midpoint(self):
        mesh = _make_square()
        out = subdivide(mesh)

        # 4 corners + 5 unique edges (the diagonal is shared)
        self.assertEqual(out.n_vertices, 9)
        self.assertEqual(out.n_triangles, 8)
        unique_positions = np.unique(np.round(out.vertices, 12), axis=0)
        self.assertEqual(len(unique_positions), out.n_vertices)

        diag_mid = np.flatnonzero(np.all(np.isclose(out.vertices, [0.5, 0.5, 0.0]), axis=1))
        self.assertEqual(len(diag_mid), 1)
        first_half = set(out.indices[:12].tolist())
        second_half = set(out.indices[12:].tolist())
        self.assertIn(int(diag_mid[0]), first_half)
        self.assertIn(int(diag_mid[0]), second_half)

    def test_closed_cube_stays_closed(self):
        cube = _make_unit_cube()
        out = subdivide(cube)

        self.assertEqual(out.n_triangles, 48)
        # 8 corners + 18 edges (12 cube edges + 6 face diagonals)
        self.assertEqual(out.n_vertices, 26)
        counts = _edge_use_counts(out)
        self.assertTrue(all(c == 2 for c in counts.values()))

    def test_cube_children_face_outward(self):
        out = subdivide(_make_unit_cube())
        centroids = out.vertices[out.faces].mean(axis=1)
        outward = centroids - 0.5
        dots = np.einsum("ij,ij->i", out.face_normals(), outward)
        self.assertTrue(np.all(dots > 0.0))

    def test_counts_on_random_mesh(self):
        rng = np.random.default_rng(7)
        vertices = rng.normal(size=(40, 3))
        indices = rng.integers(0, 40, size=3 * 30)
        mesh = MeshData(vertices=vertices, indices=indices)

        out = subdivide(mesh)
        self.assertEqual(out.n_triangles, 4 * mesh.n_triangles)
        self.assertGreaterEqual(out.n_vertices, mesh.n_vertices)
        np.testing.assert_allclose(out.vertices[: mesh.n_vertices], mesh.vertices)

    def test_planar_mesh_normals_stay_parallel(self):
        out = subdivide(_make_square(), levels=2)
        unit = out.unit_normals()
        np.testing.assert_allclose(unit, np.tile([0.0, 0.0, 1.0], (out.n_vertices, 1)), atol=1e-12)
        self.assertTrue(np.all(out.normals[:, 2] > 0.0))

    def test_normals_are_recomputed_not_copied(self):
        mesh = _make_square()
        mesh.normals[:] = 123.0
        out = subdivide(mesh)
        expected = MeshData(vertices=out.vertices, indices=out.indices)
        np.testing.assert_allclose(out.normals, expected.normals)

    def test_input_is_not_mutated(self):
        mesh = _make_square()
        vertices = mesh.vertices.copy()
        indices = mesh.indices.copy()
        normals = mesh.normals.copy()
        subdivide(mesh)
        np.testing.assert_array_equal(mesh.vertices, vertices)
        np.testing.assert_array_equal(mesh.indices, indices)
        np.testing.assert_array_equal(mesh.normals, normals)

    def test_degenerate_triangle_gets_coincident_midpoints(self):
        mesh = MeshData(
            vertices=[[1.0, 1.0, 1.0], [1.0, 1.0, 1.0], [1.0, 1.0, 1.0]],
            indices=[0, 1, 2],
        )
        out = subdivide(mesh)
        self.assertEqual(out.n_triangles, 4)
        np.testing.assert_allclose(out.vertices, np.ones((6, 3)))
        np.testing.assert_allclose(out.triangle_areas(), np.zeros(4))

    def test_repeated_subdivision(self):
        cube = _make_unit_cube()
        twice = subdivide(cube, levels=2)
        self.assertEqual(twice.n_triangles, 16 * cube.n_triangles)
        again = subdivide(subdivide(cube))
        np.testing.assert_array_equal(twice.indices, again.indices)
        np.testing.assert_allclose(twice.vertices, again.vertices)

    def test_zero_levels_returns_copy(self):
        mesh = _make_square()
        out = subdivide(mesh, levels=0)
        self.assertIsNot(out, mesh)
        np.testing.assert_array_equal(out.indices, mesh.indices)

    def test_negative_levels_rejected(self):
        with self.assertRaises(ValueError):
            subdivide(_make_square(), levels=-1)

    def test_empty_mesh(self):
        mesh = MeshData(vertices=[[0.0, 0.0, 0.0]], indices=[])
        out = subdivide(mesh)
        self.assertEqual(out.n_triangles, 0)
        self.assertEqual(out.n_vertices, 1)

    def test_externally_corrupted_mesh_rejected(self):
        mesh = _make_square()
        mesh.indices = np.array([0, 1, 2, 3, 4, 5])
        with self.assertRaises(MeshTopologyError):
            subdivide(mesh)


if __name__ == "__main__":
    unittest.main()
