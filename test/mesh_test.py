import os.path
import sys
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
import unittest
import numpy as np
import taichi as ti

ti.init(arch=ti.cpu)

from isosurface.mesh import *


def make_strip_mesh():
    mesh = Mesh()
    mesh.set_vertices([(0, 0, 0), (1, 0, 0), (0, 1, 0), (1, 1, 0), (2, 0, 0), (2, 1, 0)])
    mesh.set_triangles([(0, 1, 2), (3, 4, 5), (1, 2, 4)])
    mesh.set_normals([(0, 0, 1)] * 6)
    return mesh


class MeshTest(unittest.TestCase):

    def test_empty_mesh(self):
        mesh = Mesh()
        self.assertEqual(mesh.num_vertices, 0)
        self.assertEqual(mesh.num_triangles, 0)
        self.assertIsNone(mesh.bounding_box())
        mesh.update_normals()
        self.assertEqual(mesh.normals.shape, (0, 3))

    def test_accessors(self):
        mesh = Mesh()
        mesh.set_num_vertices(3)
        mesh.set_num_triangles(1)
        mesh.set_vertex(0, (0, 0, 0))
        mesh.set_vertex(1, (1, 0, 0))
        mesh.set_vertex(2, (0, 1, 0))
        mesh.set_normal(1, (0, 0, 1))
        mesh.set_triangle(0, 0, 1, 2)

        self.assertEqual(mesh.num_vertices, 3)
        np.testing.assert_array_equal(mesh.get_vertex(1), [1, 0, 0])
        np.testing.assert_array_equal(mesh.get_normal(1), [0, 0, 1])
        np.testing.assert_array_equal(mesh.get_triangle(0), [0, 1, 2])
        self.assertEqual(mesh.vertices.dtype, np.float32)
        self.assertEqual(mesh.triangles.dtype, np.int32)

    def test_resize_keeps_leading_entries(self):
        mesh = make_strip_mesh()
        mesh.set_num_vertices(2)
        np.testing.assert_array_equal(mesh.vertices, [[0, 0, 0], [1, 0, 0]])
        mesh.set_num_vertices(3)
        np.testing.assert_array_equal(mesh.get_vertex(2), [0, 0, 0])
        self.assertEqual(mesh.normals.shape, (3, 3))

    def test_bounding_box_follows_vertex_changes(self):
        mesh = make_strip_mesh()
        self.assertEqual((mesh.min_x, mesh.max_x, mesh.max_y, mesh.max_z), (0.0, 2.0, 1.0, 0.0))

        mesh.set_vertex(0, (-3, 0, 4))
        self.assertEqual(mesh.min_x, -3.0)
        self.assertEqual(mesh.max_z, 4.0)

        box = mesh.bounding_box()
        self.assertEqual(box, BoundingBox(-3, 0, 0, 5, 1, 4))

        mesh.set_vertices([(1, 1, 1)])
        self.assertEqual(mesh.min_x, 1.0)
        self.assertEqual(mesh.bounding_box().width, 0.0)

    def test_arrays_are_read_only(self):
        mesh = Mesh()
        mesh.set_vertices([(0, 0, 0), (1, 1, 1)])
        mesh.set_triangles([(0, 1, 1)])
        self.assertEqual(mesh.max_x, 1.0)

        with self.assertRaises(ValueError):
            mesh.vertices[1] = (5, 5, 5)
        with self.assertRaises(ValueError):
            mesh.get_vertex(1)[0] = 5
        with self.assertRaises(ValueError):
            mesh.normals[0] = (0, 0, 1)
        with self.assertRaises(ValueError):
            mesh.triangles[0] = (1, 0, 0)

        mesh.set_vertex(1, (5, 5, 5))
        self.assertEqual(mesh.max_x, 5.0)

    def test_single_triangle_normal(self):
        mesh = Mesh()
        mesh.set_vertices([(0, 0, 0), (1, 0, 0), (0, 1, 0)])
        mesh.set_triangles([(0, 1, 2)])
        mesh.update_normals()
        np.testing.assert_allclose(mesh.normals, [[0, 0, -1]] * 3, atol=1e-6)

    def test_normals_are_area_weighted(self):
        mesh = Mesh()
        # two triangles sharing vertex 0, the larger one in the xz plane
        mesh.set_vertices([(0, 0, 0), (1, 0, 0), (0, 1, 0), (0, 0, 3), (3, 0, 0)])
        mesh.set_triangles([(0, 1, 2), (0, 3, 4)])
        mesh.update_normals()

        normal = mesh.get_normal(0)
        self.assertAlmostEqual(float(np.linalg.norm(normal)), 1.0, places=5)
        expected = np.array([0.0, -9.0, -1.0]) / np.sqrt(82.0)
        np.testing.assert_allclose(normal, expected, atol=1e-5)

    def test_create_submesh_single_triangle(self):
        mesh = make_strip_mesh()
        mesh.set_normal(4, (1, 0, 0))
        submesh = mesh.create_submesh([2])

        self.assertEqual(submesh.num_triangles, 1)
        self.assertEqual(submesh.num_vertices, 3)
        np.testing.assert_array_equal(submesh.vertices, [[1, 0, 0], [0, 1, 0], [2, 0, 0]])
        np.testing.assert_array_equal(submesh.triangles, [[0, 1, 2]])
        np.testing.assert_array_equal(submesh.get_normal(2), [1, 0, 0])

        # the source mesh is untouched
        self.assertEqual(mesh.num_vertices, 6)
        self.assertEqual(mesh.num_triangles, 3)

    def test_create_submesh_keeps_triangle_order(self):
        mesh = make_strip_mesh()
        submesh = mesh.create_submesh([1, 0])
        self.assertEqual(submesh.num_vertices, 6)
        np.testing.assert_array_equal(submesh.vertices, mesh.vertices)
        np.testing.assert_array_equal(submesh.triangles, [[3, 4, 5], [0, 1, 2]])

    def test_create_empty_submesh(self):
        submesh = make_strip_mesh().create_submesh([])
        self.assertEqual(submesh.num_vertices, 0)
        self.assertEqual(submesh.num_triangles, 0)

    def test_create_submesh_rejects_bad_indices(self):
        mesh = make_strip_mesh()
        with self.assertRaises(AssertionError):
            mesh.create_submesh([3])
        with self.assertRaises(AssertionError):
            mesh.create_submesh([-1])

    def test_strip_removes_unused_vertices(self):
        mesh = make_strip_mesh()
        mesh.set_triangles([(5, 3, 4)])
        mesh.strip()
        np.testing.assert_array_equal(mesh.vertices, [[1, 1, 0], [2, 0, 0], [2, 1, 0]])
        np.testing.assert_array_equal(mesh.triangles, [[2, 0, 1]])
        self.assertEqual(mesh.min_x, 1.0)

    def test_set_normals_checks_count(self):
        mesh = make_strip_mesh()
        with self.assertRaises(AssertionError):
            mesh.set_normals([(0, 0, 1)])


class MeshesTest(unittest.TestCase):

    def test_add_and_get(self):
        meshes = Meshes()
        first = make_strip_mesh()
        second = Mesh()
        meshes.add(7, first)
        meshes.add(3, second)

        self.assertEqual(len(meshes), 2)
        self.assertEqual(meshes.get_mesh_ids(), [7, 3])
        self.assertIs(meshes.get(7), first)
        self.assertIsNone(meshes.get(5))
        self.assertIn(3, meshes)
        self.assertEqual([id for id, _ in meshes], [7, 3])

        meshes.add(7, second)
        self.assertEqual(meshes.get_mesh_ids(), [7, 3])
        self.assertIs(meshes.get(7), second)

    def test_bounding_box(self):
        meshes = Meshes()
        self.assertIsNone(meshes.bounding_box())

        meshes.add(1, Mesh())
        self.assertIsNone(meshes.bounding_box())

        meshes.add(2, make_strip_mesh())
        other = Mesh()
        other.set_vertices([(-1, 0.5, 2)])
        meshes.add(3, other)
        self.assertEqual(meshes.bounding_box(), BoundingBox(-1, 0, 0, 3, 1, 2))


if __name__ == '__main__':
    unittest.main()
