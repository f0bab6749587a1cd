import os.path
import sys
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
import unittest
import numpy as np
import taichi as ti

ti.init(arch=ti.cpu)

from isosurface.volume import *
from isosurface.tools.extract_surfaces import *


def make_labels():
    labels = np.zeros((10, 10, 10), dtype=np.int32)
    labels[1:4, 1:4, 1:4] = 3
    labels[6:9, 5:9, 6:8] = 7
    return labels


class ExtractSurfacesTest(unittest.TestCase):

    def test_find_labels(self):
        self.assertEqual(find_labels(FieldVolume(make_labels())), [3, 7])
        self.assertEqual(find_labels(make_labels()), [3, 7])
        self.assertEqual(find_labels(FieldVolume(np.zeros((2, 2, 2), dtype=np.int32))), [])

    def test_disjoint_labels(self):
        volume = FieldVolume(make_labels())
        meshes = extract_surfaces(volume, cell_size=(1, 1, 1))

        self.assertEqual(meshes.get_mesh_ids(), [3, 7])
        first = meshes.get(3)
        second = meshes.get(7)
        self.assertGreater(first.num_triangles, 0)
        self.assertGreater(second.num_triangles, 0)

        self.assertLess(first.max_x, second.min_x)
        self.assertLess(first.max_y, second.min_y)
        self.assertLess(first.max_z, second.min_z)

        first_vertices = {tuple(v) for v in first.vertices.tolist()}
        second_vertices = {tuple(v) for v in second.vertices.tolist()}
        self.assertFalse(first_vertices & second_vertices)

        np.testing.assert_allclose(first.bounding_box().origin(), [1, 1, 1], atol=1e-3)
        np.testing.assert_allclose(first.bounding_box().extents(), [3, 3, 3], atol=2e-3)
        np.testing.assert_allclose(second.bounding_box().extents(), [3, 4, 2], atol=2e-3)

        box = meshes.bounding_box()
        self.assertAlmostEqual(box.min_x, first.min_x)
        self.assertAlmostEqual(box.max_x, second.max_x)

    def test_find_labels_needs_label_data(self):
        volume = FunctionVolume(lambda x, y, z: x, BoundingBox(0, 0, 0, 1, 1, 1))
        with self.assertRaises(AssertionError):
            find_labels(volume)

    def test_neighboring_large_labels(self):
        labels = np.zeros((6, 6, 6), dtype=np.int32)
        labels[1:3, 1:3, 1:3] = 2 ** 24 + 1
        labels[3:5, 3:5, 3:5] = 2 ** 24
        meshes = extract_surfaces(FieldVolume(labels), cell_size=(1, 1, 1))

        self.assertEqual(meshes.get_mesh_ids(), [2 ** 24, 2 ** 24 + 1])
        lower = meshes.get(2 ** 24 + 1)
        upper = meshes.get(2 ** 24)
        self.assertGreater(lower.num_triangles, 0)
        self.assertGreater(upper.num_triangles, 0)
        np.testing.assert_allclose(lower.bounding_box().origin(), [1, 1, 1], atol=1e-3)
        np.testing.assert_allclose(lower.bounding_box().extents(), [2, 2, 2], atol=2e-3)
        np.testing.assert_allclose(upper.bounding_box().origin(), [3, 3, 3], atol=1e-3)
        np.testing.assert_allclose(upper.bounding_box().extents(), [2, 2, 2], atol=2e-3)

    def test_selected_labels(self):
        volume = FieldVolume(make_labels())
        meshes = extract_surfaces(volume, cell_size=(1, 1, 1), labels=[7, 5])
        self.assertEqual(meshes.get_mesh_ids(), [5, 7])
        self.assertEqual(meshes.get(5).num_triangles, 0)
        self.assertIsNone(meshes.get(3))

    def test_extract_surface(self):
        data = np.zeros((6, 6, 6), dtype=np.float32)
        data[2:4, 2:4, 2:4] = 1.0
        mesh = extract_surface(FieldVolume(data), threshold=0.5, cell_size=(1, 1, 1))
        self.assertGreater(mesh.num_triangles, 0)
        np.testing.assert_allclose(mesh.bounding_box().origin(), [2, 2, 2], atol=1e-3)

        empty = extract_surface(FieldVolume(data), threshold=2.0, cell_size=(1, 1, 1))
        self.assertEqual(empty.num_triangles, 0)


if __name__ == '__main__':
    unittest.main()
