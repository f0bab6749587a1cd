import os.path
import sys
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
import unittest
import numpy as np
from isosurface.mc_tables import *


class McTablesTest(unittest.TestCase):

    def test_shapes(self):
        self.assertEqual(EDGE_TABLE.shape, (256,))
        self.assertEqual(TRIANGLE_TABLE.shape, (256, 16))
        self.assertEqual(len(CORNER_OFFSETS), 8)
        self.assertEqual(len(EDGE_CORNERS), 12)

    def test_tables_are_read_only(self):
        with self.assertRaises(ValueError):
            EDGE_TABLE[0] = 1
        with self.assertRaises(ValueError):
            TRIANGLE_TABLE[0, 0] = 1

    def test_uniform_cubes_have_no_edges(self):
        self.assertEqual(EDGE_TABLE[0], 0)
        self.assertEqual(EDGE_TABLE[255], 0)
        self.assertTrue(np.all(TRIANGLE_TABLE[0] == NO_EDGE))
        self.assertTrue(np.all(TRIANGLE_TABLE[255] == NO_EDGE))

    def test_edge_mask_matches_corners(self):
        # an edge is crossed iff its two corners are classified differently
        for index in range(256):
            for edge_no, (a, b) in enumerate(EDGE_CORNERS):
                crossed = ((index >> a) & 1) != ((index >> b) & 1)
                self.assertEqual(bool(EDGE_TABLE[index] & (1 << edge_no)), crossed,
                                 "config {}, edge {}".format(index, edge_no))

    def test_triangles_use_exactly_the_crossed_edges(self):
        for index in range(256):
            row = list(TRIANGLE_TABLE[index])
            count = row.index(NO_EDGE)
            self.assertEqual(count % 3, 0)
            self.assertTrue(all(e == NO_EDGE for e in row[count:]))

            used = set(row[:count])
            crossed = {e for e in range(12) if EDGE_TABLE[index] & (1 << e)}
            self.assertEqual(used, crossed, "config {}".format(index))

    def test_corner_offsets_are_cube_corners(self):
        self.assertEqual(len(set(CORNER_OFFSETS)), 8)
        for a, b in EDGE_CORNERS:
            delta = np.abs(np.subtract(CORNER_OFFSETS[a], CORNER_OFFSETS[b]))
            self.assertEqual(delta.sum(), 1)


if __name__ == '__main__':
    unittest.main()
