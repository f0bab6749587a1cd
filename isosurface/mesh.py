## @package mesh
# Triangle meshes produced by the isosurface extraction
import taichi as ti
import numpy as np
from isosurface.utils import *
from isosurface.volume import BoundingBox
from isosurface.iso_math import compute_vertex_normals


## A 3D mesh as a list of triangles over shared vertices, with one normal per vertex.
#
# Vertices and normals are (V, 3) float32 arrays, triangles a (T, 3) int32
# array of vertex indices. The bounding box is computed on demand and cached
# until the vertices change through one of the setters.
class Mesh:

    def __init__(self):
        self._vertices = np.zeros((0, 3), dtype=np.float32)
        self._normals = np.zeros((0, 3), dtype=np.float32)
        self._triangles = np.zeros((0, 3), dtype=np.int32)

        self._update_bounding_box = True
        self._min = np.full(3, np.inf, dtype=np.float32)
        self._max = np.full(3, -np.inf, dtype=np.float32)

    @property
    def num_vertices(self) -> int:
        return self._vertices.shape[0]

    @property
    def num_triangles(self) -> int:
        return self._triangles.shape[0]

    @property
    def vertices(self) -> np.ndarray:
        return Mesh._read_only(self._vertices)

    @property
    def normals(self) -> np.ndarray:
        return Mesh._read_only(self._normals)

    @property
    def triangles(self) -> np.ndarray:
        return Mesh._read_only(self._triangles)

    ## Resizes the vertices and normals, keeping the leading entries
    def set_num_vertices(self, num_vertices: int):
        self._vertices = Mesh._resized(self._vertices, num_vertices)
        self._normals = Mesh._resized(self._normals, num_vertices)
        self._update_bounding_box = True

    def set_num_triangles(self, num_triangles: int):
        self._triangles = Mesh._resized(self._triangles, num_triangles)

    def set_vertex(self, index: int, vertex):
        self._vertices[index] = vertex
        self._update_bounding_box = True

    def set_normal(self, index: int, normal):
        self._normals[index] = normal

    def set_triangle(self, index: int, v0: int, v1: int, v2: int):
        self._triangles[index] = (v0, v1, v2)

    ## Replaces all vertices, normals are reset to zero
    def set_vertices(self, vertices):
        vertices = np.asarray(vertices, dtype=np.float32).reshape(-1, 3)
        self._vertices = np.ascontiguousarray(vertices)
        self._normals = np.zeros_like(self._vertices)
        self._update_bounding_box = True

    def set_normals(self, normals):
        normals = np.asarray(normals, dtype=np.float32).reshape(-1, 3)
        iso_assert(normals.shape[0] == self.num_vertices,
                   "Expected {} normals, got {}.".format(self.num_vertices, normals.shape[0]))
        self._normals = np.ascontiguousarray(normals)

    def set_triangles(self, triangles):
        self._triangles = np.ascontiguousarray(np.asarray(triangles, dtype=np.int32).reshape(-1, 3))

    def get_vertex(self, index: int) -> np.ndarray:
        return self.vertices[index]

    def get_normal(self, index: int) -> np.ndarray:
        return self.normals[index]

    def get_triangle(self, index: int) -> np.ndarray:
        return self.triangles[index]

    ## Recomputes the vertex normals from the triangles
    def update_normals(self):
        self._normals = compute_vertex_normals(self._vertices, self._triangles)

    @property
    def min_x(self):
        return float(self._bounds()[0][0])

    @property
    def min_y(self):
        return float(self._bounds()[0][1])

    @property
    def min_z(self):
        return float(self._bounds()[0][2])

    @property
    def max_x(self):
        return float(self._bounds()[1][0])

    @property
    def max_y(self):
        return float(self._bounds()[1][1])

    @property
    def max_z(self):
        return float(self._bounds()[1][2])

    ## Returns the BoundingBox of the vertices, None for a mesh without vertices
    def bounding_box(self):
        if self.num_vertices == 0:
            return None
        lower, upper = self._bounds()
        size = upper - lower
        return BoundingBox(lower[0], lower[1], lower[2], size[0], size[1], size[2])

    ## @param triangles indices of the triangles to keep, in the order they appear in the submesh
    #  @detail Returns a new mesh with the selected triangles and only the vertices they reference.
    #  Kept vertices keep their coordinates, normals and relative order.
    def create_submesh(self, triangles) -> "Mesh":
        triangles = np.asarray(triangles, dtype=np.int64).reshape(-1)
        iso_assert(np.all((triangles >= 0) & (triangles < self.num_triangles)),
                   "Submesh triangle index out of range [0, {}).".format(self.num_triangles))

        submesh = Mesh()
        submesh._vertices = self._vertices.copy()
        submesh._normals = self._normals.copy()
        submesh._triangles = self._triangles[triangles].copy()

        submesh.strip()

        return submesh

    ## Removes all vertices (and their normals) that are not used by any triangle
    def strip(self):
        # tag all used vertices
        used = np.zeros(self.num_vertices, dtype=bool)
        used[self._triangles.reshape(-1)] = True

        # index of every used vertex in the reduced arrays
        new_index = np.cumsum(used, dtype=np.int64) - 1

        self._vertices = np.ascontiguousarray(self._vertices[used])
        self._normals = np.ascontiguousarray(self._normals[used])
        self._triangles = new_index[self._triangles].astype(np.int32)
        self._update_bounding_box = True

    ## Writes the mesh with its normals to a PLY file
    def export_ply(self, file_path: str):
        iso_assert(self.num_vertices > 0 and self.num_triangles > 0, "Cannot export an empty mesh.")

        writer = ti.tools.PLYWriter(num_vertices=self.num_vertices, num_faces=self.num_triangles, face_type="tri")
        writer.add_vertex_pos(self._vertices[:, 0], self._vertices[:, 1], self._vertices[:, 2])
        writer.add_vertex_normal(self._normals[:, 0], self._normals[:, 1], self._normals[:, 2])
        writer.add_faces(self._triangles.reshape(-1))
        writer.export(file_path)

    def _bounds(self):
        if self._update_bounding_box:
            if self.num_vertices > 0:
                self._min = self._vertices.min(axis=0)
                self._max = self._vertices.max(axis=0)
            else:
                self._min = np.full(3, np.inf, dtype=np.float32)
                self._max = np.full(3, -np.inf, dtype=np.float32)
            self._update_bounding_box = False
        return self._min, self._max

    ## Arrays handed out are views that cannot be written, changes go through the setters
    @staticmethod
    def _read_only(array: np.ndarray) -> np.ndarray:
        view = array.view()
        view.setflags(write=False)
        return view

    @staticmethod
    def _resized(array: np.ndarray, rows: int) -> np.ndarray:
        resized = np.zeros((rows, array.shape[1]), dtype=array.dtype)
        keep = min(rows, array.shape[0])
        resized[:keep] = array[:keep]
        return resized

    def __repr__(self):
        return "Mesh({} vertices, {} triangles)".format(self.num_vertices, self.num_triangles)


## A set of meshes, each identified by an integer id (e.g. the label it was extracted for)
class Meshes:

    def __init__(self):
        self._meshes = {}
        self._ids = []

        self._update_bounding_box = True
        self._min = np.full(3, np.inf, dtype=np.float32)
        self._max = np.full(3, -np.inf, dtype=np.float32)

    def add(self, id: int, mesh: Mesh):
        if id not in self._meshes:
            self._ids.append(id)
        self._meshes[id] = mesh

        self._update_bounding_box = True

    ## Returns the mesh with the given id, None if there is none
    def get(self, id: int):
        return self._meshes.get(id)

    ## Returns the ids in the order they were added
    def get_mesh_ids(self):
        return list(self._ids)

    def __len__(self):
        return len(self._ids)

    def __contains__(self, id):
        return id in self._meshes

    def __iter__(self):
        for id in self._ids:
            yield id, self._meshes[id]

    ## Returns the BoundingBox around all meshes, None if no mesh has vertices
    def bounding_box(self):
        if self._update_bounding_box:
            self._min = np.full(3, np.inf, dtype=np.float32)
            self._max = np.full(3, -np.inf, dtype=np.float32)
            for id in self._ids:
                box = self._meshes[id].bounding_box()
                if box is None:
                    continue
                self._min = np.minimum(self._min, [box.min_x, box.min_y, box.min_z])
                self._max = np.maximum(self._max, [box.max_x, box.max_y, box.max_z])
            self._update_bounding_box = False

        if not np.all(np.isfinite(self._min)):
            return None
        size = self._max - self._min
        return BoundingBox(self._min[0], self._min[1], self._min[2], size[0], size[1], size[2])
