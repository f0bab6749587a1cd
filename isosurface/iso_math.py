import taichi as ti
import numpy as np


## @param vertices (V, 3) vertex positions
#  @param triangles (T, 3) vertex indices
#  @param normals (V, 3) accumulation buffer, expected to be zero
#  @detail Adds the unnormalized face normal (v2 - v0) x (v1 - v0) of every
#  triangle to the normals of its three vertices. The loop is serialized so
#  that the sums do not depend on scheduling.
@ti.kernel
def accumulate_face_normals(vertices: ti.types.ndarray(), triangles: ti.types.ndarray(),
                            normals: ti.types.ndarray()):
    ti.loop_config(serialize=True)
    for t in range(triangles.shape[0]):
        ind0 = triangles[t, 0]
        ind1 = triangles[t, 1]
        ind2 = triangles[t, 2]

        vert0 = ti.Vector([vertices[ind0, 0], vertices[ind0, 1], vertices[ind0, 2]])
        vert1 = ti.Vector([vertices[ind1, 0], vertices[ind1, 1], vertices[ind1, 2]])
        vert2 = ti.Vector([vertices[ind2, 0], vertices[ind2, 1], vertices[ind2, 2]])
        face_normal = (vert2 - vert0).cross(vert1 - vert0)

        for k in ti.static(range(3)):
            normals[ind0, k] += face_normal[k]
            normals[ind1, k] += face_normal[k]
            normals[ind2, k] += face_normal[k]


@ti.kernel
def normalize_rows(vectors: ti.types.ndarray()):
    for i in range(vectors.shape[0]):
        v = ti.math.normalize(ti.Vector([vectors[i, 0], vectors[i, 1], vectors[i, 2]]))
        for k in ti.static(range(3)):
            vectors[i, k] = v[k]


## @param vertices (V, 3) float32 vertex positions
#  @param triangles (T, 3) int32 vertex indices
#  @detail Returns (V, 3) float32 unit vertex normals, each the normalized sum of
#  the area weighted normals of the triangles around the vertex
def compute_vertex_normals(vertices: np.ndarray, triangles: np.ndarray) -> np.ndarray:
    normals = np.zeros((vertices.shape[0], 3), dtype=np.float32)
    if triangles.shape[0] == 0:
        return normals

    accumulate_face_normals(np.ascontiguousarray(vertices, dtype=np.float32),
                            np.ascontiguousarray(triangles, dtype=np.int32), normals)
    normalize_rows(normals)
    return normals


## Linear interpolation between the rows of p1 and p2, mu = 0 yields p1
def lerp(p1: np.ndarray, p2: np.ndarray, mu) -> np.ndarray:
    mu = np.asarray(mu, dtype=np.float64)
    if mu.ndim == 1:
        mu = mu[:, None]
    return p1 + mu * (p2 - p1)
