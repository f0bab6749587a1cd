## @package MarchingCubes converts sampled volumes to triangle meshes
#
# The volume is divided into cells of a fixed size. The corners of each cell
# are sampled and classified by an interior test, the cube configuration is
# looked up in the marching cubes tables, and every crossed edge receives one
# vertex that is shared with all other cells touching that edge.
#
# Grid layout: grid vertex (i, j, k) sits at
#     bounding_box.min + (ijk - GRID_PADDING) * cell_size
# so that a margin of one cell around the volume is sampled as well and
# surfaces touching the volume boundary are closed.
#
# Edge addressing: each grid vertex owns three edge slots, one per axis
# (0 -> +x, 1 -> +y, 2 -> +z). The id of an edge is the id of its lower grid
# vertex plus its slot, so neighboring cells compute identical ids for shared
# edges without any lookup.
import math
import numpy as np
from isosurface.utils import *
from isosurface.mc_tables import *
from isosurface.iso_math import lerp
from isosurface.interior_test import as_interior_test
from isosurface.mesh import Mesh

## Number of bisection steps used to locate a crossing on an edge
SUBDIVISION_ITERATIONS = 10

## Number of cells sampled in front of the volume origin
GRID_PADDING = 1

## For each edge, the offset of its lower grid vertex from the cell's lower corner and its slot
EDGE_ANCHORS = (
    (0, 0, 0, 1),
    (0, 1, 0, 0),
    (1, 0, 0, 1),
    (0, 0, 0, 0),
    (0, 0, 1, 1),
    (0, 1, 1, 0),
    (1, 0, 1, 1),
    (0, 0, 1, 0),
    (0, 0, 0, 2),
    (0, 1, 0, 2),
    (1, 1, 0, 2),
    (1, 0, 0, 2),
)


## A vertex of the surface under construction, identified by the id of the edge it lies on
class Point3dId:
    __slots__ = ("x", "y", "z", "edge_id", "new_id")

    def __init__(self, point, edge_id: int):
        self.x = float(point[0])
        self.y = float(point[1])
        self.z = float(point[2])
        self.edge_id = edge_id
        self.new_id = None

    def __iter__(self):
        yield self.x
        yield self.y
        yield self.z


## The implicit grid of cells laid over a volume's bounding box
class CellGrid:

    def __init__(self, bounding_box, cell_size_x, cell_size_y, cell_size_z):
        iso_assert(cell_size_x > 0 and cell_size_y > 0 and cell_size_z > 0,
                   "Cell sizes must be positive, got ({}, {}, {}).".format(cell_size_x, cell_size_y, cell_size_z))

        self.cell_size = np.array([cell_size_x, cell_size_y, cell_size_z], dtype=np.float64)
        self.origin = bounding_box.origin() - GRID_PADDING * self.cell_size

        extents = bounding_box.extents()
        self.n_cells_x = int(math.ceil(extents[0] / cell_size_x)) + GRID_PADDING
        self.n_cells_y = int(math.ceil(extents[1] / cell_size_y)) + GRID_PADDING
        self.n_cells_z = int(math.ceil(extents[2] / cell_size_z)) + GRID_PADDING

    @property
    def vertex_shape(self):
        return self.n_cells_x + 1, self.n_cells_y + 1, self.n_cells_z + 1

    def vertex_position(self, nx, ny, nz) -> np.ndarray:
        return self.origin + np.array([nx, ny, nz], dtype=np.float64) * self.cell_size

    ## @param indices an (N, 3) array of grid vertex indices
    def vertex_positions(self, indices) -> np.ndarray:
        return self.origin + np.asarray(indices, dtype=np.float64).reshape(-1, 3) * self.cell_size

    ## Returns the world positions of all grid vertices as an (N, 3) array, x varying slowest
    def grid_points(self) -> np.ndarray:
        axes = [self.origin[a] + np.arange(self.vertex_shape[a], dtype=np.float64) * self.cell_size[a]
                for a in range(3)]
        xs, ys, zs = np.meshgrid(axes[0], axes[1], axes[2], indexing="ij")
        return np.stack([xs.ravel(), ys.ravel(), zs.ravel()], axis=1)

    def vertex_id(self, nx: int, ny: int, nz: int) -> int:
        return 3 * (nz * (self.n_cells_x + 1) * (self.n_cells_y + 1) + ny * (self.n_cells_x + 1) + nx)

    ## @param nx, ny, nz the cell coordinates
    #  @param edge_no the edge of the cell, 0 - 11
    #  @detail Returns the id shared by every cell that touches the edge
    def edge_id(self, nx: int, ny: int, nz: int, edge_no: int) -> int:
        iso_assert(0 <= edge_no < 12, "Invalid edge number {}.".format(edge_no))
        dx, dy, dz, slot = EDGE_ANCHORS[edge_no]
        return self.vertex_id(nx + dx, ny + dy, nz + dz) + slot

    ## Returns the grid vertex indices of the two corners joined by an edge of cell (x, y, z)
    def edge_endpoints(self, x: int, y: int, z: int, edge_no: int):
        corner_a, corner_b = EDGE_CORNERS[edge_no]
        ax, ay, az = CORNER_OFFSETS[corner_a]
        bx, by, bz = CORNER_OFFSETS[corner_b]
        return (x + ax, y + ay, z + az), (x + bx, y + by, z + bz)

    ## Returns the edges whose vertices are computed by cell (x, y, z).
    #  Every cell computes the three edges leaving its lower corner; the cells in
    #  the last column, row and layer also compute the edges on the outer faces
    #  of the grid, which no other cell visits.
    def owned_edges(self, x: int, y: int, z: int):
        edges = [3, 0, 8]

        last_x = x == self.n_cells_x - 1
        last_y = y == self.n_cells_y - 1
        last_z = z == self.n_cells_z - 1

        if last_x:
            edges += [2, 11]
        if last_y:
            edges += [1, 9]
        if last_z:
            edges += [4, 7]
        if last_x and last_y:
            edges.append(10)
        if last_x and last_z:
            edges.append(6)
        if last_y and last_z:
            edges.append(5)

        return edges


## @param grid the CellGrid
#  @param x, y, z the cell coordinates
#  @detail Samples the 8 corners of a cell and returns its configuration index,
#  bit k is set if corner k is outside
def classify_cube(volume, interior_test, grid: CellGrid, x: int, y: int, z: int) -> int:
    interior_test = as_interior_test(interior_test)
    corners = grid.vertex_positions([(x + dx, y + dy, z + dz) for dx, dy, dz in CORNER_OFFSETS])
    inside = interior_test.classify(volume.sample_points(corners))

    index = 0
    for k in range(8):
        if not inside[k]:
            index |= 1 << k
    return index


## @param outside a boolean array over all grid vertices, True where the sample is outside
#  @detail Returns the configuration index of every cell, indexed [x, y, z]
def classify_cells(outside: np.ndarray) -> np.ndarray:
    nx, ny, nz = (s - 1 for s in outside.shape)
    index = np.zeros((nx, ny, nz), dtype=np.int32)
    for k, (dx, dy, dz) in enumerate(CORNER_OFFSETS):
        index |= outside[dx:dx + nx, dy:dy + ny, dz:dz + nz].astype(np.int32) << k
    return index


## @param p1s (N, 3) exterior end points
#  @param p2s (N, 3) interior end points
#  @detail Locates the surface crossing on each edge by bisection: mu moves
#  towards the exterior end while the sample is inside and towards the
#  interior end otherwise, with a step halved every iteration
def intersect_edges(volume, interior_test, p1s, p2s) -> np.ndarray:
    interior_test = as_interior_test(interior_test)
    p1s = np.asarray(p1s, dtype=np.float64).reshape(-1, 3)
    p2s = np.asarray(p2s, dtype=np.float64).reshape(-1, 3)

    mu = np.full(p1s.shape[0], 0.5)
    delta = 0.25
    for _ in range(SUBDIVISION_ITERATIONS):
        inside = interior_test.classify(volume.sample_points(lerp(p1s, p2s, mu)))
        mu = np.where(inside, mu - delta, mu + delta)
        delta *= 0.5

    return lerp(p1s, p2s, mu)


## Locates the crossing between an exterior point p1 and an interior point p2
def intersect_edge(volume, interior_test, p1, p2) -> np.ndarray:
    return intersect_edges(volume, interior_test, p1, p2)[0]


## Builds the surface of one volume. A builder is used for a single extraction.
class SurfaceBuilder:

    def __init__(self, volume, interior_test, cell_size_x, cell_size_y, cell_size_z):
        self.volume = volume
        self.interior_test = as_interior_test(interior_test)
        self.grid = CellGrid(volume.bounding_box(), cell_size_x, cell_size_y, cell_size_z)

        # edge id -> Point3dId
        self.vertices = {}
        # triples of edge ids
        self.triangles = []

        self.outside = None

    ## Visits all cells and collects the vertices and triangles of the surface
    def sweep(self):
        grid = self.grid
        iso_debug("number of cells: {}, {}, {}".format(grid.n_cells_x, grid.n_cells_y, grid.n_cells_z))

        values = self.volume.sample_points(grid.grid_points()).reshape(grid.vertex_shape)
        self.outside = ~self.interior_test.classify(values)
        cube_index = classify_cells(self.outside)

        # crossed edges waiting for their intersection, edge id -> (exterior, interior) grid vertex
        crossings = {}

        # visit cells in z, y, x order
        active = np.argwhere(EDGE_TABLE[cube_index].transpose(2, 1, 0) != 0)
        for z, y, x in active:
            x, y, z = int(x), int(y), int(z)
            table_index = int(cube_index[x, y, z])
            edge_mask = int(EDGE_TABLE[table_index])

            for edge_no in grid.owned_edges(x, y, z):
                if edge_mask & (1 << edge_no):
                    self.add_crossing(crossings, x, y, z, edge_no)

            triangle_edges = TRIANGLE_TABLE[table_index]
            i = 0
            while triangle_edges[i] != NO_EDGE:
                self.triangles.append((grid.edge_id(x, y, z, int(triangle_edges[i])),
                                       grid.edge_id(x, y, z, int(triangle_edges[i + 1])),
                                       grid.edge_id(x, y, z, int(triangle_edges[i + 2]))))
                i += 3

        self.compute_intersections(crossings)

    def add_crossing(self, crossings, x: int, y: int, z: int, edge_no: int):
        edge_id = self.grid.edge_id(x, y, z, edge_no)
        if edge_id in crossings:
            return

        exterior, interior = self.grid.edge_endpoints(x, y, z, edge_no)
        if not self.outside[exterior]:
            exterior, interior = interior, exterior
        crossings[edge_id] = (exterior, interior)

    def compute_intersections(self, crossings):
        if not crossings:
            return

        edge_ids = list(crossings)
        p1s = self.grid.vertex_positions([crossings[edge_id][0] for edge_id in edge_ids])
        p2s = self.grid.vertex_positions([crossings[edge_id][1] for edge_id in edge_ids])
        points = intersect_edges(self.volume, self.interior_test, p1s, p2s)

        for edge_id, point in zip(edge_ids, points):
            self.vertices.setdefault(edge_id, Point3dId(point, edge_id))

    ## Renumbers vertices and triangles densely, copies them into a Mesh and computes the normals.
    #  The intermediate vertices and triangles are released afterwards.
    def finalize(self) -> Mesh:
        # rename vertices in ascending edge id order
        edge_ids = sorted(self.vertices)
        for new_id, edge_id in enumerate(edge_ids):
            self.vertices[edge_id].new_id = new_id

        # rename triangles
        triangles = [(self.vertices[id0].new_id, self.vertices[id1].new_id, self.vertices[id2].new_id)
                     for id0, id1, id2 in self.triangles]

        mesh = Mesh()
        mesh.set_vertices([tuple(self.vertices[edge_id]) for edge_id in edge_ids])
        mesh.set_triangles(triangles)
        mesh.update_normals()

        iso_debug("created a mesh with {} vertices and {} triangles".format(mesh.num_vertices, mesh.num_triangles))

        self.vertices.clear()
        self.triangles.clear()

        return mesh


## Marching cubes surface extraction.
#
# The object is either invalid (no surface generated yet, or deleted) or valid
# (the last call to generate_surface produced a mesh). All intermediate data
# of an extraction lives in a SurfaceBuilder and is dropped after the call.
class MarchingCubes:

    def __init__(self):
        self.delete_surface()

    ## @param volume the volume to extract the surface from
    #  @param interior_test classifies sampled values, e.g. AcceptAbove(0.5)
    #  @param cell_size_x, cell_size_y, cell_size_z the size of a cell, must be positive
    #  @detail Returns the Mesh of the boundary of the interior region
    def generate_surface(self, volume, interior_test, cell_size_x, cell_size_y, cell_size_z) -> Mesh:
        if self._valid_surface:
            self.delete_surface()

        iso_assert(cell_size_x > 0 and cell_size_y > 0 and cell_size_z > 0,
                   "Cell sizes must be positive, got ({}, {}, {}).".format(cell_size_x, cell_size_y, cell_size_z))

        self._cell_size = (float(cell_size_x), float(cell_size_y), float(cell_size_z))

        if volume.bounding_box().is_empty():
            iso_debug("volume has no extent, the surface is empty")
            mesh = Mesh()
        else:
            builder = SurfaceBuilder(volume, interior_test, cell_size_x, cell_size_y, cell_size_z)
            builder.sweep()
            mesh = builder.finalize()
            self._num_cells = (builder.grid.n_cells_x, builder.grid.n_cells_y, builder.grid.n_cells_z)

        self._num_vertices = mesh.num_vertices
        self._num_triangles = mesh.num_triangles
        self._valid_surface = True

        return mesh

    def is_surface_valid(self) -> bool:
        return self._valid_surface

    def delete_surface(self):
        self._cell_size = (0.0, 0.0, 0.0)
        self._num_cells = (0, 0, 0)
        self._num_vertices = 0
        self._num_triangles = 0
        self._valid_surface = False

    @property
    def num_vertices(self) -> int:
        return self._num_vertices

    @property
    def num_triangles(self) -> int:
        return self._num_triangles

    ## Returns the size of the sampled grid along x, y, z, None if there is no valid surface
    def get_volume_lengths(self):
        if not self.is_surface_valid():
            return None
        return tuple(size * cells for size, cells in zip(self._cell_size, self._num_cells))


## Extracts one surface with a throw-away MarchingCubes instance
def generate_surface(volume, interior_test, cell_size_x, cell_size_y, cell_size_z) -> Mesh:
    return MarchingCubes().generate_surface(volume, interior_test, cell_size_x, cell_size_y, cell_size_z)
