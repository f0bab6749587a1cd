## @package volume
# Scalar fields that are sampled by the isosurface extraction. A volume exposes
# an axis-aligned bounding box and evaluates a scalar at continuous world
# positions.
import taichi as ti
import numpy as np
from isosurface.utils import *


## Axis-aligned box given by its lower corner and its extents
class BoundingBox:
    def __init__(self, min_x, min_y, min_z, width, height, depth):
        self.min_x = float(min_x)
        self.min_y = float(min_y)
        self.min_z = float(min_z)
        self.width = float(width)
        self.height = float(height)
        self.depth = float(depth)

    @property
    def max_x(self):
        return self.min_x + self.width

    @property
    def max_y(self):
        return self.min_y + self.height

    @property
    def max_z(self):
        return self.min_z + self.depth

    def origin(self):
        return np.array([self.min_x, self.min_y, self.min_z])

    def extents(self):
        return np.array([self.width, self.height, self.depth])

    ## Returns True if the box has no extent along at least one axis
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0 or self.depth <= 0

    def __eq__(self, other):
        if not isinstance(other, BoundingBox):
            return NotImplemented
        return np.array_equal(self.origin(), other.origin()) and np.array_equal(self.extents(), other.extents())

    def __repr__(self):
        return "BoundingBox(min=({}, {}, {}), size=({}, {}, {}))".format(
            self.min_x, self.min_y, self.min_z, self.width, self.height, self.depth)


## Interface of all volumes
class Volume:

    def bounding_box(self) -> BoundingBox:
        raise NotImplementedError

    ## @param points an (N, 3) array of world positions
    #  @detail Returns an (N,) float64 array with the scalar value at each position
    def sample_points(self, points) -> np.ndarray:
        raise NotImplementedError

    def __call__(self, x, y, z) -> float:
        return float(self.sample_points(np.array([[x, y, z]], dtype=np.float64))[0])


NEAREST = "nearest"
LINEAR = "linear"


## A dense voxel grid stored in a taichi field.
#
# Voxel (i, j, k) covers the world box origin + [i, i + 1) * voxel_dim (and
# likewise for j, k). Nearest sampling returns the value of the voxel that
# contains a position, linear sampling interpolates between voxel centers.
# Positions outside of the grid read the background value.
@ti.data_oriented
class FieldVolume(Volume):

    ## @param data a 3D array indexed [x, y, z]; integer (label) data is stored as ti.i64, everything else as ti.f32
    #  @param voxel_dim the world size of one voxel along x, y, z
    #  @param origin the world position of the lower corner of voxel (0, 0, 0)
    #  @param background_value the value returned outside of the grid
    #  @param interpolation NEAREST or LINEAR
    def __init__(self, data, voxel_dim=(1.0, 1.0, 1.0), origin=(0.0, 0.0, 0.0), background_value=0.0,
                 interpolation=NEAREST):
        data = np.asarray(data)
        iso_assert(data.ndim == 3, "FieldVolume needs a 3D array, got {} dimensions.".format(data.ndim))
        iso_assert(interpolation in (NEAREST, LINEAR), "Unknown interpolation mode {}.".format(interpolation))

        self.voxel_dim = np.broadcast_to(np.asarray(voxel_dim, dtype=np.float64), (3,)).copy()
        self.origin = np.broadcast_to(np.asarray(origin, dtype=np.float64), (3,)).copy()
        iso_assert(np.all(self.voxel_dim > 0), "FieldVolume needs positive voxel dimensions.")

        self.shape = tuple(int(s) for s in data.shape)
        self.background_value = float(background_value)
        self.interpolation = interpolation
        self.is_label_data = np.issubdtype(data.dtype, np.integer) or data.dtype == np.bool_

        if self.is_label_data and data.size > 0 and data.dtype == np.uint64:
            iso_assert(data.max() <= np.iinfo(np.int64).max, "Labels do not fit into 64 bit signed integers.")

        # Empty grids have no storage, every sample reads the background
        self.values = None
        if data.size > 0:
            if self.is_label_data:
                self.values = ti.field(ti.i64, shape=self.shape)
                self.values.from_numpy(np.ascontiguousarray(data, dtype=np.int64))
            else:
                self.values = ti.field(ti.f32, shape=self.shape)
                self.values.from_numpy(np.ascontiguousarray(data, dtype=np.float32))

    def bounding_box(self) -> BoundingBox:
        extents = np.array(self.shape, dtype=np.float64) * self.voxel_dim
        return BoundingBox(self.origin[0], self.origin[1], self.origin[2], extents[0], extents[1], extents[2])

    def to_numpy(self) -> np.ndarray:
        if self.values is None:
            return np.zeros(self.shape, dtype=np.int64 if self.is_label_data else np.float32)
        return self.values.to_numpy()

    ## Returns the sorted distinct voxel values
    def distinct_values(self):
        return [v.item() for v in np.unique(self.to_numpy())]

    def sample_points(self, points) -> np.ndarray:
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        out = np.full(points.shape[0], self.background_value, dtype=np.float64)
        if self.values is None or points.shape[0] == 0:
            return out

        # world -> voxel transform in double precision, lookups in the kernel
        coords = np.ascontiguousarray((points - self.origin) / self.voxel_dim)
        self.sample_coords(coords, out)
        return out

    @ti.func
    def is_in_range(self, i, j, k):
        return 0 <= i and i < self.shape[0] and \
               0 <= j and j < self.shape[1] and \
               0 <= k and k < self.shape[2]

    ## Reads a voxel as f64, labels are exact up to 2^53
    @ti.func
    def read_voxel(self, i, j, k):
        res = ti.cast(self.background_value, ti.f64)
        if self.is_in_range(i, j, k):
            res = ti.cast(self.values[i, j, k], ti.f64)
        return res

    @ti.func
    def sample_nearest(self, coord: ti.template()):
        voxel = ti.cast(ti.floor(coord), ti.i32)
        return self.read_voxel(voxel[0], voxel[1], voxel[2])

    ## @param coord a position in voxel units
    #  @detail Trilinear interpolation between the 8 voxel centers around \a coord
    @ti.func
    def sample_linear(self, coord: ti.template()):
        center_coord = coord - 0.5
        base = ti.floor(center_coord)
        voxel = ti.cast(base, ti.i32)
        t = ti.cast(center_coord - base, ti.f64)

        res = ti.cast(0.0, ti.f64)
        for dx, dy, dz in ti.static(ti.ndrange(2, 2, 2)):
            weight = (dx * t[0] + (1 - dx) * (1.0 - t[0])) * \
                     (dy * t[1] + (1 - dy) * (1.0 - t[1])) * \
                     (dz * t[2] + (1 - dz) * (1.0 - t[2]))
            res += weight * self.read_voxel(voxel[0] + dx, voxel[1] + dy, voxel[2] + dz)
        return res

    @ti.kernel
    def sample_coords(self, coords: ti.types.ndarray(), out: ti.types.ndarray()):
        for n in range(coords.shape[0]):
            coord = ti.Vector([coords[n, 0], coords[n, 1], coords[n, 2]])
            if ti.static(self.interpolation == LINEAR):
                out[n] = self.sample_linear(coord)
            else:
                out[n] = self.sample_nearest(coord)


## A volume defined by a Python function f(x, y, z) over a bounding box.
# The function is evaluated anywhere it is sampled, including outside of the box.
class FunctionVolume(Volume):

    ## @param function a callable f(x, y, z) -> scalar
    #  @param bounding_box the BoundingBox of the region to extract
    #  @param vectorized True if \a function accepts numpy arrays and evaluates them elementwise
    def __init__(self, function, bounding_box: BoundingBox, vectorized=True):
        iso_assert(callable(function), "FunctionVolume needs a callable.")
        self.function = function
        self.box = bounding_box
        self.vectorized = vectorized

    def bounding_box(self) -> BoundingBox:
        return self.box

    def sample_points(self, points) -> np.ndarray:
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if self.vectorized:
            values = np.asarray(self.function(points[:, 0], points[:, 1], points[:, 2]), dtype=np.float64)
            return np.broadcast_to(values, (points.shape[0],)).copy()
        return np.fromiter((self.function(x, y, z) for x, y, z in points), dtype=np.float64,
                           count=points.shape[0])
