## @package ExtractSurfaces extracts the surfaces of scalar and labeled volumes
#
import numpy as np
from isosurface.utils import *
from isosurface.interior_test import AcceptAbove, AcceptExactly
from isosurface.mesh import Mesh, Meshes
from isosurface.tools.marching_cubes import MarchingCubes

DEFAULT_CELL_SIZE = (10.0, 10.0, 10.0)


## @param volume the volume to extract the surface from
#  @param threshold values strictly above the threshold are inside
#  @param cell_size the cell size along x, y, z
#  @detail Returns the Mesh of the boundary of all samples above \a threshold
def extract_surface(volume, threshold=0.5, cell_size=DEFAULT_CELL_SIZE) -> Mesh:
    cell_size_x, cell_size_y, cell_size_z = cell_size
    mesh = MarchingCubes().generate_surface(volume, AcceptAbove(threshold), cell_size_x, cell_size_y, cell_size_z)
    iso_debug("surface above {}: {}".format(threshold, mesh))
    return mesh


## @param volume a FieldVolume or a 3D numpy array of labels
#  @detail Returns the sorted distinct non-zero values
def find_labels(volume):
    if hasattr(volume, "distinct_values"):
        values = volume.distinct_values()
    else:
        iso_assert(isinstance(volume, np.ndarray) and volume.ndim == 3,
                   "Labels can only be found in a FieldVolume or a 3D array.")
        values = np.unique(volume).tolist()
    return [value for value in values if value != 0]


## @param volume a labeled volume, 0 is background
#  @param cell_size the cell size along x, y, z
#  @param labels the labels to extract, all non-zero labels of \a volume if None
#  @detail Returns Meshes holding one mesh per label, keyed by the label, in ascending label order
def extract_surfaces(volume, cell_size=DEFAULT_CELL_SIZE, labels=None) -> Meshes:
    if labels is None:
        labels = find_labels(volume)

    cell_size_x, cell_size_y, cell_size_z = cell_size
    engine = MarchingCubes()
    meshes = Meshes()
    for label in sorted(set(labels)):
        mesh = engine.generate_surface(volume, AcceptExactly(label), cell_size_x, cell_size_y, cell_size_z)
        iso_debug("surface of label {}: {}".format(label, mesh))
        meshes.add(label, mesh)

    iso_debug("extracted {} surfaces".format(len(meshes)))
    return meshes
