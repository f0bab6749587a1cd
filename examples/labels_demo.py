import os.path
import sys
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
import taichi as ti
import numpy as np

ti.init(arch=ti.cpu, offline_cache=True, debug=False)

from isosurface.utils import set_verbose
from isosurface.volume import FieldVolume
from isosurface.tools.extract_surfaces import extract_surfaces

resolution = 64
voxel_size = 1.0 / resolution
labels = ti.field(dtype=ti.i32, shape=(resolution, resolution, resolution))


@ti.kernel
def make_labels():
    ball_center = ti.Vector([0.3, 0.5, 0.5])
    box_lower = ti.Vector([0.6, 0.3, 0.3])
    box_upper = ti.Vector([0.9, 0.7, 0.6])
    for i, j, k in labels:
        pos = (ti.Vector([i, j, k]) + 0.5) * voxel_size
        labels[i, j, k] = 0
        if (pos - ball_center).norm() < 0.2:
            labels[i, j, k] = 1
        elif (pos > box_lower).all() and (pos < box_upper).all():
            labels[i, j, k] = 2


if __name__ == "__main__":
    set_verbose(True)
    make_labels()

    volume = FieldVolume(labels.to_numpy(), voxel_dim=(voxel_size, voxel_size, voxel_size))
    meshes = extract_surfaces(volume, cell_size=(voxel_size, voxel_size, voxel_size))

    for label, mesh in meshes:
        print("Label {}: {} vertices, {} triangles".format(label, mesh.num_vertices, mesh.num_triangles))
        mesh.export_ply("label_{}.ply".format(label))

    print("Bounding box of all labels: {}".format(meshes.bounding_box()))
