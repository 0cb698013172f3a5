import numpy as np

from fecore.common.mpi import comm_self
from fecore.mesh import Mesh


def create_single_cell_mesh(points, cell_type: str) -> Mesh:
    """
    Creates a serial mesh made of one cell.

    Args:
        points: Vertex coordinates of the cell.
        cell_type (str): 'interval', 'triangle' or 'tetrahedron'.

    Returns:
        Mesh: The one cell mesh.
    """
    points = np.asarray(points, dtype=float)
    return Mesh(comm_self(), cell_type, [list(range(len(points)))], points)


def create_right_tetrahedron_mesh() -> Mesh:
    """The corner tetrahedron of the unit cube."""
    return create_single_cell_mesh(
        [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]],
        "tetrahedron",
    )


def create_regular_tetrahedron_mesh() -> Mesh:
    """A regular tetrahedron inscribed in the cube [-1, 1]^3."""
    return create_single_cell_mesh(
        [[1.0, 1.0, 1.0], [1.0, -1.0, -1.0], [-1.0, 1.0, -1.0], [-1.0, -1.0, 1.0]],
        "tetrahedron",
    )


def create_degenerate_triangle_mesh() -> Mesh:
    """A triangle whose three vertices are collinear."""
    return create_single_cell_mesh(
        [[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]], "triangle"
    )


def create_two_triangle_mesh() -> Mesh:
    """
    The unit square split along its diagonal into two right triangles.

    Returns:
        Mesh: Cells [0, 1, 3] and [0, 2, 3] over the four corners.
    """
    return Mesh.create_unit_square(comm_self(), 1, 1)


def create_two_tetrahedron_mesh() -> Mesh:
    """
    Two tetrahedra of the unit cube sharing the face x + y + z = 1.

    Returns:
        Mesh: The corner tetrahedron at the origin and the regular
        tetrahedron with apex (1, 1, 1).
    """
    points = [
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [0.0, 0.0, 1.0],
        [1.0, 1.0, 1.0],
    ]
    return Mesh(comm_self(), "tetrahedron", [[0, 1, 2, 3], [4, 1, 2, 3]], points)
