from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import numba as nb

if TYPE_CHECKING:
    import numpy.typing as npt

# Relative tolerance on |2 * area| / (longest edge)^2 below which a triangle is degenerate
DEGENERACY_TOLERANCE = 1e-12


@nb.jit(cache=True, fastmath=True)
def _tri3_stiffness_and_area(
    x: npt.NDArray[np.float64],
    y: npt.NDArray[np.float64]
) -> tuple[npt.NDArray[np.float64], float]:
    """
    Build the linear-triangle stiffness matrix and the area of one element.

    The local entries are written through the twice-signed sub-areas h, the
    edge dot products s and the squared edge lengths t:

        K_ii = A t2 / h1²,   K_jj = A t3 / h2²,    K_kk = A t1 / h3²
        K_ij = A s3 / (h1 h2), K_ki = A s1 / (h3 h1), K_kj = A s2 / (h3 h2)

    Args:
        x: (3, ) array of x-coordinates of the nodes i, j, k.
        y: (3, ) array of y-coordinates of the nodes i, j, k.

    Returns:
        K: (3, 3) symmetric element stiffness matrix.
        area: Absolute area of the triangle.
    """
    xi, xj, xk = x[0], x[1], x[2]
    yi, yj, yk = y[0], y[1], y[2]

    area = abs(xj * yk - xk * yj - xi * yk + xk * yi + xi * yj - xj * yi) / 2.0

    h1 = (xi - xj) * (yk - yj) - (xk - xj) * (yi - yj)
    h2 = (xj - xk) * (yi - yk) - (xi - xk) * (yj - yk)
    h3 = (xk - xi) * (yj - yi) - (xj - xi) * (yk - yi)
    s1 = (yj - yi) * (yk - yj) + (xi - xj) * (xj - xk)
    s2 = (yj - yi) * (yi - yk) + (xi - xj) * (xk - xi)
    s3 = (yk - yj) * (yi - yk) + (xj - xk) * (xk - xi)
    t1 = (yj - yi) ** 2 + (xi - xj) ** 2
    t2 = (yk - yj) ** 2 + (xj - xk) ** 2
    t3 = (yi - yk) ** 2 + (xk - xi) ** 2

    K = np.empty((3, 3), dtype=np.float64)
    K[0, 0] = area * t2 / (h1 * h1)
    K[1, 1] = area * t3 / (h2 * h2)
    K[2, 2] = area * t1 / (h3 * h3)
    K[0, 1] = area * s3 / (h1 * h2)
    K[1, 0] = K[0, 1]
    K[2, 0] = area * s1 / (h3 * h1)
    K[0, 2] = K[2, 0]
    K[2, 1] = area * s2 / (h3 * h2)
    K[1, 2] = K[2, 1]

    return K, area


@nb.jit(cache=True, fastmath=True)
def tri3_local_matrices(
    coords: npt.NDArray[np.float64],
    triangles: npt.NDArray[np.int64]
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """
    Element stiffness matrices and areas for a whole triangulation.

    Args:
        coords: (N, 2) node coordinates.
        triangles: (M, 3) zero-based node indices of every element.

    Returns:
        ke: (M, 3, 3) element stiffness matrices.
        areas: (M, ) element areas.
    """
    n_elements = triangles.shape[0]
    ke = np.empty((n_elements, 3, 3), dtype=np.float64)
    areas = np.empty(n_elements, dtype=np.float64)

    x = np.empty(3, dtype=np.float64)
    y = np.empty(3, dtype=np.float64)
    for e in range(n_elements):
        for a in range(3):
            x[a] = coords[triangles[e, a], 0]
            y[a] = coords[triangles[e, a], 1]
        k_e, area = _tri3_stiffness_and_area(x, y)
        ke[e, :, :] = k_e
        areas[e] = area

    return ke, areas


def signed_areas(
    coords: npt.NDArray[np.float64],
    triangles: npt.NDArray[np.int64]
) -> npt.NDArray[np.float64]:
    """Shoelace signed area of every triangle (positive for counter-clockwise nodes)."""
    p = coords[triangles]  # (M, 3, 2)
    x1, y1 = p[:, 0, 0], p[:, 0, 1]
    x2, y2 = p[:, 1, 0], p[:, 1, 1]
    x3, y3 = p[:, 2, 0], p[:, 2, 1]
    return 0.5 * (x1 * (y2 - y3) + x2 * (y3 - y1) + x3 * (y1 - y2))


def degenerate_elements(
    coords: npt.NDArray[np.float64],
    triangles: npt.NDArray[np.int64],
    tolerance: float = DEGENERACY_TOLERANCE
) -> npt.NDArray[np.int64]:
    """
    Indices of triangles whose area vanishes relative to their size.

    Args:
        coords: (N, 2) node coordinates.
        triangles: (M, 3) node indices.
        tolerance: Relative tolerance on |2 * area| / (longest edge)².

    Returns:
        Sorted indices of degenerate elements.
    """
    p = coords[triangles]
    edges = p[:, [1, 2, 0], :] - p
    longest_sq = np.max(np.sum(edges ** 2, axis=2), axis=1)
    twice_area = 2.0 * np.abs(signed_areas(coords, triangles))
    bad = ~(twice_area > tolerance * longest_sq)
    return np.flatnonzero(bad)


class Tri3:
    """
    Represents a three-node linear triangular finite element (Tri3).
    """
    def __init__(
        self,
        index: int,
        node_indices: npt.NDArray[np.int64] | list[int],
        coords: npt.NDArray[np.float64],
    ) -> None:
        """
        Initialize the Tri3 element.

        Args:
            index: Element index.
            node_indices: Global indices of the three nodes i, j, k.
            coords: (3, 2) coordinates of the three nodes.
        """
        self.id = index
        self.global_dofs: npt.NDArray[np.int64] = np.asarray(node_indices, dtype=np.int64)
        coords = np.asarray(coords, dtype=np.float64)
        self.x = np.ascontiguousarray(coords[:, 0])
        self.y = np.ascontiguousarray(coords[:, 1])

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id}, nodes={self.global_dofs.tolist()})"

    @property
    def signed_area(self) -> float:
        """Shoelace signed area of the element."""
        x1, x2, x3 = self.x
        y1, y2, y3 = self.y
        return 0.5 * (x1 * (y2 - y3) + x2 * (y3 - y1) + x3 * (y1 - y2))

    @property
    def area(self) -> float:
        """Absolute area of the element."""
        return abs(self.signed_area)
