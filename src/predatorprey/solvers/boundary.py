"""
Boundary Conditions
===================
Dirichlet and Neumann boundary conditions of the update systems.

1. Dirichlet rows: applied once to the update operators, each Dirichlet row
   becomes an identity row.
2. Neumann flux: added to the right-hand sides at every step, trapezoidal rule
   along every Neumann edge, scaled by dt / lumped mass.
3. Dirichlet values: written into the right-hand sides at every step, strictly
   after the Neumann contributions.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
import scipy as sp

if TYPE_CHECKING:
    import numpy.typing as npt

    from predatorprey.analysis.finite_elements.edges import Line2
    from predatorprey.config import BoundaryFunction
    from predatorprey.pre.mesh import Mesh

logger = logging.getLogger(__name__)


def apply_dirichlet_rows(
    matrix: sp.sparse.spmatrix,
    dirichlet_nodes: npt.NDArray[np.int64],
) -> sp.sparse.csr_matrix:
    """
    Replace the rows of the Dirichlet nodes with identity rows.

    Args:
        matrix: (N, N) update operator.
        dirichlet_nodes: Node indices with prescribed values.

    Returns:
        A new CSR matrix; row r for r in ``dirichlet_nodes`` is e_r.
    """
    n = matrix.shape[0]
    is_dirichlet = np.zeros(n, dtype=np.float64)
    is_dirichlet[dirichlet_nodes] = 1.0

    keep = sp.sparse.diags(1.0 - is_dirichlet, format="csr")
    pinned = sp.sparse.diags(is_dirichlet, format="csr")

    result = (keep @ sp.sparse.csr_matrix(matrix) + pinned).tocsr()
    result.eliminate_zeros()
    result.sort_indices()
    return result


def neumann_load(
    edges: list[Line2],
    lumped_mass: npt.NDArray[np.float64],
    flux: BoundaryFunction,
    time: float,
    dt: float,
) -> npt.NDArray[np.float64]:
    """
    Right-hand-side contribution of a Neumann flux.

    Each edge end node receives dt * g(x, y, t) * (length / 2) / m_hat(node).

    Args:
        edges: Neumann boundary edges.
        lumped_mass: (N, ) lumped mass vector.
        flux: Neumann flux g(x, y, t).
        time: Current time t_n.
        dt: Time step.

    Returns:
        (N, ) vector to add to the right-hand side.
    """
    load = np.zeros_like(lumped_mass)
    for edge in edges:
        np.add.at(load, edge.global_dofs, edge.get_load_vector(flux=flux, time=time))
    return dt * load / lumped_mass


def dirichlet_values(
    mesh: Mesh,
    values: BoundaryFunction,
    time: float,
) -> npt.NDArray[np.float64]:
    """
    Prescribed values g(x, y, t) at the Dirichlet nodes.

    Returns:
        Array aligned with ``mesh.dirichlet_nodes``.
    """
    return np.array(
        [float(values(x, y, time)) for x, y in mesh.nodes[mesh.dirichlet_nodes]],
        dtype=np.float64,
    )


def apply_dirichlet_values(
    rhs: npt.NDArray[np.float64],
    mesh: Mesh,
    values: BoundaryFunction,
    time: float,
) -> npt.NDArray[np.float64]:
    """
    Overwrite the Dirichlet entries of a right-hand side in place.

    Args:
        rhs: (N, ) right-hand side, modified in place.
        mesh: Mesh providing the Dirichlet nodes and their coordinates.
        values: Dirichlet data g(x, y, t).
        time: Current time t_n.

    Returns:
        The same ``rhs`` array.
    """
    if mesh.dirichlet_nodes.size:
        rhs[mesh.dirichlet_nodes] = dirichlet_values(mesh, values, time)
    return rhs
