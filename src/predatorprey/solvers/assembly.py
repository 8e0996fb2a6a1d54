"""
Operator Assembly
=================
Global lumped mass and stiffness operators of the linear triangular
discretisation, and the implicit update operators of both species.

The stiffness operator is built once from the (row, col, value) triplets of
every element; COO tolerates duplicates and ``tocsr()`` sums them.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
import scipy as sp

from predatorprey.analysis.finite_elements.tri3 import tri3_local_matrices
from predatorprey.errors import MeshValidityError

if TYPE_CHECKING:
    import numpy.typing as npt

    from predatorprey.pre.mesh import Mesh

logger = logging.getLogger(__name__)


def element_scatter_indices(
    elements: npt.NDArray[np.int64]
) -> tuple[npt.NDArray[np.int64], npt.NDArray[np.int64]]:
    """
    Global (row, col) of every entry of every element matrix, in C order.

    Args:
        elements: (M, n) node indices of the elements.

    Returns:
        rows, cols: (M * n * n, ) index arrays matching ``ke.ravel()``.
    """
    n_dofs = elements.shape[1]
    rows = np.repeat(elements, n_dofs, axis=1).ravel()
    cols = np.tile(elements, (1, n_dofs)).ravel()
    return rows, cols


def assemble_operators(mesh: Mesh) -> tuple[npt.NDArray[np.float64], sp.sparse.csr_matrix]:
    """
    Assemble the lumped mass vector and the global stiffness operator.

    Every triangle adds area / 3 to the lumped mass of its three nodes and its
    3 x 3 stiffness matrix to the global operator.

    Args:
        mesh: The validated triangulation.

    Raises:
        MeshValidityError: If an element produces non-finite entries.

    Returns:
        lumped_mass: (N, ) lumped mass vector.
        stiffness: (N, N) symmetric stiffness operator in CSR format.
    """
    n = mesh.number_of_nodes
    ke, areas = tri3_local_matrices(mesh.nodes, mesh.elements)

    bad = np.flatnonzero(~np.all(np.isfinite(ke.reshape(len(ke), -1)), axis=1))
    if bad.size:
        raise MeshValidityError(
            f"Stiffness assembly produced non-finite entries for {bad.size} element(s) "
            f"(first: {bad[:5].tolist()})."
        )

    lumped_mass = np.bincount(
        mesh.elements.ravel(),
        weights=np.repeat(areas / 3.0, 3),
        minlength=n,
    ).astype(np.float64)

    rows, cols = element_scatter_indices(mesh.elements)
    stiffness = sp.sparse.coo_matrix(
        (ke.ravel(order="C"), (rows, cols)),
        shape=(n, n),
        dtype=np.float64
    ).tocsr()
    stiffness.sum_duplicates()

    logger.debug(
        f"Assembled operators: total area {areas.sum():.6g}, stiffness nnz {stiffness.nnz}."
    )
    return lumped_mass, stiffness


def diffusion_operator(
    lumped_mass: npt.NDArray[np.float64],
    stiffness: sp.sparse.csr_matrix,
    dt: float,
) -> sp.sparse.csr_matrix:
    """
    L = dt * M_hat^-1 * K with the lumped mass M_hat.

    Args:
        lumped_mass: (N, ) lumped mass vector.
        stiffness: (N, N) stiffness operator.
        dt: Time step.
    """
    inverse_mass = sp.sparse.diags(1.0 / lumped_mass, format="csr")
    return (dt * (inverse_mass @ stiffness)).tocsr()


def update_operator(
    diffusion: sp.sparse.csr_matrix,
    coefficient: float = 1.0,
) -> sp.sparse.csr_matrix:
    """
    Implicit update operator I + coefficient * L of one species.

    Args:
        diffusion: The operator L = dt * M_hat^-1 * K.
        coefficient: Diffusion coefficient of the species (1 for u, delta for v).
    """
    n = diffusion.shape[0]
    identity = sp.sparse.identity(n, dtype=np.float64, format="csr")
    return (identity + coefficient * diffusion).tocsr()
