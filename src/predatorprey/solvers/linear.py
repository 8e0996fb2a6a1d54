"""
Preconditioned Linear Solves
============================
One ``SpeciesSystem`` per species: its update operator, the incomplete LU
preconditioner factored once, and the GMRES solve reused at every time step.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
import scipy as sp
import scipy.sparse.linalg

from predatorprey.config import DEFAULT_DROP_TOL, SolverSettings
from predatorprey.errors import PreconditionerError, SolverDivergenceError
from predatorprey.solvers.assembly import update_operator
from predatorprey.solvers.boundary import apply_dirichlet_rows

if TYPE_CHECKING:
    import numpy.typing as npt

# GMRES may stop on its preconditioned residual; the true residual is accepted up to this factor
RESIDUAL_SLACK = 10.0


class IncompleteLU:
    """
    Incomplete LU factors of a sparse operator, used as a GMRES preconditioner.

    The factors are approximate (entries below ``drop_tol`` are dropped) and are
    never used as an exact solve.
    """

    def __init__(
        self,
        matrix: sp.sparse.spmatrix,
        drop_tol: float = DEFAULT_DROP_TOL,
        species: str = "",
    ) -> None:
        """
        Factor the operator.

        Args:
            matrix: (N, N) operator to precondition.
            drop_tol: Drop tolerance of the factorisation.
            species: Name used in error reports.

        Raises:
            PreconditionerError: A SolverDivergenceError raised when the factorisation
                hits an exactly singular pivot.
        """
        self.drop_tol = drop_tol
        try:
            self._ilu = sp.sparse.linalg.spilu(sp.sparse.csc_matrix(matrix), drop_tol=drop_tol)
        except RuntimeError as e:
            raise PreconditionerError(
                f"Incomplete LU factorisation failed for species '{species}': {e}",
                species=species,
            ) from e
        self.operator = sp.sparse.linalg.LinearOperator(
            shape=matrix.shape,
            matvec=self._ilu.solve,
            dtype=np.float64,
        )

    @property
    def lower(self) -> sp.sparse.csc_matrix:
        """Unit lower triangular factor L."""
        return self._ilu.L

    @property
    def upper(self) -> sp.sparse.csc_matrix:
        """Upper triangular factor U."""
        return self._ilu.U

    def solve(self, rhs: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Apply the approximate inverse (U^-1 L^-1 with the row/column permutations)."""
        return self._ilu.solve(rhs)


class SpeciesSystem:
    """
    Update operator, preconditioner and GMRES settings of one species.

    Both species are instances of this class, built from the same stiffness
    operator, lumped mass and Dirichlet set, differing only in the diffusion
    coefficient.
    """

    def __init__(
        self,
        name: str,
        matrix: sp.sparse.spmatrix,
        settings: SolverSettings | None = None,
        precondition: bool = True,
    ) -> None:
        """
        Initialize the system and factor its preconditioner.

        Args:
            name: Species name ("u" or "v").
            matrix: (N, N) update operator, Dirichlet rows already applied.
            settings: GMRES / ILU controls.
            precondition: Build the ILU preconditioner (unpreconditioned GMRES otherwise).
        """
        self.name = name
        self.settings = settings if settings is not None else SolverSettings()
        self.matrix = sp.sparse.csr_matrix(matrix)
        self.logger = logging.getLogger(f"{__name__}.{name}")

        self.preconditioner: IncompleteLU | None = None
        if precondition:
            self.preconditioner = IncompleteLU(self.matrix, drop_tol=self.settings.drop_tol, species=name)
            self.logger.debug(
                f"ILU factors built (drop_tol={self.settings.drop_tol:g}, "
                f"nnz L={self.preconditioner.lower.nnz}, nnz U={self.preconditioner.upper.nnz})."
            )

    @classmethod
    def from_operators(
        cls,
        name: str,
        diffusion: sp.sparse.csr_matrix,
        coefficient: float,
        dirichlet_nodes: npt.NDArray[np.int64],
        settings: SolverSettings | None = None,
    ) -> SpeciesSystem:
        """
        Build I + coefficient * L, pin the Dirichlet rows and factor the result.

        Args:
            name: Species name.
            diffusion: L = dt * M_hat^-1 * K.
            coefficient: Diffusion coefficient of the species.
            dirichlet_nodes: Node indices with prescribed values.
            settings: GMRES / ILU controls.
        """
        matrix = apply_dirichlet_rows(update_operator(diffusion, coefficient), dirichlet_nodes)
        return cls(name=name, matrix=matrix, settings=settings)

    @property
    def size(self) -> int:
        return self.matrix.shape[0]

    def relative_residual(self, x: npt.NDArray[np.float64], rhs: npt.NDArray[np.float64]) -> float:
        """||rhs - A x|| / ||rhs|| (absolute norm when rhs vanishes)."""
        residual = float(np.linalg.norm(rhs - self.matrix @ x))
        rhs_norm = float(np.linalg.norm(rhs))
        return residual / rhs_norm if rhs_norm > 0.0 else residual

    def solve(
        self,
        rhs: npt.NDArray[np.float64],
        x0: npt.NDArray[np.float64] | None = None,
        step: int | None = None,
    ) -> npt.NDArray[np.float64]:
        """
        Solve A x = rhs with restarted, preconditioned GMRES.

        Args:
            rhs: (N, ) right-hand side.
            x0: Initial guess, normally the field of the previous step.
            step: Time step index, used in error reports.

        Raises:
            SolverDivergenceError: If the relative residual tolerance is not met.

        Returns:
            The solution vector.
        """
        iterations = 0

        def count_iterations(_: float) -> None:
            nonlocal iterations
            iterations += 1

        M = self.preconditioner.operator if self.preconditioner is not None else None
        try:
            x, info = sp.sparse.linalg.gmres(
                self.matrix,
                rhs,
                x0=x0,
                rtol=self.settings.rtol,
                atol=0.0,
                restart=min(self.settings.restart, self.size),
                maxiter=self.settings.maxiter,
                M=M,
                callback=count_iterations,
                callback_type="pr_norm",
            )
        except np.linalg.LinAlgError as e:
            self.logger.error(f"GMRES broke down for species '{self.name}': {e}")
            raise SolverDivergenceError(
                species=self.name,
                residual=float("nan"),
                iterations=iterations,
                step=step,
            ) from e

        residual = self.relative_residual(x, rhs)
        if info != 0 or not np.all(np.isfinite(x)) or not residual <= RESIDUAL_SLACK * self.settings.rtol:
            self.logger.error(
                f"GMRES did not converge (info={info}, relres={residual:.3e}, iterations={iterations})."
            )
            raise SolverDivergenceError(
                species=self.name,
                residual=residual,
                iterations=iterations,
                step=step,
            )

        self.logger.debug(f"GMRES converged: relres={residual:.3e}, iterations={iterations}.")
        return x
