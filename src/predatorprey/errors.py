"""
Error Taxonomy
==============
Exceptions raised by the predator-prey finite element engine.

Assembly-time errors (ConfigurationError, MeshValidityError) abort before the
time loop starts. Solver errors abort the time loop; the solver keeps the
field state of the last successful step.
"""
from __future__ import annotations


class PredatorPreyError(Exception):
    """Base class for all errors raised by the engine."""


class ConfigurationError(PredatorPreyError, ValueError):
    """Invalid model parameters, solver settings or problem definition."""


class MeshValidityError(PredatorPreyError, ValueError):
    """Mesh data that cannot be discretised (bad indices, degenerate elements, ...)."""


class SolverError(PredatorPreyError, RuntimeError):
    """Base class for failures of the linear solve of one species."""

    def __init__(self, message: str, species: str) -> None:
        super().__init__(message)
        self.species = species


class SolverDivergenceError(SolverError):
    """
    The Krylov solve did not reach the residual tolerance.

    Attributes:
        species: Name of the species whose solve failed ("u" or "v").
        residual: Final relative residual ||b - A x|| / ||b||.
        iterations: Number of inner GMRES iterations performed.
        step: Time step index at which the failure happened (None outside the time loop).
    """

    def __init__(
        self,
        species: str,
        residual: float,
        iterations: int,
        step: int | None = None,
        message: str | None = None,
    ) -> None:
        self.residual = residual
        self.iterations = iterations
        self.step = step
        if message is None:
            where = f" at step {step}" if step is not None else ""
            message = (
                f"GMRES did not converge for species '{species}'{where}: "
                f"relative residual {residual:.3e} after {iterations} iterations."
            )
        super().__init__(message, species=species)


class PreconditionerError(SolverDivergenceError):
    """
    The incomplete LU factorisation of an update operator failed.

    Reported with zero iterations and a NaN residual.
    """

    def __init__(self, message: str, species: str) -> None:
        super().__init__(species=species, residual=float("nan"), iterations=0, message=message)
