"""
Linearly implicit finite element solver for a two-species reaction-diffusion
predator-prey system on unstructured triangular meshes.
"""
from predatorprey.config import ModelParameters, ProblemFunctions, SolverSettings
from predatorprey.errors import (
    ConfigurationError,
    MeshValidityError,
    PredatorPreyError,
    PreconditionerError,
    SolverDivergenceError,
    SolverError,
)
from predatorprey.pre.mesh import Mesh, structured_rectangle
from predatorprey.solvers.solver import FieldState, Solver

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "FieldState",
    "Mesh",
    "MeshValidityError",
    "ModelParameters",
    "PredatorPreyError",
    "PreconditionerError",
    "ProblemFunctions",
    "Solver",
    "SolverDivergenceError",
    "SolverError",
    "SolverSettings",
    "structured_rectangle",
]
