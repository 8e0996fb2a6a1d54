"""
Run Configuration
=================
Parameter containers for a predator-prey simulation.

Why is this file needed?
------------------------
1. Validation: every model parameter is checked once, before assembly, so the
   numerical core can assume well-formed input.
2. Persistence: parameters and solver settings round-trip through plain dicts
   and JSON files.
3. Typed functions: the initial and boundary data are plain Python callables
   bundled in ``ProblemFunctions``; nothing is parsed or evaluated from text.

Exports:
    ModelParameters: alpha, beta, gamma, delta, final time and time step.
    SolverSettings: GMRES / ILU controls.
    ProblemFunctions: u0, v0, g1u, g1v, g2u, g2v.
    load_run_config: Read ``ModelParameters`` and ``SolverSettings`` from JSON.
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Callable, Dict, Protocol

from predatorprey.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_RTOL = 1e-6
DEFAULT_DROP_TOL = 1e-5


class InitialCondition(Protocol):
    def __call__(self, x: float, y: float) -> float: ...


class BoundaryFunction(Protocol):
    def __call__(self, x: float, y: float, t: float) -> float: ...


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


@dataclass(frozen=True)
class ModelParameters:
    """
    Kinetic and temporal parameters of the model

        du/dt =         Δu + u(1 - |u|) - v h(u)
        dv/dt = delta * Δv + beta v h(u) - gamma v,     h(u) = u / (alpha + |u|)

    All values must be strictly positive.
    """
    alpha: float
    beta: float
    gamma: float
    delta: float
    final_time: float
    time_step: float

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise ConfigurationError(f"Parameter '{f.name}' must be a number, got {value!r}.") from None
            if not math.isfinite(value) or value <= 0.0:
                raise ConfigurationError(f"Parameter '{f.name}' must be strictly positive, got {value!r}.")
            object.__setattr__(self, f.name, value)

    @property
    def number_of_steps(self) -> int:
        """Number of time steps, round(T / dt)."""
        return round_half_away(self.final_time / self.time_step)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> ModelParameters:
        missing = [f.name for f in fields(ModelParameters) if f.name not in data]
        if missing:
            raise ConfigurationError(f"Missing model parameters: {', '.join(missing)}.")
        return ModelParameters(**{f.name: data[f.name] for f in fields(ModelParameters)})


@dataclass(frozen=True)
class SolverSettings:
    """
    Controls of the preconditioned GMRES solves.

    Attributes:
        rtol: Relative residual tolerance of GMRES.
        drop_tol: Drop tolerance of the incomplete LU factorisation.
        restart: Krylov subspace size before a GMRES restart.
        maxiter: Maximum number of GMRES restart cycles.
        record_every: Store a snapshot of (u, v) every n steps (0 disables the history).
    """
    rtol: float = DEFAULT_RTOL
    drop_tol: float = DEFAULT_DROP_TOL
    restart: int = 50
    maxiter: int = 100
    record_every: int = 0

    def __post_init__(self) -> None:
        for name in ("rtol", "drop_tol"):
            value = getattr(self, name)
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise ConfigurationError(f"Solver setting '{name}' must be a number, got {value!r}.") from None
            if not math.isfinite(value):
                raise ConfigurationError(f"Solver setting '{name}' must be finite, got {value!r}.")
            object.__setattr__(self, name, value)

        for name in ("restart", "maxiter", "record_every"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float, str)):
                raise ConfigurationError(f"Solver setting '{name}' must be an integer, got {value!r}.")
            try:
                number = float(value)
            except ValueError:
                raise ConfigurationError(f"Solver setting '{name}' must be an integer, got {value!r}.") from None
            if not number.is_integer():
                raise ConfigurationError(f"Solver setting '{name}' must be an integer, got {value!r}.")
            object.__setattr__(self, name, int(number))

        if not (0.0 < self.rtol < 1.0):
            raise ConfigurationError(f"'rtol' must lie in (0, 1), got {self.rtol!r}.")
        if self.drop_tol < 0.0:
            raise ConfigurationError(f"'drop_tol' must be non-negative, got {self.drop_tol!r}.")
        if self.restart < 1 or self.maxiter < 1:
            raise ConfigurationError("'restart' and 'maxiter' must be at least 1.")
        if self.record_every < 0:
            raise ConfigurationError(f"'record_every' must be non-negative, got {self.record_every!r}.")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> SolverSettings:
        known = {f.name for f in fields(SolverSettings)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown solver settings: {', '.join(sorted(unknown))}.")
        return SolverSettings(**data)


@dataclass(frozen=True)
class ProblemFunctions:
    """
    Initial and boundary data of one problem.

    Attributes:
        u0, v0: Initial conditions f(x, y).
        g1u, g1v: Dirichlet values f(x, y, t) on the Dirichlet boundary.
        g2u, g2v: Neumann fluxes f(x, y, t) on the Neumann boundary.
    """
    u0: InitialCondition
    v0: InitialCondition
    g1u: BoundaryFunction
    g1v: BoundaryFunction
    g2u: BoundaryFunction
    g2v: BoundaryFunction

    def __post_init__(self) -> None:
        for f in fields(self):
            if not callable(getattr(self, f.name)):
                raise ConfigurationError(f"Problem function '{f.name}' must be callable.")


def constant(value: float) -> Callable[..., float]:
    """Return a function of any position/time arguments that always yields ``value``."""
    value = float(value)

    def _constant(*_: float) -> float:
        return value

    return _constant


def load_run_config(path: str | Path) -> tuple[ModelParameters, SolverSettings]:
    """
    Read a JSON run configuration.

    The file holds a ``"model"`` object with the six model parameters and an
    optional ``"solver"`` object with ``SolverSettings`` fields.

    Args:
        path: Path to the JSON file.

    Returns:
        The validated model parameters and solver settings.
    """
    path = Path(path)
    logger.info(f"Loading run configuration from: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Run configuration '{path}' is not valid JSON: {e}") from e

    if not isinstance(data, dict) or "model" not in data:
        raise ConfigurationError(f"Run configuration '{path}' must contain a 'model' section.")

    parameters = ModelParameters.from_dict(data["model"])
    settings = SolverSettings.from_dict(data.get("solver", {}))
    return parameters, settings
