"""
Problem Library
===============
Named sets of initial and boundary data, plus the lookup used by the command
line to resolve either a library name or an importable ``module:attribute``.

The "spiral" data are the classical initial conditions for the kinetics with
alpha=0.4, beta=2.0, gamma=0.6 on a domain of size about 500 x 500: a
perturbation of the coexistence state (u*, v*) = (6/35, 116/245) that rolls up
into spiral waves.
"""
from __future__ import annotations

import importlib
import logging
from typing import Callable, Dict

from predatorprey.config import ProblemFunctions, constant
from predatorprey.errors import ConfigurationError

logger = logging.getLogger(__name__)

U_STAR = 6.0 / 35.0
V_STAR = 116.0 / 245.0


def spiral_problem() -> ProblemFunctions:
    """Spiral-wave initial data, zero flux, coexistence values on the Dirichlet part."""
    def u0(x: float, y: float) -> float:
        return U_STAR - 2e-7 * (x - 0.1 * y - 225.0) * (x - 0.1 * y - 675.0)

    def v0(x: float, y: float) -> float:
        return V_STAR - 3e-5 * (x - 450.0) - 1.2e-4 * (y - 150.0)

    return ProblemFunctions(
        u0=u0,
        v0=v0,
        g1u=constant(U_STAR),
        g1v=constant(V_STAR),
        g2u=constant(0.0),
        g2v=constant(0.0),
    )


def coexistence_problem() -> ProblemFunctions:
    """Spatially uniform coexistence state, steady for alpha=0.4, beta=2.0, gamma=0.6."""
    return ProblemFunctions(
        u0=constant(U_STAR),
        v0=constant(V_STAR),
        g1u=constant(U_STAR),
        g1v=constant(V_STAR),
        g2u=constant(0.0),
        g2v=constant(0.0),
    )


def zero_problem() -> ProblemFunctions:
    """Both species extinct; zero is a fixed point of the kinetics and boundary data."""
    zero = constant(0.0)
    return ProblemFunctions(u0=zero, v0=zero, g1u=zero, g1v=zero, g2u=zero, g2v=zero)


PROBLEMS: Dict[str, Callable[[], ProblemFunctions]] = {
    "spiral": spiral_problem,
    "coexistence": coexistence_problem,
    "zero": zero_problem,
}


def resolve_problem(name: str) -> ProblemFunctions:
    """
    Resolve a problem by library name or ``package.module:attribute``.

    The attribute may be a ``ProblemFunctions`` instance or a callable without
    arguments returning one.

    Raises:
        ConfigurationError: If the name cannot be resolved.
    """
    if name in PROBLEMS:
        return PROBLEMS[name]()

    if ":" not in name:
        raise ConfigurationError(
            f"Unknown problem '{name}'. Use one of {', '.join(sorted(PROBLEMS))} or 'module:attribute'."
        )

    module_name, attribute = name.split(":", 1)
    try:
        module = importlib.import_module(module_name)
        target = getattr(module, attribute)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot import problem '{name}': {e}") from e

    if not isinstance(target, ProblemFunctions) and callable(target):
        target = target()
    if not isinstance(target, ProblemFunctions):
        raise ConfigurationError(f"'{name}' does not provide a ProblemFunctions instance.")

    logger.debug(f"Resolved problem '{name}'.")
    return target
