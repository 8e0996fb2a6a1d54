"""
Predator-prey kinetics (Kinetics 1 with a modified Holling type II response).

The terms are evaluated explicitly at the current state; diffusion is treated
implicitly by the update operators.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    import numpy.typing as npt

    from predatorprey.config import ModelParameters


def functional_response(u: npt.NDArray[np.float64], alpha: float) -> npt.NDArray[np.float64]:
    """
    Modified functional response h(u) = u / (alpha + |u|).

    Args:
        u: Prey density at the nodes.
        alpha: Saturation constant, strictly positive.

    Returns:
        h evaluated node-wise.
    """
    return u / (alpha + np.abs(u))


def reaction_terms(
    u: npt.NDArray[np.float64],
    v: npt.NDArray[np.float64],
    parameters: ModelParameters,
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """
    Reaction terms of both species.

        F = u - u|u| - v h(u)
        G = beta v h(u) - gamma v

    Args:
        u: Prey density at the nodes.
        v: Predator density at the nodes.
        parameters: Model parameters (alpha, beta, gamma are used).

    Returns:
        Tuple (F, G).
    """
    h = functional_response(u, parameters.alpha)
    f = u - u * np.abs(u) - v * h
    g = parameters.beta * v * h - parameters.gamma * v
    return f, g
