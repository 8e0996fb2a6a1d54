"""Pytest configuration and fixtures for the predator-prey solver tests."""

import logging

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from predatorprey.config import ModelParameters, SolverSettings
from predatorprey.pre.mesh import Mesh, structured_rectangle


@pytest.fixture
def unit_triangle():
    """Single right triangle (0,0), (1,0), (0,1), all nodes on the Dirichlet boundary."""
    return Mesh(
        nodes=np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]]),
        elements=np.array([[0, 1, 2]]),
        dirichlet_nodes=[0, 1, 2],
    )


@pytest.fixture
def unit_square():
    """Unit square split into two triangles, every node on the Dirichlet boundary."""
    return structured_rectangle(1, 1)


@pytest.fixture
def mixed_rectangle():
    """4 x 4 grid on the unit square, Neumann on top, Dirichlet elsewhere."""
    return structured_rectangle(4, 4, dirichlet=("left", "right", "bottom"), neumann=("top",))


@pytest.fixture
def parameters():
    """Coexistence-regime kinetics, 10 steps of 0.01."""
    return ModelParameters(
        alpha=0.4,
        beta=2.0,
        gamma=0.6,
        delta=1.0,
        final_time=0.1,
        time_step=0.01,
    )


@pytest.fixture
def settings():
    return SolverSettings()


@pytest.fixture
def reset_package_logger():
    """Remove handlers installed by ``setup_logging`` after the test."""
    yield
    logger = logging.getLogger("predatorprey")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
