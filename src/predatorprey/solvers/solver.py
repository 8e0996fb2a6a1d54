from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING

import numpy as np

from predatorprey.analysis.kinetics import reaction_terms
from predatorprey.config import SolverSettings
from predatorprey.errors import SolverError
from predatorprey.solvers.assembly import assemble_operators, diffusion_operator
from predatorprey.solvers.boundary import apply_dirichlet_values, neumann_load
from predatorprey.solvers.linear import SpeciesSystem

if TYPE_CHECKING:
    import numpy.typing as npt

    from predatorprey.config import InitialCondition, ModelParameters, ProblemFunctions
    from predatorprey.pre.mesh import Mesh

logger = logging.getLogger(__name__)

# INFO progress reports per run
PROGRESS_REPORTS = 10


@dataclass
class FieldState:
    """
    Nodal values of both species after ``step`` time steps.

    Attributes:
        u: Prey density at the nodes.
        v: Predator density at the nodes.
        step: Number of completed time steps.
        time: Simulation time, step * dt.
    """
    u: npt.NDArray[np.float64]
    v: npt.NDArray[np.float64]
    step: int = 0
    time: float = 0.0

    def copy(self) -> FieldState:
        return FieldState(u=self.u.copy(), v=self.v.copy(), step=self.step, time=self.time)


def evaluate_initial_condition(mesh: Mesh, function: InitialCondition) -> npt.NDArray[np.float64]:
    """Evaluate f(x, y) at every node."""
    return np.array([float(function(x, y)) for x, y in mesh.nodes], dtype=np.float64)


class Solver:
    """
    Linearly implicit finite element solver of the predator-prey system.

    Diffusion is implicit through the update operators (assembled, pinned at
    the Dirichlet rows and ILU-factored once in ``__init__``); the kinetics
    are explicit. Every step only rebuilds the right-hand sides.
    """

    def __init__(
        self,
        mesh: Mesh,
        parameters: ModelParameters,
        problem: ProblemFunctions,
        settings: SolverSettings | None = None,
    ) -> None:
        """
        Assemble the operators and factor the preconditioners.

        Args:
            mesh: The validated triangulation with its boundary parts.
            parameters: Kinetic parameters, final time and time step.
            problem: Initial and boundary data.
            settings: GMRES / ILU controls.
        """
        self.mesh = mesh
        self.parameters = parameters
        self.problem = problem
        self.settings = settings if settings is not None else SolverSettings()

        self.dt = parameters.time_step
        self.number_of_steps = parameters.number_of_steps

        self.lumped_mass, self.stiffness = assemble_operators(mesh)
        self.diffusion = diffusion_operator(self.lumped_mass, self.stiffness, self.dt)

        # One pipeline per species, identical apart from the diffusion coefficient
        self.u_system = SpeciesSystem.from_operators(
            name="u",
            diffusion=self.diffusion,
            coefficient=1.0,
            dirichlet_nodes=mesh.dirichlet_nodes,
            settings=self.settings,
        )
        self.v_system = SpeciesSystem.from_operators(
            name="v",
            diffusion=self.diffusion,
            coefficient=parameters.delta,
            dirichlet_nodes=mesh.dirichlet_nodes,
            settings=self.settings,
        )

        self._neumann_edges = mesh.neumann_boundary_elements()

        self.state = self.initial_state()
        self.history: list[FieldState] = []

        logger.info(
            f"Solver ready: {mesh.number_of_nodes} nodes, {mesh.number_of_elements} elements, "
            f"{mesh.dirichlet_nodes.size} Dirichlet nodes, {len(self._neumann_edges)} Neumann edges, "
            f"{self.number_of_steps} time steps of dt={self.dt:g}."
        )

    def initial_state(self) -> FieldState:
        """Evaluate the initial conditions u0, v0 at the nodes."""
        return FieldState(
            u=evaluate_initial_condition(self.mesh, self.problem.u0),
            v=evaluate_initial_condition(self.mesh, self.problem.v0),
        )

    def assemble_rhs(
        self,
        state: FieldState,
        time: float,
    ) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """
        Right-hand sides of both update systems at time ``time``.

        The explicit kinetics come first, then the Neumann fluxes, and the
        Dirichlet values last so that no flux is added to a pinned entry.

        Args:
            state: Current fields.
            time: Time t_n of the step being computed.

        Returns:
            Tuple (rhs_u, rhs_v).
        """
        dt = self.dt
        f, g = reaction_terms(state.u, state.v, self.parameters)
        rhs_u = state.u + dt * f
        rhs_v = state.v + dt * g

        if self._neumann_edges:
            rhs_u += neumann_load(self._neumann_edges, self.lumped_mass, self.problem.g2u, time, dt)
            rhs_v += neumann_load(self._neumann_edges, self.lumped_mass, self.problem.g2v, time, dt)

        apply_dirichlet_values(rhs_u, self.mesh, self.problem.g1u, time)
        apply_dirichlet_values(rhs_v, self.mesh, self.problem.g1v, time)
        return rhs_u, rhs_v

    def step(self, state: FieldState) -> FieldState:
        """
        Advance one time step.

        Args:
            state: Fields after ``state.step`` steps.

        Raises:
            SolverDivergenceError: If either GMRES solve fails; ``state`` is left untouched.

        Returns:
            A new state after ``state.step + 1`` steps.
        """
        n = state.step + 1
        time = n * self.dt

        rhs_u, rhs_v = self.assemble_rhs(state, time)

        u_new = self.u_system.solve(rhs_u, x0=state.u, step=n)
        v_new = self.v_system.solve(rhs_v, x0=state.v, step=n)

        return FieldState(u=u_new, v=v_new, step=n, time=time)

    def solve(self) -> FieldState:
        """
        Run the time loop from the initial state to the final time.

        ``self.state`` always holds the last successfully computed step, also
        when a solve fails and the error propagates.

        Returns:
            The final state.
        """
        self.state = self.initial_state()
        self.history = []

        record_every = self.settings.record_every
        if record_every:
            self.history.append(self.state.copy())

        report_every = max(1, self.number_of_steps // PROGRESS_REPORTS)

        for _ in range(self.number_of_steps):
            try:
                new_state = self.step(self.state)
            except SolverError:
                logger.error(
                    f"Time loop aborted at step {self.state.step + 1} of {self.number_of_steps}; "
                    f"keeping the fields of step {self.state.step} (t={self.state.time:g})."
                )
                raise

            self.state = new_state

            if record_every and self.state.step % record_every == 0:
                self.history.append(self.state.copy())

            logger.debug(
                f"Step {self.state.step} - Time: {self.state.time:.6g} - "
                f"u in [{self.state.u.min():.4g}, {self.state.u.max():.4g}] - "
                f"v in [{self.state.v.min():.4g}, {self.state.v.max():.4g}]"
            )
            if self.state.step % report_every == 0 or self.state.step == self.number_of_steps:
                progress = int(100 * self.state.step / self.number_of_steps)
                logger.info(f"Progress: {progress} % - Time: {self.state.time:.6g} - Step: {self.state.step}")

        return self.state
