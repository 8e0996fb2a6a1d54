"""Tests for global operator assembly and boundary conditions."""

import numpy as np
import pytest

from predatorprey.config import constant
from predatorprey.pre.mesh import structured_rectangle
from predatorprey.solvers.assembly import (
    assemble_operators,
    diffusion_operator,
    element_scatter_indices,
    update_operator,
)
from predatorprey.solvers.boundary import (
    apply_dirichlet_rows,
    apply_dirichlet_values,
    dirichlet_values,
    neumann_load,
)


class TestAssembly:
    """Lumped mass and stiffness operators."""

    def test_unit_triangle(self, unit_triangle):
        lumped_mass, stiffness = assemble_operators(unit_triangle)

        assert np.allclose(lumped_mass, 1.0 / 6.0)
        assert np.allclose(stiffness.toarray(), [
            [1.0, -0.5, -0.5],
            [-0.5, 0.5, 0.0],
            [-0.5, 0.0, 0.5],
        ])

    def test_unit_square(self, unit_square):
        lumped_mass, stiffness = assemble_operators(unit_square)

        # corners on the diagonal belong to both triangles
        assert np.allclose(lumped_mass, [1.0 / 3.0, 1.0 / 6.0, 1.0 / 6.0, 1.0 / 3.0])
        assert np.allclose(stiffness.toarray(), [
            [1.0, -0.5, -0.5, 0.0],
            [-0.5, 1.0, 0.0, -0.5],
            [-0.5, 0.0, 1.0, -0.5],
            [0.0, -0.5, -0.5, 1.0],
        ])

    @pytest.mark.parametrize("nx,ny,width,height", [(3, 3, 1.0, 1.0), (5, 2, 4.0, 1.5)])
    def test_structural_properties(self, nx, ny, width, height):
        mesh = structured_rectangle(nx, ny, width=width, height=height)
        lumped_mass, stiffness = assemble_operators(mesh)

        assert lumped_mass.sum() == pytest.approx(width * height)
        assert np.all(lumped_mass > 0.0)

        dense = stiffness.toarray()
        assert np.allclose(dense, dense.T)
        assert np.allclose(dense.sum(axis=1), 0.0, atol=1e-12)
        assert np.all(np.linalg.eigvalsh(dense) > -1e-12)

    def test_scatter_indices(self):
        rows, cols = element_scatter_indices(np.array([[4, 7, 9]]))
        assert rows.tolist() == [4, 4, 4, 7, 7, 7, 9, 9, 9]
        assert cols.tolist() == [4, 7, 9, 4, 7, 9, 4, 7, 9]


class TestUpdateOperators:
    """I + c L with L = dt M_hat^-1 K."""

    def test_diffusion_operator(self, unit_square):
        lumped_mass, stiffness = assemble_operators(unit_square)
        L = diffusion_operator(lumped_mass, stiffness, dt=0.1)

        expected = 0.1 * stiffness.toarray() / lumped_mass[:, None]
        assert np.allclose(L.toarray(), expected)

    def test_constants_are_preserved(self, unit_square):
        lumped_mass, stiffness = assemble_operators(unit_square)
        A = update_operator(diffusion_operator(lumped_mass, stiffness, dt=0.5), coefficient=2.0)

        assert np.allclose(A @ np.full(4, 3.0), 3.0)

    def test_coefficient_scales_offdiagonal(self, unit_square):
        lumped_mass, stiffness = assemble_operators(unit_square)
        L = diffusion_operator(lumped_mass, stiffness, dt=0.1)

        A1 = update_operator(L, 1.0).toarray()
        A3 = update_operator(L, 3.0).toarray()
        assert np.allclose(A3 - np.eye(4), 3.0 * (A1 - np.eye(4)))


class TestDirichletRows:

    def test_identity_rows(self, unit_square):
        lumped_mass, stiffness = assemble_operators(unit_square)
        A = update_operator(diffusion_operator(lumped_mass, stiffness, dt=0.1))

        pinned = apply_dirichlet_rows(A, np.array([1, 2]))
        dense = pinned.toarray()

        assert np.allclose(dense[1], [0.0, 1.0, 0.0, 0.0])
        assert np.allclose(dense[2], [0.0, 0.0, 1.0, 0.0])
        # other rows untouched
        assert np.allclose(dense[[0, 3]], A.toarray()[[0, 3]])

    def test_no_dirichlet_nodes(self, unit_square):
        lumped_mass, stiffness = assemble_operators(unit_square)
        A = update_operator(diffusion_operator(lumped_mass, stiffness, dt=0.1))
        assert np.allclose(apply_dirichlet_rows(A, np.empty(0, dtype=np.int64)).toarray(), A.toarray())


class TestBoundaryData:
    """Right-hand-side contributions of both boundary parts."""

    @pytest.fixture
    def bottom_neumann(self):
        return structured_rectangle(1, 1, dirichlet=("left",), neumann=("bottom",))

    def test_neumann_load(self, bottom_neumann):
        lumped_mass, _ = assemble_operators(bottom_neumann)
        edges = bottom_neumann.neumann_boundary_elements()

        load = neumann_load(edges, lumped_mass, constant(2.0), time=0.0, dt=0.1)

        # dt * g * |e| / 2 / m_hat, m_hat = (1/3, 1/6) at the bottom corners
        assert np.allclose(load, [0.3, 0.6, 0.0, 0.0])

    def test_neumann_time_dependent(self, bottom_neumann):
        lumped_mass, _ = assemble_operators(bottom_neumann)
        edges = bottom_neumann.neumann_boundary_elements()

        def flux(x, y, t):
            return t

        assert np.allclose(neumann_load(edges, lumped_mass, flux, time=0.0, dt=0.1), 0.0)
        assert np.allclose(neumann_load(edges, lumped_mass, flux, time=2.0, dt=0.1), [0.3, 0.6, 0.0, 0.0])

    def test_dirichlet_values(self, bottom_neumann):
        def values(x, y, t):
            return 10.0 * y + t

        assert np.allclose(dirichlet_values(bottom_neumann, values, time=1.0), [1.0, 11.0])

    def test_dirichlet_overrides_neumann(self, bottom_neumann):
        lumped_mass, _ = assemble_operators(bottom_neumann)
        edges = bottom_neumann.neumann_boundary_elements()

        rhs = np.zeros(4)
        rhs += neumann_load(edges, lumped_mass, constant(2.0), time=0.0, dt=0.1)
        result = apply_dirichlet_values(rhs, bottom_neumann, constant(5.0), time=0.0)

        assert result is rhs
        assert np.allclose(rhs, [5.0, 0.6, 5.0, 0.0])
