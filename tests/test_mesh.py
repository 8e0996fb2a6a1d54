"""Tests for mesh loading, validation and boundary edge extraction."""

import meshio
import numpy as np
import pytest

from predatorprey.errors import MeshValidityError
from predatorprey.pre.mesh import Mesh, structured_rectangle, subset_connectivity


SQUARE_NODES = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
SQUARE_ELEMENTS = np.array([[0, 1, 2], [0, 2, 3]])


class TestSubsetConnectivity:
    """Boundary edges between nodes of one boundary part."""

    def test_bottom_side(self):
        edges = subset_connectivity(SQUARE_ELEMENTS, np.array([0, 1]))
        assert edges.tolist() == [[0, 1]]

    def test_interior_diagonal_is_excluded(self):
        # (0, 2) is shared by both triangles
        edges = subset_connectivity(SQUARE_ELEMENTS, np.array([0, 2]))
        assert edges.shape == (0, 2)

    def test_whole_boundary(self):
        edges = subset_connectivity(SQUARE_ELEMENTS, np.arange(4))
        assert edges.tolist() == [[0, 1], [0, 3], [1, 2], [2, 3]]

    def test_empty_subset(self):
        assert subset_connectivity(SQUARE_ELEMENTS, np.empty(0, dtype=np.int64)).shape == (0, 2)


class TestMeshValidation:
    """Invalid input is rejected before any assembly."""

    def test_valid_mesh(self):
        mesh = Mesh(SQUARE_NODES, SQUARE_ELEMENTS, dirichlet_nodes=[3, 0], neumann_nodes=[0, 1])
        assert mesh.number_of_nodes == 4
        assert mesh.number_of_elements == 2
        assert mesh.dirichlet_nodes.tolist() == [0, 3]
        assert mesh.neumann_edges.tolist() == [[0, 1]]

    def test_arrays_are_read_only(self):
        nodes = SQUARE_NODES.copy()
        mesh = Mesh(nodes, SQUARE_ELEMENTS)
        with pytest.raises(ValueError):
            mesh.nodes[0, 0] = 5.0
        # caller's array is untouched
        nodes[0, 0] = 5.0
        assert mesh.nodes[0, 0] == 0.0

    def test_bad_node_shape(self):
        with pytest.raises(MeshValidityError):
            Mesh(np.zeros((4, 3)), SQUARE_ELEMENTS)

    def test_non_finite_coordinates(self):
        nodes = SQUARE_NODES.copy()
        nodes[2, 1] = np.nan
        with pytest.raises(MeshValidityError):
            Mesh(nodes, SQUARE_ELEMENTS)

    def test_no_elements(self):
        with pytest.raises(MeshValidityError):
            Mesh(SQUARE_NODES, np.empty((0, 3), dtype=np.int64))

    def test_element_index_out_of_range(self):
        with pytest.raises(MeshValidityError):
            Mesh(SQUARE_NODES, np.array([[0, 1, 2], [0, 2, 4]]))

    def test_boundary_index_out_of_range(self):
        with pytest.raises(MeshValidityError):
            Mesh(SQUARE_NODES, SQUARE_ELEMENTS, dirichlet_nodes=[0, 7])

    def test_orphan_node(self):
        nodes = np.vstack((SQUARE_NODES, [[5.0, 5.0]]))
        with pytest.raises(MeshValidityError, match="do not belong"):
            Mesh(nodes, SQUARE_ELEMENTS)

    def test_degenerate_element(self):
        nodes = np.array([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]])
        with pytest.raises(MeshValidityError, match="degenerate") as excinfo:
            Mesh(nodes, np.array([[0, 1, 2]]))
        assert "Tri3(id=0, nodes=[0, 1, 2]) area=0" in str(excinfo.value)

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            Mesh(SQUARE_NODES, np.array([[0, 1, 9]]))


class TestStructuredRectangle:
    """Regular triangulations of a rectangle."""

    def test_counts(self):
        mesh = structured_rectangle(3, 2, width=3.0, height=2.0)
        assert mesh.number_of_nodes == 12
        assert mesh.number_of_elements == 12
        assert mesh.dirichlet_nodes.size == 10

    def test_counter_clockwise(self):
        mesh = structured_rectangle(2, 3)
        assert all(mesh.element(i).signed_area > 0.0 for i in range(mesh.number_of_elements))

    def test_neumann_side(self, mixed_rectangle):
        assert mixed_rectangle.number_of_neumann_edges == 4
        top = mixed_rectangle.y[mixed_rectangle.neumann_edges]
        assert np.allclose(top, 1.0)

        edges = mixed_rectangle.neumann_boundary_elements()
        assert sum(edge.length for edge in edges) == pytest.approx(1.0)

    def test_unknown_side(self):
        with pytest.raises(MeshValidityError):
            structured_rectangle(2, 2, dirichlet=("north",))


class TestFromDatFiles:
    """Flat 1-based tables."""

    def write_tables(self, directory, dirichlet="1\n4\n", neumann="1\n2\n"):
        np.savetxt(directory / "p_coord.dat", SQUARE_NODES)
        np.savetxt(directory / "t_triang.dat", SQUARE_ELEMENTS + 1, fmt="%d")
        if dirichlet is not None:
            (directory / "bn1_nodes.dat").write_text(dirichlet)
        if neumann is not None:
            (directory / "bn2_nodes.dat").write_text(neumann)

    def test_load(self, tmp_path):
        self.write_tables(tmp_path)
        mesh = Mesh.from_dat_files(tmp_path)

        assert np.allclose(mesh.nodes, SQUARE_NODES)
        assert mesh.elements.tolist() == SQUARE_ELEMENTS.tolist()
        assert mesh.dirichlet_nodes.tolist() == [0, 3]
        assert mesh.neumann_nodes.tolist() == [0, 1]
        assert mesh.neumann_edges.tolist() == [[0, 1]]

    def test_empty_and_missing_boundary_files(self, tmp_path):
        self.write_tables(tmp_path, dirichlet="", neumann=None)
        mesh = Mesh.from_dat_files(tmp_path)
        assert mesh.dirichlet_nodes.size == 0
        assert mesh.neumann_nodes.size == 0

    def test_zero_based_index_is_out_of_range(self, tmp_path):
        self.write_tables(tmp_path, dirichlet="0\n")
        with pytest.raises(MeshValidityError):
            Mesh.from_dat_files(tmp_path)

    def test_missing_coordinates(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Mesh.from_dat_files(tmp_path)


class TestFromMsh:
    """gmsh files with named physical line groups."""

    def test_load_with_physical_groups(self, tmp_path):
        # node 4 is a construction point that no triangle uses
        points = np.array([
            [0.0, 0.0, 0.0],
            [1.0, 0.0, 0.0],
            [1.0, 1.0, 0.0],
            [0.0, 1.0, 0.0],
            [9.0, 9.0, 0.0],
        ])
        lines = np.array([[0, 1], [1, 2], [2, 3], [3, 0]])
        triangles = np.array([[0, 1, 2], [0, 2, 3]])
        physical_lines = np.array([1, 1, 2, 1])
        physical_triangles = np.array([3, 3])

        filename = tmp_path / "square.msh"
        meshio.write(
            str(filename),
            meshio.Mesh(
                points=points,
                cells=[("line", lines), ("triangle", triangles)],
                cell_data={
                    "gmsh:physical": [physical_lines, physical_triangles],
                    "gmsh:geometrical": [physical_lines, physical_triangles],
                },
                field_data={
                    "DIRICHLET": np.array([1, 1]),
                    "NEUMANN": np.array([2, 1]),
                    "DOMAIN": np.array([3, 2]),
                },
            ),
            file_format="gmsh22",
            binary=False,
        )

        mesh = Mesh.from_msh(filename)

        assert mesh.number_of_nodes == 4
        assert mesh.number_of_elements == 2
        assert mesh.dirichlet_nodes.tolist() == [0, 1, 2, 3]
        assert mesh.neumann_nodes.tolist() == [2, 3]
        assert mesh.neumann_edges.tolist() == [[2, 3]]


class TestPlot:
    def test_saves_png(self, mixed_rectangle, tmp_path):
        filename = tmp_path / "mesh.png"
        mixed_rectangle.plot(filename=filename)
        assert filename.exists()
