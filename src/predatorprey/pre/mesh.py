from __future__ import annotations

from datetime import datetime
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Sequence

import numpy as np
import matplotlib.pyplot as plt
import meshio

from predatorprey.analysis.finite_elements.edges import Line2
from predatorprey.analysis.finite_elements.tri3 import Tri3, degenerate_elements
from predatorprey.errors import MeshValidityError

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

# File names of the flat tables, all indices 1-based
COORDINATES_FILE = "p_coord.dat"
TRIANGLES_FILE = "t_triang.dat"
DIRICHLET_NODES_FILE = "bn1_nodes.dat"
NEUMANN_NODES_FILE = "bn2_nodes.dat"

RECTANGLE_SIDES = ("left", "right", "bottom", "top")


def subset_connectivity(
    elements: npt.NDArray[np.int64],
    subset: npt.NDArray[np.int64]
) -> npt.NDArray[np.int64]:
    """
    Boundary edges whose two end nodes both belong to ``subset``.

    An edge is a boundary edge when exactly one element uses it.

    Args:
        elements: (M, 3) node indices of the triangles.
        subset: Node indices of one boundary part.

    Returns:
        (E, 2) array of edges, each sorted, rows in lexicographic order.
    """
    if subset.size == 0 or elements.size == 0:
        return np.empty((0, 2), dtype=np.int64)

    edges = np.sort(elements[:, [[0, 1], [1, 2], [2, 0]]].reshape(-1, 2), axis=1)
    unique_edges, counts = np.unique(edges, axis=0, return_counts=True)
    boundary_edges = unique_edges[counts == 1]
    on_subset = np.isin(boundary_edges, subset).all(axis=1)
    return boundary_edges[on_subset].astype(np.int64)


def _as_index_array(values: Iterable[int] | npt.NDArray, name: str) -> npt.NDArray[np.int64]:
    array = np.asarray(values).ravel()
    if array.size == 0:
        return np.empty(0, dtype=np.int64)
    if array.dtype.kind == "f":
        if not np.all(np.isfinite(array)):
            raise MeshValidityError(f"'{name}' contains non-finite entries.")
        array = np.rint(array)
    elif array.dtype.kind not in "iu":
        raise MeshValidityError(f"'{name}' must hold integer node indices.")
    return np.unique(array.astype(np.int64))


class Mesh:
    """
    Triangulation of the domain together with its two boundary parts.

    Attributes:
        nodes: (N, 2) node coordinates.
        elements: (M, 3) zero-based node indices of every triangle.
        dirichlet_nodes: Sorted node indices on the Dirichlet boundary.
        neumann_nodes: Sorted node indices on the Neumann boundary.
        neumann_edges: (E, 2) boundary edges between Neumann nodes.
    """
    def __init__(
        self,
        nodes: npt.ArrayLike,
        elements: npt.ArrayLike,
        dirichlet_nodes: Sequence[int] | npt.NDArray = (),
        neumann_nodes: Sequence[int] | npt.NDArray = (),
        filename: str | None = None,
    ) -> None:
        """
        Initialize and validate the mesh.

        Args:
            nodes: (N, 2) node coordinates.
            elements: (M, 3) zero-based node indices of the triangles.
            dirichlet_nodes: Zero-based nodes where the species values are prescribed.
            neumann_nodes: Zero-based nodes of the flux boundary.
            filename: Source file, kept for reporting.

        Raises:
            MeshValidityError: If shapes, indices or element geometry are invalid.
        """
        self.filename = filename

        self.nodes = np.array(nodes, dtype=np.float64, order="C", copy=True)
        if self.nodes.ndim != 2 or self.nodes.shape[1] != 2:
            raise MeshValidityError(f"Node coordinates must have shape (N, 2), got {self.nodes.shape}.")
        if not np.all(np.isfinite(self.nodes)):
            raise MeshValidityError("Node coordinates contain non-finite values.")

        elements = np.asarray(elements)
        if elements.ndim != 2 or elements.shape[1] != 3:
            raise MeshValidityError(f"Elements must have shape (M, 3), got {elements.shape}.")
        if np.issubdtype(elements.dtype, np.floating):
            elements = np.rint(elements)
        self.elements = np.array(elements, dtype=np.int64, order="C", copy=True)

        self.dirichlet_nodes = _as_index_array(dirichlet_nodes, "dirichlet_nodes")
        self.neumann_nodes = _as_index_array(neumann_nodes, "neumann_nodes")

        self._validate()

        self.neumann_edges = subset_connectivity(self.elements, self.neumann_nodes)

        for array in (self.nodes, self.elements, self.dirichlet_nodes, self.neumann_nodes, self.neumann_edges):
            array.setflags(write=False)

        logger.debug(
            f"Mesh created: {self.number_of_nodes} nodes, {self.number_of_elements} elements, "
            f"{self.dirichlet_nodes.size} Dirichlet nodes, {self.number_of_neumann_edges} Neumann edges."
        )

    def _validate(self) -> None:
        n = self.number_of_nodes
        if self.number_of_elements == 0:
            raise MeshValidityError("Mesh has no elements.")

        for name, indices in (
            ("elements", self.elements),
            ("dirichlet_nodes", self.dirichlet_nodes),
            ("neumann_nodes", self.neumann_nodes),
        ):
            if indices.size and (indices.min() < 0 or indices.max() >= n):
                raise MeshValidityError(
                    f"'{name}' references node indices outside [0, {n - 1}] "
                    f"(min={indices.min()}, max={indices.max()})."
                )

        usage = np.bincount(self.elements.ravel(), minlength=n)
        orphans = np.flatnonzero(usage == 0)
        if orphans.size:
            raise MeshValidityError(
                f"{orphans.size} node(s) do not belong to any element (first: {orphans[:5].tolist()})."
            )

        degenerate = degenerate_elements(self.nodes, self.elements)
        if degenerate.size:
            first = ", ".join(
                f"{element!r} area={element.area:.3g}" for element in map(self.element, degenerate[:5])
            )
            raise MeshValidityError(
                f"{degenerate.size} degenerate element(s) with (near) zero area (first: {first})."
            )

    @property
    def number_of_nodes(self) -> int:
        """Degrees of freedom per species."""
        return self.nodes.shape[0]

    @property
    def number_of_elements(self) -> int:
        return self.elements.shape[0]

    @property
    def number_of_neumann_edges(self) -> int:
        return self.neumann_edges.shape[0]

    @property
    def x(self) -> npt.NDArray[np.float64]:
        return self.nodes[:, 0]

    @property
    def y(self) -> npt.NDArray[np.float64]:
        return self.nodes[:, 1]

    def element(self, index: int) -> Tri3:
        """Triangle ``index`` as a ``Tri3`` element."""
        node_indices = self.elements[index]
        return Tri3(index=int(index), node_indices=node_indices, coords=self.nodes[node_indices])

    def neumann_boundary_elements(self) -> list[Line2]:
        """Neumann boundary edges as ``Line2`` elements."""
        return [
            Line2(index=index, node_indices=edge, coords=self.nodes[edge])
            for index, edge in enumerate(self.neumann_edges)
        ]

    @classmethod
    def from_dat_files(cls, directory: str | Path) -> Mesh:
        """
        Load the mesh from flat whitespace-separated tables.

        The directory holds ``p_coord.dat`` (x y per node), ``t_triang.dat``
        (three node indices per triangle), ``bn1_nodes.dat`` (Dirichlet nodes)
        and ``bn2_nodes.dat`` (Neumann nodes). All indices are 1-based; the
        boundary files may be missing or empty.
        """
        directory = Path(directory)
        logger.info(f"Loading mesh tables from: {directory}")

        def read_table(name: str, required: bool) -> npt.NDArray[np.float64]:
            path = directory / name
            if not path.exists():
                if required:
                    raise FileNotFoundError(f"Mesh table '{path}' not found.")
                logger.debug(f"Optional mesh table '{path}' not found, using an empty set.")
                return np.empty(0, dtype=np.float64)
            if not path.read_text(encoding="utf-8").strip():
                return np.empty(0, dtype=np.float64)
            return np.loadtxt(path, dtype=np.float64, ndmin=2)

        coords = read_table(COORDINATES_FILE, required=True)
        triangles = read_table(TRIANGLES_FILE, required=True)
        dirichlet = read_table(DIRICHLET_NODES_FILE, required=False)
        neumann = read_table(NEUMANN_NODES_FILE, required=False)

        if coords.ndim != 2 or coords.shape[1] < 2:
            raise MeshValidityError(f"'{COORDINATES_FILE}' must have two columns (x y).")
        if triangles.ndim != 2 or triangles.shape[1] != 3:
            raise MeshValidityError(f"'{TRIANGLES_FILE}' must have three columns.")

        return cls(
            nodes=coords[:, :2],
            elements=np.rint(triangles) - 1,
            dirichlet_nodes=np.rint(dirichlet.ravel()) - 1,
            neumann_nodes=np.rint(neumann.ravel()) - 1,
            filename=str(directory),
        )

    @classmethod
    def from_msh(
        cls,
        filename: str | Path,
        dirichlet: str = "DIRICHLET",
        neumann: str = "NEUMANN",
    ) -> Mesh:
        """
        Load a gmsh mesh whose boundary parts are named physical line groups.

        Nodes that do not belong to any triangle (e.g. geometry construction
        points) are dropped and the remaining nodes renumbered.

        Args:
            filename: Path to the .msh file.
            dirichlet: Physical group name of the Dirichlet boundary.
            neumann: Physical group name of the Neumann boundary.
        """
        logger.info(f"Loading gmsh mesh from: {filename}")
        data = meshio.read(str(filename))

        if "triangle" not in data.cells_dict:
            raise MeshValidityError(f"'{filename}' contains no 3-node triangles.")
        triangles = np.asarray(data.cells_dict["triangle"], dtype=np.int64)

        # Renumber to the nodes actually used by triangles
        used = np.unique(triangles)
        new_index = np.full(data.points.shape[0], -1, dtype=np.int64)
        new_index[used] = np.arange(used.size)

        def group_nodes(name: str) -> npt.NDArray[np.int64]:
            if name not in data.field_data or "line" not in data.cells_dict:
                logger.warning(f"Physical group '{name}' not found in '{filename}', using an empty set.")
                return np.empty(0, dtype=np.int64)
            tag = int(data.field_data[name][0])
            physical = np.asarray(data.cell_data_dict["gmsh:physical"]["line"])
            lines = np.asarray(data.cells_dict["line"], dtype=np.int64)
            return new_index[np.unique(lines[physical == tag])]

        return cls(
            nodes=data.points[used, :2],
            elements=new_index[triangles],
            dirichlet_nodes=group_nodes(dirichlet),
            neumann_nodes=group_nodes(neumann),
            filename=str(filename),
        )

    def plot(self, filename: str | Path | None = None) -> None:
        """
        Plot the triangulation with the Dirichlet nodes and Neumann edges.

        Args:
            filename: Save the figure there instead of showing it.
        """
        plt.rcParams["figure.constrained_layout.use"] = True
        fig = plt.figure()
        plt.axis('equal')

        plt.triplot(self.x, self.y, self.elements, color='gray', lw=0.5)

        if self.number_of_neumann_edges:
            for index, (a, b) in enumerate(self.neumann_edges):
                label = "Neumann" if index == 0 else "_nolegend_"
                plt.plot(self.x[[a, b]], self.y[[a, b]], color='tab:blue', lw=2, label=label)

        if self.dirichlet_nodes.size:
            plt.plot(
                self.x[self.dirichlet_nodes], self.y[self.dirichlet_nodes],
                'o', color='tab:red', ms=3, label="Dirichlet"
            )

        plt.title(f"Mesh plotted at {datetime.now().strftime('%d.%m.%Y %H:%M:%S')}")
        plt.xlabel("X Coordinate")
        plt.ylabel("Y Coordinate")
        if self.dirichlet_nodes.size or self.number_of_neumann_edges:
            plt.legend(loc='best')

        if filename is None:
            plt.show()
        else:
            fig.savefig(filename, dpi=150)
            logger.info(f"Saved mesh plot: {filename}")
        plt.close(fig)


def structured_rectangle(
    nx: int,
    ny: int,
    width: float = 1.0,
    height: float = 1.0,
    dirichlet: Sequence[str] = RECTANGLE_SIDES,
    neumann: Sequence[str] = (),
) -> Mesh:
    """
    Regular triangulation of [0, width] x [0, height].

    Every cell of the nx x ny grid is split along its diagonal into two
    counter-clockwise triangles.

    Args:
        nx: Number of cells in x.
        ny: Number of cells in y.
        width: Extent in x.
        height: Extent in y.
        dirichlet: Sides ("left", "right", "bottom", "top") forming the Dirichlet boundary.
        neumann: Sides forming the Neumann boundary.
    """
    if nx < 1 or ny < 1:
        raise MeshValidityError("A structured rectangle needs at least one cell in each direction.")
    unknown = (set(dirichlet) | set(neumann)) - set(RECTANGLE_SIDES)
    if unknown:
        raise MeshValidityError(f"Unknown rectangle side(s): {', '.join(sorted(unknown))}.")

    xs = np.linspace(0.0, width, nx + 1)
    ys = np.linspace(0.0, height, ny + 1)
    X, Y = np.meshgrid(xs, ys)  # row j holds y = ys[j]
    nodes = np.column_stack((X.ravel(), Y.ravel()))

    def node(i: int, j: int) -> int:
        return j * (nx + 1) + i

    elements = []
    for j in range(ny):
        for i in range(nx):
            n00, n10, n01, n11 = node(i, j), node(i + 1, j), node(i, j + 1), node(i + 1, j + 1)
            elements.append((n00, n10, n11))
            elements.append((n00, n11, n01))

    side_nodes = {
        "left": [node(0, j) for j in range(ny + 1)],
        "right": [node(nx, j) for j in range(ny + 1)],
        "bottom": [node(i, 0) for i in range(nx + 1)],
        "top": [node(i, ny) for i in range(nx + 1)],
    }

    def collect(sides: Sequence[str]) -> list[int]:
        return sorted({n for side in sides for n in side_nodes[side]})

    return Mesh(
        nodes=nodes,
        elements=np.array(elements, dtype=np.int64),
        dirichlet_nodes=collect(dirichlet),
        neumann_nodes=collect(neumann),
    )
