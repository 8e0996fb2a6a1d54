from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    import numpy.typing as npt

    from predatorprey.config import BoundaryFunction


class Line2:
    """Two-node boundary edge carrying a Neumann flux."""

    def __init__(
        self,
        index: int,
        node_indices: npt.NDArray[np.int64] | list[int],
        coords: npt.NDArray[np.float64],
    ) -> None:
        """
        Initialize the boundary edge.

        Args:
            index: Edge index.
            node_indices: Global indices of the two end nodes.
            coords: (2, 2) coordinates of the end nodes.
        """
        self.id = index
        self.global_dofs: npt.NDArray[np.int64] = np.asarray(node_indices, dtype=np.int64)
        self.coords = np.asarray(coords, dtype=np.float64)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id}, nodes={self.global_dofs.tolist()})"

    @property
    def x(self) -> npt.NDArray[np.float64]:
        """X-coordinates of the end nodes."""
        return self.coords[:, 0]

    @property
    def y(self) -> npt.NDArray[np.float64]:
        """Y-coordinates of the end nodes."""
        return self.coords[:, 1]

    @property
    def length(self) -> float:
        """Euclidean length |p1 - p2|."""
        return float(np.hypot(*(self.coords[0] - self.coords[1])))

    def get_load_vector(self, flux: BoundaryFunction, time: float) -> npt.NDArray[np.float64]:
        """
        Trapezoidal approximation of the boundary integral of the flux.

        Each end node receives g(x_a, y_a, t) * length / 2.

        Args:
            flux: Neumann flux g(x, y, t).
            time: Time at which the flux is evaluated.

        Returns:
            (2, ) load vector of the edge.
        """
        half_length = 0.5 * self.length
        return np.array(
            [float(flux(x_a, y_a, time)) * half_length for x_a, y_a in self.coords],
            dtype=np.float64,
        )
