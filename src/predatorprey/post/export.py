"""
Result Export
=============
Writes the nodal fields of a finished run: VTU files for ParaView and
colour plots of u and v.

Note: Nothing in the numerical core imports this module.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import matplotlib.pyplot as plt
import meshio

if TYPE_CHECKING:
    import numpy.typing as npt

    from predatorprey.pre.mesh import Mesh
    from predatorprey.solvers.solver import FieldState

logger = logging.getLogger(__name__)


def to_meshio(mesh: Mesh, state: FieldState) -> meshio.Mesh:
    """Wrap mesh and fields in a ``meshio.Mesh`` with point data 'u' and 'v'."""
    points = np.column_stack((mesh.nodes, np.zeros(mesh.number_of_nodes)))
    return meshio.Mesh(
        points=points,
        cells=[("triangle", np.asarray(mesh.elements))],
        point_data={"u": np.asarray(state.u), "v": np.asarray(state.v)},
    )


def write_vtu(mesh: Mesh, state: FieldState, filename: str | Path) -> Path:
    """
    Write the fields of one state to an unstructured VTK file.

    Args:
        mesh: The triangulation.
        state: Fields to export.
        filename: Output path (.vtu).

    Returns:
        The written path.
    """
    filename = Path(filename)
    meshio.write(str(filename), to_meshio(mesh, state))
    logger.info(f"Saved VTU file: {filename} (step {state.step}, t={state.time:g})")
    return filename


def plot_field(
    mesh: Mesh,
    values: npt.NDArray[np.float64],
    title: str,
    filename: str | Path | None = None,
) -> None:
    """
    Colour plot of a nodal field, linearly interpolated on every triangle.

    Args:
        mesh: The triangulation.
        values: (N, ) nodal values.
        title: Figure title, usually the species name.
        filename: Save the figure there (PNG) instead of showing it.
    """
    plt.rcParams["figure.constrained_layout.use"] = True
    fig, ax = plt.subplots(figsize=(6, 5))

    tpc = ax.tripcolor(mesh.x, mesh.y, mesh.elements, values, shading="gouraud", cmap="jet")
    fig.colorbar(tpc, ax=ax)

    ax.set_aspect("equal")
    ax.set_axis_off()
    ax.set_title(title)

    if filename is None:
        plt.show()
    else:
        fig.savefig(filename, dpi=150)
        logger.info(f"Saved graphics file: {filename}")
    plt.close(fig)


def export_results(
    mesh: Mesh,
    state: FieldState,
    output_dir: str | Path,
    prefix: str = "predatorprey",
    vtu: bool = False,
) -> list[Path]:
    """
    Save ``<prefix>_u.png`` and ``<prefix>_v.png`` (and optionally a VTU file).

    Returns:
        Paths of all written files.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for name, values in (("u", state.u), ("v", state.v)):
        path = output_dir / f"{prefix}_{name}.png"
        plot_field(mesh, values, title=name, filename=path)
        written.append(path)

    if vtu:
        written.append(write_vtu(mesh, state, output_dir / f"{prefix}_{state.step:06d}.vtu"))

    return written
