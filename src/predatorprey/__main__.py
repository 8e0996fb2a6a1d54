"""Command-line interface."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from predatorprey.config import ModelParameters, SolverSettings, load_run_config
from predatorprey.errors import PredatorPreyError
from predatorprey.logging_config import setup_logging
from predatorprey.post.export import export_results, write_vtu
from predatorprey.pre.mesh import Mesh
from predatorprey.problems import PROBLEMS, resolve_problem
from predatorprey.solvers.solver import Solver

logger = logging.getLogger("predatorprey.cli")


def load_mesh(path: Path) -> Mesh:
    """A directory of .dat tables or a gmsh .msh file."""
    if path.is_dir():
        return Mesh.from_dat_files(path)
    return Mesh.from_msh(path)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="predatorprey",
        description="Linearly implicit FEM solver for a reaction-diffusion predator-prey system.",
    )
    parser.add_argument("mesh", type=Path, help="Directory with p_coord.dat/t_triang.dat/bn1_nodes.dat/bn2_nodes.dat, or a .msh file")
    parser.add_argument("--config", type=Path, help="JSON run configuration with 'model' and optional 'solver' sections")
    parser.add_argument("--problem", default="spiral", help=f"Problem name ({', '.join(sorted(PROBLEMS))}) or module:attribute")
    parser.add_argument("--output", type=Path, default=Path("results"), help="Output directory")
    parser.add_argument("--prefix", default="predatorprey", help="Output file prefix")
    parser.add_argument("--vtu", action="store_true", help="Also write VTU files (every recorded snapshot and the final state)")
    parser.add_argument("--plot-mesh", action="store_true", help="Save a plot of the mesh and its boundary parts")

    model = parser.add_argument_group("model parameters (override the configuration file)")
    for name in ("alpha", "beta", "gamma", "delta", "final_time", "time_step"):
        model.add_argument(f"--{name.replace('_', '-')}", dest=name, type=float)

    parser.add_argument("--record-every", type=int, help="Keep a snapshot every n steps")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...)")
    parser.add_argument("--log-file", help="Also write the log to this file")
    return parser


def resolve_configuration(args: argparse.Namespace) -> tuple[ModelParameters, SolverSettings]:
    model_data: dict = {}
    solver_data: dict = {}
    if args.config is not None:
        parameters, settings = load_run_config(args.config)
        model_data = parameters.to_dict()
        solver_data = settings.to_dict()

    for name in ("alpha", "beta", "gamma", "delta", "final_time", "time_step"):
        value = getattr(args, name)
        if value is not None:
            model_data[name] = value
    if args.record_every is not None:
        solver_data["record_every"] = args.record_every

    return ModelParameters.from_dict(model_data), SolverSettings.from_dict(solver_data)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level, log_file=args.log_file)

    try:
        parameters, settings = resolve_configuration(args)
        problem = resolve_problem(args.problem)

        for name, value in parameters.to_dict().items():
            logger.info(f"Using {name.upper()} = {value:g}")
        logger.info(f"Taking N = {parameters.number_of_steps} time steps")

        mesh = load_mesh(args.mesh)
        if args.plot_mesh:
            args.output.mkdir(parents=True, exist_ok=True)
            mesh.plot(filename=args.output / f"{args.prefix}_mesh.png")

        solver = Solver(mesh=mesh, parameters=parameters, problem=problem, settings=settings)
        state = solver.solve()

        export_results(mesh, state, args.output, prefix=args.prefix, vtu=args.vtu)
        if args.vtu:
            for snapshot in solver.history:
                write_vtu(mesh, snapshot, args.output / f"{args.prefix}_{snapshot.step:06d}.vtu")
    except (PredatorPreyError, OSError) as e:
        logger.error(str(e))
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
