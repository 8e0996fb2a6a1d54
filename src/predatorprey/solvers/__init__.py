"""
FEM Solver Engine
=================
Assembly, boundary conditions, preconditioned solves and the time loop.

Note: This package is pure NumPy/SciPy/Numba and performs no file or console output.
"""
