"""
Element-level physics: linear triangle and boundary edge kernels, kinetics.
"""
