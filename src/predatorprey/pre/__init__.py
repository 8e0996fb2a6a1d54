"""
Pre-processing: mesh containers and mesh readers.
"""
