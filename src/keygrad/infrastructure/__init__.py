"""
NumPy-backed implementations of the keygrad operator engine.

Subpackages
-----------
storage
    Dense tensor storage and value constructors.
operators
    Operator catalogs, per-dtype kernels and the scalar/tensor executors.
operations
    The :class:`~keygrad.domain.Operation` implementations and their factory.
autodiff
    Symbolic and numeric differentiation rule tables.
"""
