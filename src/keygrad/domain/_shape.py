"""
Shape helpers shared by shape inference and the reduction operations.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from typing_extensions import Self


class Shape(tuple):
    """
    Immutable tensor extent tuple.

    A shape is *scalar* when it has rank 0 or every extent is 1, which is the
    degenerate case elementwise operations treat like a bare scalar.
    """

    def __new__(cls, dims: Iterable[int] = ()) -> Self:
        return super().__new__(cls, (int(d) for d in dims))

    def is_scalar(self) -> bool:
        return all(d == 1 for d in self)

    def is_vector(self) -> bool:
        return len(self) == 1 and self[0] > 1

    def total_size(self) -> int:
        size = 1
        for d in self:
            size *= d
        return size

    def eq(self, other: Sequence[int]) -> bool:
        return tuple(self) == tuple(other)

    def clone(self) -> Self:
        return type(self)(self)

    def __repr__(self) -> str:
        return f"Shape{tuple(self)}"


SCALAR_SHAPE = Shape(())
"""The rank-0 shape of a bare scalar."""


def transpose_shape(shape: Sequence[int]) -> Shape:
    """Reverse the extents of a rank-2 shape; other ranks are returned unchanged."""
    if len(shape) != 2:
        return Shape(shape)
    return Shape((shape[1], shape[0]))
