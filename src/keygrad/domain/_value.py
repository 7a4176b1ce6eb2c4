"""
Value model: the closed union of bare scalars and tensors.

A :class:`ScalarValue` holds a raw number tagged with its dtype; a
:class:`TensorValue` wraps an opaque storage handle satisfying
:class:`ITensorStorage`. Storage itself (layout, striding, allocation) is an
infrastructure concern; this module only states the contract the operator
engine consumes.

The two outcomes of accumulating evaluation are also values here:
:class:`Accumulated` (the accumulator buffer was updated in place) and
:class:`Rerouted` (the accumulator could not be mutated; the caller must store
the carried value itself).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, Tuple, Union, runtime_checkable

from ._dtype import Dtype
from ._shape import SCALAR_SHAPE, Shape
from ._types import TensorType


@runtime_checkable
class ITensorStorage(Protocol):
    """
    Tensor storage contract.

    Notes
    -----
    - ``materialize()`` returns a raw buffer view reflecting the current
      transpose flag. Writes through the view mutate the storage.
    - ``transpose_in_place()`` toggles the transpose flag; calling it twice
      restores the original view.
    """

    @property
    def shape(self) -> Tuple[int, ...]: ...

    @property
    def dtype(self) -> Dtype: ...

    def materialize(self) -> Any: ...

    def transpose_in_place(self) -> None: ...


@dataclass(frozen=True)
class ScalarValue:
    """
    A bare scalar.

    Attributes
    ----------
    dtype : Dtype
        Element type, fixed at construction.
    v : Any
        The raw number (a NumPy scalar in the default backend).
    """

    dtype: Dtype
    v: Any

    @property
    def shape(self) -> Shape:
        return SCALAR_SHAPE

    @property
    def type(self) -> Dtype:
        return self.dtype

    def is_scalar(self) -> bool:
        return True

    def __str__(self) -> str:
        return f"{self.v}"


@dataclass(eq=False)
class TensorValue:
    """
    A tensor backed by an :class:`ITensorStorage`.

    Equality is identity: two tensor values are the same value only when they
    are the same object.
    """

    storage: ITensorStorage

    @property
    def dtype(self) -> Dtype:
        return self.storage.dtype

    @property
    def shape(self) -> Shape:
        return Shape(self.storage.shape)

    @property
    def type(self) -> TensorType:
        return TensorType(len(self.storage.shape), self.dtype)

    def is_scalar(self) -> bool:
        return False

    def materialize(self) -> Any:
        return self.storage.materialize()

    def __str__(self) -> str:
        return f"Tensor{tuple(self.storage.shape)}<{self.dtype}>"


Value = Union[ScalarValue, TensorValue]


@dataclass(frozen=True)
class Accumulated:
    """The accumulator tensor was updated in place; ``value`` is that accumulator."""

    value: TensorValue


@dataclass(frozen=True)
class Rerouted:
    """
    The accumulator could not be mutated in place.

    ``value`` is the correctly accumulated result, which the caller must
    store explicitly (e.g., as a new derivative).
    """

    value: Value


IncrResult = Union[Accumulated, Rerouted]
