"""
Reductions along axes, and the repeat operation that undoes their shape.

- :class:`SumOperation` sums along a strictly increasing set of axes,
- :class:`MaxOperation` shares Sum's shape and type rules but has no numeric
  forward yet; only its symbolic gradient is available,
- :class:`RepeatOperation` re-inserts reduced axes and repeats values along
  them. It is the shape inverse of a reduction and is what the Sum gradient
  is built from.

Reduced axes are dropped from the result shape: ``[2, 3]`` summed along
axis 1 gives ``[2]``. A result whose extents are all 1 (or which has no
extents left) is a scalar.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from ...domain._errors import (
    ArityMismatchError,
    NotYetImplementedError,
    ShapeMismatchError,
    TypeMismatchError,
)
from ...domain._graph import IDualValue, INode
from ...domain._operation import Operation
from ...domain._shape import SCALAR_SHAPE, Shape
from ...domain._types import (
    SUMMABLE,
    FunctionType,
    TensorType,
    Type,
    TypeVariable,
    new_function_type,
)
from ...domain._value import ScalarValue, TensorValue, Value
from ..operators._catalog import BinaryOperatorKind
from ..storage._values import any_to_value, value_to_array
from ._helpers import accumulate_gradient, apply_gradient_op, check_arity, dual_of

logger = logging.getLogger(__name__)


def normalize_axes(along: Sequence[int], dims: int, shape: Sequence[int] = ()) -> Tuple[int, ...]:
    """
    Validate reduction axes, expanding an empty selection to every axis.

    Raises
    ------
    ShapeMismatchError
        If the axes are not strictly increasing or fall outside ``[0, dims)``.
    """
    axes = tuple(int(a) for a in along)
    if not axes:
        return tuple(range(dims))
    if any(b <= a for a, b in zip(axes, axes[1:])):
        raise ShapeMismatchError(axes, shape, "axes must be strictly increasing")
    if axes[0] < 0 or axes[-1] >= dims:
        raise ShapeMismatchError(axes, shape, f"axes must lie in [0, {dims})")
    return axes


def reduced_shape(shape: Sequence[int], along: Sequence[int]) -> Shape:
    """Shape left after reducing ``shape`` along ``along``."""
    s = Shape(shape)
    if s.is_scalar() or len(along) == len(s):
        return SCALAR_SHAPE
    for a in along:
        if a >= len(s):
            raise ShapeMismatchError(
                s, along, f"axis {a} is out of range for a rank {len(s)} input"
            )
    kept = Shape(d for i, d in enumerate(s) if i not in along)
    if kept.is_scalar():
        return SCALAR_SHAPE
    return kept


def repeat_along(arr: np.ndarray, along: Sequence[int], target: Sequence[int]) -> np.ndarray:
    """
    Re-expand a reduced array to ``target`` by repeating along ``along``.

    Axes whose target extent is 1 are not repeated.

    Raises
    ------
    ShapeMismatchError
        If ``arr`` does not hold exactly the reduced number of elements.
    """
    keep = tuple(1 if i in along else d for i, d in enumerate(target))
    try:
        out = np.asarray(arr).reshape(keep)
    except ValueError as err:
        raise ShapeMismatchError(np.shape(arr), target, str(err)) from err
    for axis in along:
        if target[axis] == 1:
            continue
        out = np.repeat(out, target[axis], axis=axis)
    return out


def _wrap(r: np.ndarray) -> Value:
    r = np.asarray(r)
    if r.ndim == 0 or Shape(r.shape).is_scalar():
        return any_to_value(r.reshape(()))
    return any_to_value(np.ascontiguousarray(r))


def _add_into(dv: IDualValue, val: Value) -> None:
    from ._factory import new_ebo_by_type

    current = dv.derivative
    add = new_ebo_by_type(BinaryOperatorKind.ADD, current.type, val.type)
    d = add.unsafe_forward(current, val)
    if isinstance(current, ScalarValue) and isinstance(d, TensorValue):
        d = any_to_value(np.asarray(np.sum(d.materialize())))
    if d is not current:
        accumulate_gradient(dv, d)


@dataclass(frozen=True)
class _ReductionOperation(Operation):
    along: Tuple[int, ...]
    dims: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "along", normalize_axes(self.along, self.dims))

    def arity(self) -> int:
        return 1

    def fully_reduced(self) -> bool:
        return self.dims <= 1 or len(self.along) == self.dims

    def result_type(self) -> FunctionType:
        a = TypeVariable("a", SUMMABLE)
        t = TensorType(self.dims, a)
        ret: Type = a if self.fully_reduced() else TensorType(self.dims - len(self.along), a)
        return new_function_type(t, ret)

    def infer_shape(self, *shapes: Sequence[int]) -> Shape:
        if len(shapes) != 1:
            raise ArityMismatchError(self, 1, len(shapes))
        if shapes[0] is None:
            raise NotYetImplementedError(f"{type(self).__name__}.infer_shape", "nil shape")
        logger.debug("inferring shape of %s from %r", self, shapes[0])
        return reduced_shape(shapes[0], self.along)

    def differentiable_inputs(self, inputs: int) -> list[bool]:
        if inputs != 1:
            raise ArityMismatchError(self, 1, inputs)
        return [True]

    def returns_owned_buffer(self) -> bool:
        return True

    def overwrite_candidate_operand_index(self) -> Optional[int]:
        return 0

    def calls_external_compute(self) -> bool:
        return False


@dataclass(frozen=True)
class SumOperation(_ReductionOperation):
    """
    Sum along ``along``.

    Attributes
    ----------
    along : tuple[int, ...]
        Strictly increasing axes; empty means every axis.
    dims : int
        Rank of the input.
    input_shape : Shape
        Extents of the input, used to re-expand the gradient.
    """

    input_shape: Tuple[int, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "input_shape", Shape(self.input_shape))
        object.__setattr__(
            self, "along", normalize_axes(self.along, self.dims, self.input_shape)
        )

    def symbolic_differentiate(
        self, inputs: Sequence[INode], output: INode, grad: INode
    ) -> list[INode]:
        check_arity(self, len(inputs))
        from ._factory import new_repeat_op

        repeat = new_repeat_op(self.along, tuple(inputs[0].shape))
        logger.debug("symbolic differentiation of %s through %s", self, repeat)
        return [apply_gradient_op(repeat, grad)]

    def numeric_differentiate(self, inputs: Sequence[INode], output: INode) -> None:
        check_arity(self, len(inputs))
        xdv, ydv = dual_of(inputs[0]), dual_of(output)
        x_shape = Shape(xdv.primal.shape)

        g = ydv.derivative
        if not Shape(g.shape).eq(xdv.derivative.shape):
            g = any_to_value(repeat_along(value_to_array(g), self.along, x_shape))

        logger.debug("numeric differentiation of %s", self)
        _add_into(xdv, g)

    def forward(self, *values: Value) -> Value:
        check_arity(self, len(values))
        v = values[0]
        if not isinstance(v, TensorValue):
            raise TypeMismatchError(f"{self} expects a Tensor. Got {v!r} instead")
        arr = v.materialize()
        try:
            r = np.sum(arr, axis=self.along, dtype=arr.dtype)
        except ValueError as err:
            raise ShapeMismatchError(arr.shape, self.along, str(err)) from err
        return _wrap(r)

    def identity(self) -> Tuple[object, ...]:
        return ("sum", self.dims, self.along, tuple(self.input_shape))

    def __str__(self) -> str:
        return f"Σ{list(self.along)}"


@dataclass(frozen=True)
class MaxOperation(_ReductionOperation):
    """
    Maximum along ``along``.

    Only shape/type inference and the symbolic gradient are available; the
    numeric forward and backward raise :class:`NotYetImplementedError`.
    """

    def symbolic_differentiate(
        self, inputs: Sequence[INode], output: INode, grad: INode
    ) -> list[INode]:
        check_arity(self, len(inputs))
        from ._factory import new_elem_bin_op, new_repeat_op

        x = inputs[0]
        repeat = new_repeat_op(self.along, tuple(x.shape))
        z_full = apply_gradient_op(repeat, output)
        g_full = apply_gradient_op(repeat, grad)

        eq = new_elem_bin_op(BinaryOperatorKind.EQ, z_full, x, ret_same=True)
        mask = apply_gradient_op(eq, z_full, x)
        mul = new_elem_bin_op(BinaryOperatorKind.MUL, g_full, mask)
        return [apply_gradient_op(mul, g_full, mask)]

    def numeric_differentiate(self, inputs: Sequence[INode], output: INode) -> None:
        check_arity(self, len(inputs))
        raise NotYetImplementedError("MaxOperation.numeric_differentiate", list(self.along))

    def forward(self, *values: Value) -> Value:
        check_arity(self, len(values))
        raise NotYetImplementedError("MaxOperation.forward", list(self.along))

    def identity(self) -> Tuple[object, ...]:
        return ("max", self.dims, self.along)

    def __str__(self) -> str:
        return f"MaxAlong{list(self.along)}"


@dataclass(frozen=True)
class RepeatOperation(Operation):
    """
    Re-expand a reduced value to ``target_shape``.

    The input holds the extents of ``target_shape`` with the ``along`` axes
    removed (or is a scalar when every axis was reduced). Each ``along`` axis
    is re-inserted and the values are repeated ``target_shape[axis]`` times.
    """

    along: Tuple[int, ...]
    target_shape: Tuple[int, ...]

    def __post_init__(self) -> None:
        target = Shape(self.target_shape)
        object.__setattr__(self, "target_shape", target)
        object.__setattr__(self, "along", normalize_axes(self.along, len(target), target))

    def arity(self) -> int:
        return 1

    def result_type(self) -> FunctionType:
        a = TypeVariable("a", SUMMABLE)
        rank = len(self.target_shape)
        left = rank - len(self.along)
        arg: Type = TensorType(left, a) if left > 0 else a
        ret: Type = TensorType(rank, a) if rank > 0 else a
        return new_function_type(arg, ret)

    def infer_shape(self, *shapes: Sequence[int]) -> Shape:
        if len(shapes) != 1:
            raise ArityMismatchError(self, 1, len(shapes))
        if shapes[0] is None:
            raise NotYetImplementedError("RepeatOperation.infer_shape", "nil shape")
        given = Shape(shapes[0])
        expected = reduced_shape(self.target_shape, self.along)
        if given.total_size() != expected.total_size():
            raise ShapeMismatchError(given, expected, "input does not match the reduced shape")
        return self.target_shape

    def differentiable_inputs(self, inputs: int) -> list[bool]:
        if inputs != 1:
            raise ArityMismatchError(self, 1, inputs)
        return [True]

    def symbolic_differentiate(
        self, inputs: Sequence[INode], output: INode, grad: INode
    ) -> list[INode]:
        check_arity(self, len(inputs))
        from ._factory import new_sum_op

        total = new_sum_op(self.along, self.target_shape, len(self.target_shape))
        return [apply_gradient_op(total, grad)]

    def numeric_differentiate(self, inputs: Sequence[INode], output: INode) -> None:
        check_arity(self, len(inputs))
        xdv, zdv = dual_of(inputs[0]), dual_of(output)
        g = value_to_array(zdv.derivative)
        r = np.sum(g, axis=self.along, dtype=g.dtype)
        _add_into(xdv, _wrap(np.asarray(r).reshape(tuple(xdv.derivative.shape))))

    def forward(self, *values: Value) -> Value:
        check_arity(self, len(values))
        arr = value_to_array(values[0])
        return any_to_value(
            np.ascontiguousarray(repeat_along(arr, self.along, self.target_shape))
        )

    def returns_owned_buffer(self) -> bool:
        return True

    def overwrite_candidate_operand_index(self) -> Optional[int]:
        return None

    def calls_external_compute(self) -> bool:
        return False

    def identity(self) -> Tuple[object, ...]:
        return ("repeat", self.along, tuple(self.target_shape))

    def __str__(self) -> str:
        return f"Repeat{list(self.along)}"
