"""
Elementwise unary operation.

Every pointwise unary operation has the type ``(Arithable a) ⇒ a → a`` and
preserves the shape of its operand. The numeric function is resolved per
dtype from :data:`~keygrad.infrastructure.operators.UNARY_FUNCTIONS` and is
applied either to a bare scalar or elementwise across a tensor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from ...domain._constants import GRADIENT_GROUP
from ...domain._dtype import Dtype
from ...domain._errors import (
    ArityMismatchError,
    NotYetImplementedError,
    TypeMismatchError,
)
from ...domain._graph import INode
from ...domain._operation import Operation
from ...domain._shape import Shape
from ...domain._types import ARITHABLE, FunctionType, TypeVariable, new_function_type
from ...domain._value import (
    Accumulated,
    IncrResult,
    Rerouted,
    ScalarValue,
    TensorValue,
    Value,
)
from ..operators._catalog import BinaryOperatorKind, UnaryOperatorKind
from ..operators._unary_functions import lookup_unary_function
from ..storage._values import any_to_value
from ._helpers import check_arity, reroute

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ElemUnaryOperation(Operation):
    """
    A pointwise unary operation.

    Attributes
    ----------
    kind : UnaryOperatorKind
        The function applied to each element.
    dtype : Dtype
        Operand dtype; selects the numeric implementation.
    arg_tensor : bool
        Whether the operand is a tensor (the operation then owns its result
        buffer and may overwrite the operand in unsafe mode).
    """

    kind: UnaryOperatorKind
    dtype: Dtype
    arg_tensor: bool

    def arity(self) -> int:
        return 1

    def result_type(self) -> FunctionType:
        a = TypeVariable("a", ARITHABLE)
        return new_function_type(a, a)

    def infer_shape(self, *shapes: Sequence[int]) -> Shape:
        if len(shapes) != 1:
            raise ArityMismatchError(self, 1, len(shapes))
        if shapes[0] is None:
            raise NotYetImplementedError("ElemUnaryOperation.infer_shape", "nil shape")
        return Shape(shapes[0])

    def differentiable_inputs(self, inputs: int) -> list[bool]:
        if inputs != 1:
            raise ArityMismatchError(self, 1, inputs)
        return [self.kind.is_differentiable]

    def symbolic_differentiate(
        self, inputs: Sequence[INode], output: INode, grad: INode
    ) -> list[INode]:
        check_arity(self, len(inputs))
        from ..autodiff._unary_rules import UNARY_DIFF_EXPRS

        logger.debug("symbolic differentiation of %s", self)
        node = UNARY_DIFF_EXPRS[self.kind](inputs[0], output, grad)
        node.set_group(GRADIENT_GROUP)
        return [node]

    def numeric_differentiate(self, inputs: Sequence[INode], output: INode) -> None:
        check_arity(self, len(inputs))
        from ..autodiff._unary_rules import UNARY_DIFF_FNS

        logger.debug("numeric differentiation of %s", self)
        UNARY_DIFF_FNS[self.kind](inputs[0], output)

    def forward(self, *values: Value) -> Value:
        return self._apply(values, in_place=False)

    def unsafe_forward(self, *values: Value) -> Value:
        return self._apply(values, in_place=True)

    def preallocated_forward(self, dest: Value, *values: Value) -> Value:
        """
        Evaluate into ``dest``.

        Raises
        ------
        TypeMismatchError
            If the operation owns a buffer and ``dest`` is not a tensor.
        """
        if not self.arg_tensor:
            return self.forward(*values)
        if not isinstance(dest, TensorValue):
            raise TypeMismatchError(
                f"Expected Tensor as preallocated value. Got {dest!r} instead"
            )
        check_arity(self, len(values))
        x = self._tensor_operand(values[0])
        fn = lookup_unary_function(self.dtype, self.kind)
        fn(x.materialize(), out=dest.materialize())
        return dest

    def accumulating_forward(self, incr: Value, *values: Value) -> IncrResult:
        ret = self.forward(*values)
        if not isinstance(incr, TensorValue):
            return reroute(incr, ret)

        from ._factory import new_ebo_by_type

        add = new_ebo_by_type(BinaryOperatorKind.ADD, incr.type, ret.type)
        out = add.unsafe_forward(incr, ret)
        if out is incr:
            return Accumulated(incr)
        return Rerouted(out)

    def returns_owned_buffer(self) -> bool:
        return self.arg_tensor

    def overwrite_candidate_operand_index(self) -> Optional[int]:
        return 0 if self.arg_tensor else None

    def calls_external_compute(self) -> bool:
        return False

    def identity(self) -> Tuple[object, ...]:
        return ("elem_unary", self.kind.name, self.dtype, self.arg_tensor)

    def _tensor_operand(self, v: Value) -> TensorValue:
        if not isinstance(v, TensorValue):
            raise TypeMismatchError(f"{self} expected a Tensor. Got {v!r} instead")
        if v.dtype is not self.dtype:
            raise TypeMismatchError(
                f"Type mismatch for {self}. Expected {self.dtype}. Got {v.dtype} instead"
            )
        return v

    def _apply(self, values: Sequence[Value], in_place: bool) -> Value:
        check_arity(self, len(values))
        v = values[0]
        fn = lookup_unary_function(self.dtype, self.kind)

        if isinstance(v, ScalarValue):
            if v.dtype is not self.dtype:
                raise TypeMismatchError(
                    f"Type mismatch for {self}. Expected {self.dtype}. "
                    f"Got {v.dtype} instead"
                )
            raw = np.dtype(self.dtype.value).type(v.v)
            return ScalarValue(self.dtype, fn(raw))

        x = self._tensor_operand(v)
        arr = x.materialize()
        if in_place:
            fn(arr, out=arr)
            return x
        return any_to_value(fn(arr))

    def __str__(self) -> str:
        return str(self.kind)
