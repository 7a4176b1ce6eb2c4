"""
Elementwise binary operation.

:class:`ElemBinaryOperation` is a dispatch table in disguise: depending on
whether its operand types are dtypes or tensor types it wraps either a
:class:`ScalarBinaryOperator` or a :class:`TensorBinaryOperator`, and it
exposes the full :class:`~keygrad.domain.Operation` surface on top of that.

Supported signatures (``a`` ranges over the float dtypes)::

    Tensor a → Tensor a → Tensor a
    Tensor a → a        → Tensor a
    a        → Tensor a → Tensor a
    a        → a        → a

Plain comparisons replace the result element type by ``bool``; comparisons
built with ``ret_same=True`` keep the operand element type and return 1/0.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from ...domain._constants import GRADIENT_GROUP
from ...domain._dtype import Dtype
from ...domain._errors import (
    ArityMismatchError,
    NotYetImplementedError,
    ShapeMismatchError,
)
from ...domain._graph import INode
from ...domain._operation import Operation
from ...domain._shape import SCALAR_SHAPE, Shape
from ...domain._types import (
    FLOATS,
    FunctionType,
    TensorType,
    Type,
    TypeVariable,
    from_tensor_type,
    new_function_type,
)
from ...domain._value import IncrResult, TensorValue, Value
from ..operators._catalog import BinaryOperatorKind
from ..operators._scalar_operator import ScalarBinaryOperator
from ..operators._tensor_operator import TensorBinaryOperator
from ..storage._values import any_to_value, value_to_array
from ._helpers import (
    accumulate_gradient,
    check_arity,
    dual_of,
    reroute,
    sum_to_scalar,
)

logger = logging.getLogger(__name__)

BinaryOperator = Union[ScalarBinaryOperator, TensorBinaryOperator]


def _tensor_of(t: Type) -> Optional[TensorType]:
    if isinstance(t, TensorType):
        return t
    if isinstance(t, TypeVariable) and isinstance(t.instance, TensorType):
        return t.instance
    return None


@dataclass(frozen=True)
class ElemBinaryOperation(Operation):
    """
    An elementwise binary operation over pruned operand types.

    Attributes
    ----------
    operator : ScalarBinaryOperator | TensorBinaryOperator
        The executor chosen from the operand types.
    arg0, arg1 : Type
        Pruned operand types.
    ret_same : bool
        For comparisons, return 1/0 in the operand dtype instead of bool.
        Arithmetic kinds ignore it.
    """

    operator: BinaryOperator
    arg0: Type
    arg1: Type
    ret_same: bool = False

    @property
    def kind(self) -> BinaryOperatorKind:
        return self.operator.kind

    def is_arith(self) -> bool:
        return self.kind.is_arith

    def arity(self) -> int:
        return 2

    def result_type(self) -> FunctionType:
        a = TypeVariable("a", FLOATS)
        a0: Type = a
        a1: Type = a
        ret: Type = a

        t0 = _tensor_of(self.arg0)
        if t0 is not None:
            a0 = ret = from_tensor_type(t0, a)

        t1 = _tensor_of(self.arg1)
        if t1 is not None:
            a1 = ret = from_tensor_type(t1, a)

        if self.is_arith() or self.ret_same:
            return new_function_type(a0, a1, ret)

        if isinstance(ret, TensorType):
            ret = from_tensor_type(ret, Dtype.BOOL)
        else:
            ret = Dtype.BOOL
        return new_function_type(a0, a1, ret)

    def infer_shape(self, *shapes: Sequence[int]) -> Shape:
        """
        Infer the result shape.

        ``()`` with ``()`` gives ``()``; a scalar with a tensor gives the
        tensor's shape; two tensors must have exactly equal shapes.

        Raises
        ------
        NotYetImplementedError
            If a shape is unknown (``None``).
        ShapeMismatchError
            If two tensor shapes differ.
        """
        if len(shapes) != 2:
            raise ArityMismatchError(self, 2, len(shapes))
        if shapes[0] is None or shapes[1] is None:
            raise NotYetImplementedError("ElemBinaryOperation.infer_shape", "runtime impl")

        x, y = Shape(shapes[0]), Shape(shapes[1])
        logger.debug("inferring shape of %s from %r and %r", self, x, y)

        if x.is_scalar() and y.is_scalar():
            return SCALAR_SHAPE
        if x.is_scalar():
            return y
        if y.is_scalar():
            return x
        if not x.eq(y):
            raise ShapeMismatchError(x, y, f"{self} requires equal operand shapes")
        return x

    def differentiable_inputs(self, inputs: int) -> list[bool]:
        if inputs != 2:
            raise ArityMismatchError(self, 2, inputs)
        return [self.is_arith(), self.is_arith()]

    def symbolic_differentiate(
        self, inputs: Sequence[INode], output: INode, grad: INode
    ) -> list[INode]:
        check_arity(self, len(inputs))
        from ..autodiff._binary_rules import BINARY_DIFF_EXPRS

        logger.debug("symbolic differentiation of %s", self)
        grads = list(BINARY_DIFF_EXPRS[self.kind](inputs[0], inputs[1], output, grad))
        for node in grads:
            node.set_group(GRADIENT_GROUP)

        # scalar inputs (e.g. a bias) receive the summed tensor gradient
        for i, node in enumerate(grads):
            if inputs[i].is_scalar() and not node.is_scalar():
                grads[i] = sum_to_scalar(node)
        return grads

    def numeric_differentiate(self, inputs: Sequence[INode], output: INode) -> None:
        check_arity(self, len(inputs))
        from ..autodiff._binary_rules import BINARY_DIFF_FNS

        logger.debug("numeric differentiation of %s", self)
        priors = [
            np.array(value_to_array(dual_of(node).derivative)) if node.is_scalar() else None
            for node in inputs
        ]
        BINARY_DIFF_FNS[self.kind](inputs[0], inputs[1], output)

        # scalar inputs may have picked up a broadcast (prior + contribution)
        # gradient; keep the prior once and sum the contributions
        for node, prior in zip(inputs, priors):
            dv = dual_of(node)
            d = dv.derivative
            if prior is None or not isinstance(d, TensorValue):
                continue
            if Shape(d.shape).eq(dv.primal.shape):
                continue
            arr = d.materialize()
            total = prior.reshape(()) + np.sum(arr - prior.reshape(()))
            reduced = np.asarray(total, dtype=arr.dtype).reshape(dv.primal.shape)
            accumulate_gradient(dv, any_to_value(reduced))

    def forward(self, *values: Value) -> Value:
        return self.operator.do(self.ret_same, *values)

    def unsafe_forward(self, *values: Value) -> Value:
        if not self.returns_owned_buffer():
            return self.forward(*values)
        return self.operator.unsafe_do(*values, same=self.ret_same)

    def preallocated_forward(self, dest: Value, *values: Value) -> Value:
        if not self.returns_owned_buffer():
            return self.forward(*values)
        return self.operator.use_prealloc_do(dest, *values, same=self.ret_same)

    def accumulating_forward(self, incr: Value, *values: Value) -> IncrResult:
        if not self.returns_owned_buffer():
            return reroute(incr, self.forward(*values))
        return self.operator.incr_do(incr, *values, same=self.ret_same)

    def returns_owned_buffer(self) -> bool:
        return isinstance(self.arg0, TensorType) or isinstance(self.arg1, TensorType)

    def overwrite_candidate_operand_index(self) -> Optional[int]:
        if isinstance(self.arg0, TensorType):
            return 0
        if isinstance(self.arg1, TensorType):
            return 1
        return None

    def calls_external_compute(self) -> bool:
        return False

    def identity(self) -> Tuple[object, ...]:
        return ("elem_bin", self.kind.name, self.arg0, self.arg1, self.ret_same)

    def __str__(self) -> str:
        return str(self.kind)
