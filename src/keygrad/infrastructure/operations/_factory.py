"""
Operation factory.

Backward rules build new operations (an ADD to accumulate, a MUL to apply
the chain rule, a NEG, a Repeat) through these constructors, so the rule
library depends on the operator catalog and never on how a graph builds its
nodes.

:func:`make_operation` is the single generic entry point; the ``new_*``
helpers are the typed shortcuts it dispatches to.
"""

from __future__ import annotations

from typing import Any, Sequence, Union

from ...domain._dtype import Dtype
from ...domain._errors import ArityMismatchError, TypeMismatchError, UnknownOperatorError
from ...domain._graph import INode
from ...domain._operation import Operation
from ...domain._types import TensorType, Type, dtype_of, prune
from ..operators._catalog import (
    BinaryOperatorKind,
    LinAlgOperatorKind,
    ReductionKind,
    UnaryOperatorKind,
    check_kind,
)
from ..operators._scalar_operator import ScalarBinaryOperator
from ..operators._tensor_operator import TensorBinaryOperator
from ._elementwise_binary import ElemBinaryOperation
from ._elementwise_unary import ElemUnaryOperation
from ._linalg import LinAlgOperation
from ._reduction import MaxOperation, RepeatOperation, SumOperation


def new_ebo_by_type(
    kind: BinaryOperatorKind, at: Type, bt: Type, ret_same: bool = False
) -> ElemBinaryOperation:
    """
    Build an elementwise binary operation from operand types.

    Two dtypes give a scalar operator; a tensor type on either side gives a
    tensor operator with that side marked as the tensor.

    Raises
    ------
    TypeMismatchError
        If an operand type is neither a dtype nor a tensor type.
    UnknownOperatorError
        If ``kind`` is not a binary operator kind.
    """
    check_kind(kind, BinaryOperatorKind)
    operator: Union[ScalarBinaryOperator, TensorBinaryOperator]
    if isinstance(at, Dtype):
        if isinstance(bt, Dtype):
            operator = ScalarBinaryOperator(kind, at)
        elif isinstance(bt, TensorType):
            operator = TensorBinaryOperator(kind, tensor_left=False)
        else:
            raise TypeMismatchError(f"Unsupported type of b {bt}!")
    elif isinstance(at, TensorType):
        operator = TensorBinaryOperator(kind, tensor_left=True)
    else:
        raise TypeMismatchError(f"Unsupported type of a {at}!")
    return ElemBinaryOperation(operator, at, bt, ret_same)


def new_elem_bin_op(
    kind: BinaryOperatorKind, a: INode, b: INode, ret_same: bool = False
) -> ElemBinaryOperation:
    """Build an elementwise binary operation from two nodes' pruned types."""
    return new_ebo_by_type(kind, prune(a.type), prune(b.type), ret_same)


def new_unary_op_by_type(kind: UnaryOperatorKind, t: Type) -> ElemUnaryOperation:
    """
    Build an elementwise unary operation from an operand type.

    Raises
    ------
    TypeMismatchError
        If no dtype can be determined from ``t``.
    """
    check_kind(kind, UnaryOperatorKind)
    t = prune(t)
    try:
        dt = dtype_of(t)
    except TypeError as err:
        raise TypeMismatchError(str(err)) from err
    return ElemUnaryOperation(kind, dt, isinstance(t, TensorType))


def new_elem_unary_op(kind: UnaryOperatorKind, a: INode) -> ElemUnaryOperation:
    return new_unary_op_by_type(kind, a.type)


def new_linalg_op(
    kind: LinAlgOperatorKind, transpose_a: bool = False, transpose_b: bool = False
) -> LinAlgOperation:
    check_kind(kind, LinAlgOperatorKind)
    return LinAlgOperation(kind, transpose_a, transpose_b)


def new_sum_op(
    along: Sequence[int], input_shape: Sequence[int], dims: int = -1
) -> SumOperation:
    """
    Build a Sum along ``along`` for an input of shape ``input_shape``.

    ``dims`` defaults to the rank of ``input_shape``.
    """
    if dims < 0:
        dims = len(input_shape)
    return SumOperation(tuple(along), dims, tuple(input_shape))


def new_max_op(along: Sequence[int], dims: int) -> MaxOperation:
    return MaxOperation(tuple(along), dims)


def new_repeat_op(along: Sequence[int], target_shape: Sequence[int]) -> RepeatOperation:
    return RepeatOperation(tuple(along), tuple(target_shape))


def _expect_types(kind: Any, types: Sequence[Type], n: int) -> None:
    if len(types) != n:
        raise ArityMismatchError(kind, n, len(types))


def make_operation(kind: Any, *operand_types: Type, **flags: Any) -> Operation:
    """
    Build an operation for any catalogued kind.

    Parameters
    ----------
    kind : OperatorKind
        A member of one of the operator catalogs.
    *operand_types : Type
        Operand types, required for elementwise kinds (two for binary, one
        for unary) and ignored otherwise.
    **flags
        Kind-specific options: ``ret_same`` (binary), ``transpose_a`` /
        ``transpose_b`` (linear algebra), ``along`` / ``input_shape`` /
        ``dims`` (reductions).

    Raises
    ------
    UnknownOperatorError
        If ``kind`` belongs to no catalog.
    ArityMismatchError
        If the number of operand types does not match the kind.
    """
    if isinstance(kind, BinaryOperatorKind):
        _expect_types(kind, operand_types, 2)
        return new_ebo_by_type(kind, *operand_types, **flags)
    if isinstance(kind, UnaryOperatorKind):
        _expect_types(kind, operand_types, 1)
        return new_unary_op_by_type(kind, operand_types[0])
    if isinstance(kind, LinAlgOperatorKind):
        return new_linalg_op(kind, **flags)
    if kind is ReductionKind.SUM:
        return new_sum_op(**flags)
    if kind is ReductionKind.MAX:
        return new_max_op(**flags)
    raise UnknownOperatorError(f"{kind!r} is not a catalogued operator kind")
