"""
Differentiation rules for elementwise binary operators.

Two tables keyed by :class:`BinaryOperatorKind`:

- ``BINARY_DIFF_EXPRS[kind](x, y, z, grad) -> [dx, dy]`` builds gradient
  sub-expressions in the graph,
- ``BINARY_DIFF_FNS[kind](x, y, z) -> None`` accumulates numeric gradients
  straight into the bound dual values of ``x`` and ``y``, reading the
  upstream gradient from ``z``'s dual value.

Rules::

    z = x + y    dx = g          dy = g
    z = x - y    dx = g          dy = -g
    z = x ⊙ y    dx = y ⊙ g      dy = x ⊙ g
    z = x ÷ y    dx = g ÷ y      dy = -(z ÷ y) ⊙ g

Pow has no rule yet, and comparisons are not differentiable.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Callable, List, Mapping

from ...domain._errors import NotDifferentiableError, NotYetImplementedError
from ...domain._graph import IDualValue, INode
from ...domain._value import Value
from ..operations._elementwise_binary import ElemBinaryOperation
from ..operations._factory import (
    new_ebo_by_type,
    new_elem_bin_op,
    new_elem_unary_op,
    new_unary_op_by_type,
)
from ..operations._helpers import (
    accumulate_gradient,
    apply_gradient_op,
    dual_of,
    store_incr_result,
)
from ..operators._catalog import BinaryOperatorKind, UnaryOperatorKind

BinaryDiffExpr = Callable[[INode, INode, INode, INode], List[INode]]
BinaryDiffFn = Callable[[INode, INode, INode], None]

ADD = BinaryOperatorKind.ADD
SUB = BinaryOperatorKind.SUB
MUL = BinaryOperatorKind.MUL
DIV = BinaryOperatorKind.DIV


def _fold(op: ElemBinaryOperation, node: INode, dv: IDualValue, other: Value) -> None:
    # scalar derivatives are rebuilt, tensor derivatives updated in place
    if node.is_scalar():
        d = op.forward(dv.derivative, other)
    else:
        d = op.unsafe_forward(dv.derivative, other)

    if not op.returns_owned_buffer() or node.is_scalar() or d is not dv.derivative:
        accumulate_gradient(dv, d)


def add_diff_expr(x: INode, y: INode, z: INode, grad: INode) -> List[INode]:
    return [grad, grad]


def add_diff(x: INode, y: INode, z: INode) -> None:
    xdv, ydv, zdv = dual_of(x), dual_of(y), dual_of(z)
    _fold(new_elem_bin_op(ADD, x, z), x, xdv, zdv.derivative)
    _fold(new_elem_bin_op(ADD, y, z), y, ydv, zdv.derivative)


def sub_diff_expr(x: INode, y: INode, z: INode, grad: INode) -> List[INode]:
    dzdy = apply_gradient_op(new_elem_unary_op(UnaryOperatorKind.NEG, grad), grad)
    return [grad, dzdy]


def sub_diff(x: INode, y: INode, z: INode) -> None:
    xdv, ydv, zdv = dual_of(x), dual_of(y), dual_of(z)
    _fold(new_elem_bin_op(SUB, y, z), y, ydv, zdv.derivative)
    _fold(new_elem_bin_op(ADD, x, z), x, xdv, zdv.derivative)


def hadamard_prod_diff_expr(x: INode, y: INode, z: INode, grad: INode) -> List[INode]:
    dzdx = apply_gradient_op(new_elem_bin_op(MUL, y, grad), y, grad)
    dzdy = apply_gradient_op(new_elem_bin_op(MUL, x, grad), x, grad)
    return [dzdx, dzdy]


def hadamard_prod_diff(x: INode, y: INode, z: INode) -> None:
    xdv, ydv, zdv = dual_of(x), dual_of(y), dual_of(z)
    g = zdv.derivative

    mul = new_ebo_by_type(MUL, ydv.primal.type, g.type)
    store_incr_result(xdv, mul.accumulating_forward(xdv.derivative, ydv.primal, g))

    mul = new_ebo_by_type(MUL, xdv.primal.type, g.type)
    store_incr_result(ydv, mul.accumulating_forward(ydv.derivative, xdv.primal, g))


def hadamard_div_diff_expr(x: INode, y: INode, z: INode, grad: INode) -> List[INode]:
    dzdx = apply_gradient_op(new_elem_bin_op(DIV, grad, y), grad, y)
    ratio = apply_gradient_op(new_elem_bin_op(DIV, z, y), z, y)
    neg = apply_gradient_op(new_elem_unary_op(UnaryOperatorKind.NEG, ratio), ratio)
    dzdy = apply_gradient_op(new_elem_bin_op(MUL, neg, grad), neg, grad)
    return [dzdx, dzdy]


def hadamard_div_diff(x: INode, y: INode, z: INode) -> None:
    xdv, ydv, zdv = dual_of(x), dual_of(y), dual_of(z)
    g = zdv.derivative

    # dz/dx = g / y
    div = new_ebo_by_type(DIV, g.type, ydv.primal.type)
    store_incr_result(xdv, div.accumulating_forward(xdv.derivative, g, ydv.primal))

    # dz/dy = -(z / y) * g
    ratio = new_ebo_by_type(DIV, zdv.primal.type, ydv.primal.type)
    d = ratio.forward(zdv.primal, ydv.primal)
    d = new_unary_op_by_type(UnaryOperatorKind.NEG, d.type).forward(d)

    mul = new_ebo_by_type(MUL, g.type, d.type)
    store_incr_result(ydv, mul.accumulating_forward(ydv.derivative, g, d))


def hadamard_pow_diff_expr(x: INode, y: INode, z: INode, grad: INode) -> List[INode]:
    raise NotYetImplementedError("binary differentiation", BinaryOperatorKind.POW, "symbolic")


def hadamard_pow_diff(x: INode, y: INode, z: INode) -> None:
    raise NotYetImplementedError("binary differentiation", BinaryOperatorKind.POW, "numeric")


def _nondiff_expr(kind: BinaryOperatorKind) -> BinaryDiffExpr:
    def rule(x: INode, y: INode, z: INode, grad: INode) -> List[INode]:
        raise NotDifferentiableError(kind)

    return rule


def _nondiff_fn(kind: BinaryOperatorKind) -> BinaryDiffFn:
    def rule(x: INode, y: INode, z: INode) -> None:
        raise NotDifferentiableError(kind)

    return rule


_CMP = [kind for kind in BinaryOperatorKind if not kind.is_arith]

BINARY_DIFF_EXPRS: Mapping[BinaryOperatorKind, BinaryDiffExpr] = MappingProxyType(
    {
        ADD: add_diff_expr,
        SUB: sub_diff_expr,
        MUL: hadamard_prod_diff_expr,
        DIV: hadamard_div_diff_expr,
        BinaryOperatorKind.POW: hadamard_pow_diff_expr,
        **{kind: _nondiff_expr(kind) for kind in _CMP},
    }
)

BINARY_DIFF_FNS: Mapping[BinaryOperatorKind, BinaryDiffFn] = MappingProxyType(
    {
        ADD: add_diff,
        SUB: sub_diff,
        MUL: hadamard_prod_diff,
        DIV: hadamard_div_diff,
        BinaryOperatorKind.POW: hadamard_pow_diff,
        **{kind: _nondiff_fn(kind) for kind in _CMP},
    }
)
