"""
Differentiation rules for elementwise unary operators.

``UNARY_DIFF_EXPRS[kind](x, z, grad) -> dx`` builds the gradient expression
of ``z = f(x)``; ``UNARY_DIFF_FNS[kind](x, z)`` accumulates ``f'(x) ⊙ g``
into ``x``'s bound derivative. Both forms use the same local derivatives:

=========  ==============
kind       f'(x)
=========  ==============
neg        -1
abs        sign(x)
sin        cos(x)
cos        -sin(x)
exp        z
ln         1 / x
sqrt       1 / (2 z)
square     2 x
cube       3 x²
inverse    -z²
tanh       1 - z²
sigmoid    z (1 - z)
=========  ==============

sign, ceil and floor raise :class:`NotDifferentiableError`.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Callable, Mapping

import numpy as np

from ...domain._errors import NotDifferentiableError
from ...domain._graph import INode
from ...domain._types import dtype_of
from ..operations._factory import new_ebo_by_type, new_elem_bin_op, new_elem_unary_op
from ..operations._helpers import apply_gradient_op, dual_of, store_incr_result
from ..operators._catalog import BinaryOperatorKind, UnaryOperatorKind
from ..storage._values import any_to_value, new_scalar_value, value_to_array

UnaryDiffExpr = Callable[[INode, INode, INode], INode]
UnaryDiffFn = Callable[[INode, INode], None]
LocalDerivative = Callable[[np.ndarray, np.ndarray], np.ndarray]

U = UnaryOperatorKind
B = BinaryOperatorKind


def _const(like: INode, v: float) -> INode:
    return like.graph.constant(new_scalar_value(v, dtype_of(like.type)))


def _un(kind: UnaryOperatorKind, a: INode) -> INode:
    return apply_gradient_op(new_elem_unary_op(kind, a), a)


def _bin(kind: BinaryOperatorKind, a: INode, b: INode) -> INode:
    return apply_gradient_op(new_elem_bin_op(kind, a, b), a, b)


def _chain(local: INode, grad: INode) -> INode:
    return _bin(B.MUL, local, grad)


def _neg_expr(x: INode, z: INode, grad: INode) -> INode:
    return _un(U.NEG, grad)


def _abs_expr(x: INode, z: INode, grad: INode) -> INode:
    return _chain(_un(U.SIGN, x), grad)


def _sin_expr(x: INode, z: INode, grad: INode) -> INode:
    return _chain(_un(U.COS, x), grad)


def _cos_expr(x: INode, z: INode, grad: INode) -> INode:
    return _chain(_un(U.NEG, _un(U.SIN, x)), grad)


def _exp_expr(x: INode, z: INode, grad: INode) -> INode:
    return _chain(z, grad)


def _ln_expr(x: INode, z: INode, grad: INode) -> INode:
    return _bin(B.DIV, grad, x)


def _sqrt_expr(x: INode, z: INode, grad: INode) -> INode:
    return _bin(B.DIV, grad, _bin(B.MUL, z, _const(z, 2.0)))


def _square_expr(x: INode, z: INode, grad: INode) -> INode:
    return _chain(_bin(B.MUL, x, _const(x, 2.0)), grad)


def _cube_expr(x: INode, z: INode, grad: INode) -> INode:
    return _chain(_bin(B.MUL, _un(U.SQUARE, x), _const(x, 3.0)), grad)


def _inverse_expr(x: INode, z: INode, grad: INode) -> INode:
    return _chain(_un(U.NEG, _un(U.SQUARE, z)), grad)


def _tanh_expr(x: INode, z: INode, grad: INode) -> INode:
    return _chain(_bin(B.SUB, _const(z, 1.0), _un(U.SQUARE, z)), grad)


def _sigmoid_expr(x: INode, z: INode, grad: INode) -> INode:
    return _chain(_bin(B.MUL, z, _bin(B.SUB, _const(z, 1.0), z)), grad)


_LOCAL_DERIVATIVES: Mapping[UnaryOperatorKind, LocalDerivative] = {
    U.NEG: lambda x, z: -np.ones_like(x),
    U.ABS: lambda x, z: np.sign(x),
    U.SIN: lambda x, z: np.cos(x),
    U.COS: lambda x, z: -np.sin(x),
    U.EXP: lambda x, z: z,
    U.LN: lambda x, z: 1.0 / x,
    U.SQRT: lambda x, z: 0.5 / z,
    U.SQUARE: lambda x, z: 2.0 * x,
    U.CUBE: lambda x, z: 3.0 * x * x,
    U.INVERSE: lambda x, z: -(z * z),
    U.TANH: lambda x, z: 1.0 - z * z,
    U.SIGMOID: lambda x, z: z * (1.0 - z),
}


def _numeric(local: LocalDerivative) -> UnaryDiffFn:
    def rule(x: INode, z: INode) -> None:
        xdv, zdv = dual_of(x), dual_of(z)
        xa, za = value_to_array(xdv.primal), value_to_array(zdv.primal)
        with np.errstate(divide="ignore", invalid="ignore"):
            d = any_to_value(np.array(local(xa, za), dtype=xa.dtype))

        g = zdv.derivative
        mul = new_ebo_by_type(B.MUL, d.type, g.type)
        store_incr_result(xdv, mul.accumulating_forward(xdv.derivative, d, g))

    return rule


def _nondiff_expr(kind: UnaryOperatorKind) -> UnaryDiffExpr:
    def rule(x: INode, z: INode, grad: INode) -> INode:
        raise NotDifferentiableError(kind)

    return rule


def _nondiff_fn(kind: UnaryOperatorKind) -> UnaryDiffFn:
    def rule(x: INode, z: INode) -> None:
        raise NotDifferentiableError(kind)

    return rule


_NONDIFF = [kind for kind in UnaryOperatorKind if not kind.is_differentiable]

UNARY_DIFF_EXPRS: Mapping[UnaryOperatorKind, UnaryDiffExpr] = MappingProxyType(
    {
        U.NEG: _neg_expr,
        U.ABS: _abs_expr,
        U.SIN: _sin_expr,
        U.COS: _cos_expr,
        U.EXP: _exp_expr,
        U.LN: _ln_expr,
        U.SQRT: _sqrt_expr,
        U.SQUARE: _square_expr,
        U.CUBE: _cube_expr,
        U.INVERSE: _inverse_expr,
        U.TANH: _tanh_expr,
        U.SIGMOID: _sigmoid_expr,
        **{kind: _nondiff_expr(kind) for kind in _NONDIFF},
    }
)

UNARY_DIFF_FNS: Mapping[UnaryOperatorKind, UnaryDiffFn] = MappingProxyType(
    {
        **{kind: _numeric(local) for kind, local in _LOCAL_DERIVATIVES.items()},
        **{kind: _nondiff_fn(kind) for kind in _NONDIFF},
    }
)
