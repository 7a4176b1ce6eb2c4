"""
Differentiation rules for dense linear-algebra operations.

Each rule receives the operation's transpose flags first:
``LINALG_DIFF_EXPRS[kind](trans_a, trans_b, x, y, z, grad) -> [dx, dy]`` and
``LINALG_DIFF_FNS[kind](trans_a, trans_b, x, y, z) -> None``.

With ``g`` the upstream gradient::

    MATMUL      z = A B      dA = g Bᵀ     dB = Aᵀ g
                z = Aᵀ B     dA = B gᵀ     dB = A g
                z = A Bᵀ     dA = g B      dB = gᵀ A
                z = Aᵀ Bᵀ    dA = Bᵀ gᵀ    dB = gᵀ Aᵀ
    MATVECMUL   z = A v      dA = g ⊗ v    dv = Aᵀ g
                z = Aᵀ v     dA = v ⊗ g    dv = A g
    VECDOT      z = a · b    da = b ⊙ g    db = a ⊙ g
    OUTERPROD   z = a ⊗ b    da = g b      db = gᵀ a

Every product is itself a :class:`LinAlgOperation` with the matching
transpose flags, so no operand is ever copied to transpose it.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Callable, List, Mapping, Tuple

from ...domain._graph import IDualValue, INode
from ...domain._value import Value
from ..operations._factory import new_ebo_by_type, new_elem_bin_op, new_linalg_op
from ..operations._helpers import apply_gradient_op, dual_of, store_incr_result
from ..operators._catalog import BinaryOperatorKind, LinAlgOperatorKind

LinAlgDiffExpr = Callable[[bool, bool, INode, INode, INode, INode], List[INode]]
LinAlgDiffFn = Callable[[bool, bool, INode, INode, INode], None]

MATMUL = LinAlgOperatorKind.MATMUL
MATVECMUL = LinAlgOperatorKind.MATVECMUL
OUTERPROD = LinAlgOperatorKind.OUTERPROD

# (transpose flags, operand order) per (trans_a, trans_b); "A", "B" and "g"
# name the left operand, right operand and upstream gradient
_MATMUL_PLAN = {
    (False, False): (((False, True), "gB"), ((True, False), "Ag")),
    (True, False): (((False, True), "Bg"), ((False, False), "Ag")),
    (False, True): (((False, False), "gB"), ((True, False), "gA")),
    (True, True): (((True, True), "Bg"), ((True, True), "gA")),
}

Plan = Tuple[Tuple[LinAlgOperatorKind, bool, bool, str], Tuple[LinAlgOperatorKind, bool, bool, str]]


def _plan(kind: LinAlgOperatorKind, trans_a: bool, trans_b: bool) -> Plan:
    if kind is MATMUL:
        (fa, oa), (fb, ob) = _MATMUL_PLAN[(trans_a, trans_b)]
        return (MATMUL, *fa, oa), (MATMUL, *fb, ob)
    if kind is MATVECMUL:
        da = (OUTERPROD, False, False, "Bg" if trans_a else "gB")
        db = (MATVECMUL, not trans_a, False, "Ag")
        return da, db
    # OUTERPROD
    return (MATVECMUL, False, False, "gB"), (MATVECMUL, True, False, "gA")


def _pick(order: str, a, b, g):
    names = {"A": a, "B": b, "g": g}
    return names[order[0]], names[order[1]]


def _plan_diff_expr(kind: LinAlgOperatorKind) -> LinAlgDiffExpr:
    def rule(
        trans_a: bool, trans_b: bool, x: INode, y: INode, z: INode, grad: INode
    ) -> List[INode]:
        out = []
        for op_kind, ta, tb, order in _plan(kind, trans_a, trans_b):
            left, right = _pick(order, x, y, grad)
            out.append(apply_gradient_op(new_linalg_op(op_kind, ta, tb), left, right))
        return out

    return rule


def _plan_diff(kind: LinAlgOperatorKind) -> LinAlgDiffFn:
    def rule(trans_a: bool, trans_b: bool, x: INode, y: INode, z: INode) -> None:
        xdv, ydv, zdv = dual_of(x), dual_of(y), dual_of(z)
        g = zdv.derivative
        targets = (xdv, ydv)
        for dv, (op_kind, ta, tb, order) in zip(targets, _plan(kind, trans_a, trans_b)):
            left, right = _pick(order, xdv.primal, ydv.primal, g)
            op = new_linalg_op(op_kind, ta, tb)
            store_incr_result(dv, op.accumulating_forward(dv.derivative, left, right))

    return rule


def vec_dot_diff_expr(
    trans_a: bool, trans_b: bool, x: INode, y: INode, z: INode, grad: INode
) -> List[INode]:
    mul = BinaryOperatorKind.MUL
    dzdx = apply_gradient_op(new_elem_bin_op(mul, y, grad), y, grad)
    dzdy = apply_gradient_op(new_elem_bin_op(mul, x, grad), x, grad)
    return [dzdx, dzdy]


def _scale_into(dv: IDualValue, v: Value, g: Value) -> None:
    mul = new_ebo_by_type(BinaryOperatorKind.MUL, v.type, g.type)
    store_incr_result(dv, mul.accumulating_forward(dv.derivative, v, g))


def vec_dot_diff(trans_a: bool, trans_b: bool, x: INode, y: INode, z: INode) -> None:
    xdv, ydv, zdv = dual_of(x), dual_of(y), dual_of(z)
    _scale_into(xdv, ydv.primal, zdv.derivative)
    _scale_into(ydv, xdv.primal, zdv.derivative)


LINALG_DIFF_EXPRS: Mapping[LinAlgOperatorKind, LinAlgDiffExpr] = MappingProxyType(
    {
        MATMUL: _plan_diff_expr(MATMUL),
        MATVECMUL: _plan_diff_expr(MATVECMUL),
        LinAlgOperatorKind.VECDOT: vec_dot_diff_expr,
        OUTERPROD: _plan_diff_expr(OUTERPROD),
    }
)

LINALG_DIFF_FNS: Mapping[LinAlgOperatorKind, LinAlgDiffFn] = MappingProxyType(
    {
        MATMUL: _plan_diff(MATMUL),
        MATVECMUL: _plan_diff(MATVECMUL),
        LinAlgOperatorKind.VECDOT: vec_dot_diff,
        OUTERPROD: _plan_diff(OUTERPROD),
    }
)
