"""
Helpers shared by operations and the differentiation rules.

This module hosts the small pieces of glue that every backward rule needs:

- resolving a node's bound dual value,
- arity checks with a uniform error,
- the reroute step of accumulating evaluation (add into a copy when the
  accumulator cannot be mutated in place),
- best-effort derivative storage (:func:`accumulate_gradient`), which is the
  only place derivative sanity failures are tolerated,
- tagging freshly built gradient nodes.
"""

from __future__ import annotations

import logging
from typing import Any

from ...domain._constants import GRADIENT_GROUP
from ...domain._errors import (
    ArityMismatchError,
    KeygradError,
    ShapeMismatchError,
    TypeMismatchError,
)
from ...domain._graph import IDualValue, INode
from ...domain._value import IncrResult, Rerouted, Value

logger = logging.getLogger(__name__)


def check_arity(op: Any, got: int) -> None:
    """
    Raise :class:`ArityMismatchError` unless ``got`` equals ``op.arity()``.
    """
    expected = op.arity()
    if got != expected:
        raise ArityMismatchError(op, expected, got)


def dual_of(node: INode) -> IDualValue:
    """
    Return the dual value bound to ``node``.

    Raises
    ------
    KeygradError
        If the node has not been evaluated yet (no dual value is bound).
    """
    dv = node.bound_dual_value()
    if dv is None:
        raise KeygradError(f"{node} has no bound dual value; evaluate it first")
    return dv


def reroute(incr: Value, ret: Value) -> Rerouted:
    """
    Add ``ret`` to a non-tensor accumulator without mutating it.

    The sum is computed with the ADD operation in unsafe mode, which may only
    overwrite ``ret`` (a freshly computed result), never ``incr``.
    """
    from ..operators._catalog import BinaryOperatorKind
    from ._factory import new_ebo_by_type

    add = new_ebo_by_type(BinaryOperatorKind.ADD, incr.type, ret.type)
    logger.debug("accumulator %s is not addressable, rerouting through %s", incr, add)
    return Rerouted(add.unsafe_forward(incr, ret))


def accumulate_gradient(dv: IDualValue, value: Value) -> None:
    """
    Store ``value`` as the derivative of ``dv``, tolerating sanity failures.

    ``IDualValue.set_derivative`` stores first and validates afterwards, so a
    shape or dtype complaint leaves the new derivative in place. Backward
    rules treat that complaint as bookkeeping noise: it is logged at debug
    level and otherwise ignored.
    """
    try:
        dv.set_derivative(value)
    except (ShapeMismatchError, TypeMismatchError) as err:
        logger.debug("derivative stored with a failed sanity check: %s", err)


def store_incr_result(dv: IDualValue, result: IncrResult) -> None:
    """Persist the outcome of an accumulating evaluation into ``dv``."""
    if isinstance(result, Rerouted):
        accumulate_gradient(dv, result.value)


def apply_gradient_op(op: Any, *children: INode) -> INode:
    """Apply ``op`` in the children's graph and tag the node as a gradient."""
    node = children[0].graph.apply_op(op, *children)
    node.set_group(GRADIENT_GROUP)
    return node


def sum_to_scalar(node: INode) -> INode:
    """Build ``Σ node`` over every axis, tagged as a gradient."""
    from ._factory import new_sum_op

    shape = tuple(node.shape)
    return apply_gradient_op(new_sum_op((), shape, len(shape)), node)
