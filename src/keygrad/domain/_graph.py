"""
Graph collaborator contracts.

Graph construction, node identity and dual-value binding live outside the
operator engine. The engine consumes them only through the structural
protocols below and never depends on a concrete graph class.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from ._shape import Shape
from ._types import Type
from ._value import Value


@runtime_checkable
class IDualValue(Protocol):
    """
    A primal value paired with its accumulated derivative.

    Notes
    -----
    ``set_derivative`` always stores the new derivative and *then* runs a
    sanity check; it may raise :class:`ShapeMismatchError` or
    :class:`TypeMismatchError` when the stored value does not match the
    primal. Backward rules treat that failure as best-effort bookkeeping.
    """

    @property
    def primal(self) -> Value: ...

    @property
    def derivative(self) -> Value: ...

    def set_derivative(self, value: Value) -> None: ...


@runtime_checkable
class IExprGraph(Protocol):
    """Factory for new expression nodes, used by symbolic differentiation."""

    def apply_op(self, op: Any, *children: "INode") -> "INode": ...

    def constant(self, value: Value) -> "INode": ...


@runtime_checkable
class INode(Protocol):
    """
    A computation-graph node.

    Attributes
    ----------
    type : Type
        The node's (possibly unpruned) type.
    shape : Shape
        The node's inferred shape.
    graph : IExprGraph
        The graph that owns the node.
    """

    @property
    def type(self) -> Type: ...

    @property
    def shape(self) -> Shape: ...

    @property
    def graph(self) -> IExprGraph: ...

    def is_scalar(self) -> bool: ...

    def bound_dual_value(self) -> Optional[IDualValue]: ...

    def set_group(self, tag: str) -> None: ...
