"""
Minimal type model consumed by the operator engine.

Type inference and unification live outside this package; operations only
need to *describe* their signatures and to inspect the (pruned) operand types
they were built from. A type is one of:

- a :class:`~keygrad.domain._dtype.Dtype` (a bare scalar of that dtype),
- a :class:`TensorType` (a tensor of a given rank over an element type),
- a :class:`TypeVariable` (optionally bound to an instance),
- a :class:`FunctionType` (an operation's signature).

All types are frozen dataclasses, so they are hashable and compare
structurally, which the operations rely on for structural identity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from ._dtype import Dtype

FLOATS: Tuple[str, ...] = ("floats",)
ARITHABLE: Tuple[str, ...] = ("arithable",)
SUMMABLE: Tuple[str, ...] = ("summable",)


@dataclass(frozen=True)
class TypeVariable:
    """
    A named type variable with optional type-class constraints.

    Attributes
    ----------
    name : str
        Display name, e.g. ``"a"``.
    constraints : tuple[str, ...]
        Type classes the variable is restricted to.
    instance : Optional[Type]
        The type the variable has been unified with, if any.
    """

    name: str
    constraints: Tuple[str, ...] = ()
    instance: Optional["Type"] = field(default=None, compare=False)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class TensorType:
    """A tensor of ``dims`` dimensions over element type ``of``."""

    dims: int
    of: "Type"

    def __str__(self) -> str:
        return f"Tensor-{self.dims} {self.of}"


@dataclass(frozen=True)
class FunctionType:
    """Signature ``params[0] → params[1] → … → ret``."""

    params: Tuple["Type", ...]
    ret: "Type"

    def __str__(self) -> str:
        return " → ".join(str(t) for t in (*self.params, self.ret))


Type = Union[Dtype, TensorType, TypeVariable, FunctionType]


def new_function_type(*types: Type) -> FunctionType:
    """Build ``t0 → t1 → … → tn`` where the last type is the return type."""
    if len(types) < 2:
        raise ValueError("a function type needs at least one parameter and a return")
    return FunctionType(tuple(types[:-1]), types[-1])


def prune(t: Type) -> Type:
    """Follow bound type variables down to the type they stand for."""
    while isinstance(t, TypeVariable) and t.instance is not None:
        t = t.instance
    return t


def from_tensor_type(t: TensorType, of: Type) -> TensorType:
    """Return a tensor type with ``t``'s rank over a new element type."""
    return TensorType(t.dims, of)


def is_scalar_type(t: Type) -> bool:
    return not isinstance(prune(t), TensorType)


def dtype_of(t: Type) -> Dtype:
    """
    Extract the element dtype of a concrete type.

    Raises
    ------
    TypeError
        If ``t`` is an unbound type variable or a function type.
    """
    t = prune(t)
    if isinstance(t, Dtype):
        return t
    if isinstance(t, TensorType):
        return dtype_of(t.of)
    raise TypeError(f"Cannot determine the dtype of {t}")
