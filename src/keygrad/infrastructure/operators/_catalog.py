"""
Closed operator catalogs.

Every operator kind the engine can dispatch is enumerated here, together with
its static properties:

- binary elementwise kinds are tagged arithmetic vs comparison; arithmetic
  kinds are differentiable in both operands, comparisons in neither,
- unary elementwise kinds carry a per-kind differentiability flag,
- linear-algebra and reduction kinds are plain enumerations.

The catalogs are immutable and built once at import time. Looking up a name
outside a catalog is a programming error and raises
:class:`~keygrad.domain._errors.UnknownOperatorError`.
"""

from __future__ import annotations

from enum import Enum
from typing import Type, TypeVar, Union

from ...domain._errors import UnknownOperatorError


class BinaryOperatorKind(Enum):
    """Binary elementwise operator kinds; the value is the display symbol."""

    ADD = "+"
    SUB = "-"
    MUL = "⊙"
    DIV = "÷"
    POW = "^"
    LT = "<"
    GT = ">"
    LTE = "<="
    GTE = ">="
    EQ = "=="
    NE = "!="

    @property
    def symbol(self) -> str:
        return self.value

    @property
    def is_arith(self) -> bool:
        return self in _ARITH_BINARY

    @property
    def is_differentiable(self) -> bool:
        return self.is_arith

    def __str__(self) -> str:
        return self.value


_ARITH_BINARY = frozenset(
    {
        BinaryOperatorKind.ADD,
        BinaryOperatorKind.SUB,
        BinaryOperatorKind.MUL,
        BinaryOperatorKind.DIV,
        BinaryOperatorKind.POW,
    }
)


class UnaryOperatorKind(Enum):
    """Unary elementwise operator kinds; the value is the display symbol."""

    NEG = "-"
    ABS = "abs"
    SIGN = "sign"
    CEIL = "ceil"
    FLOOR = "floor"
    SIN = "sin"
    COS = "cos"
    EXP = "exp"
    LN = "ln"
    SQRT = "√"
    SQUARE = "²"
    CUBE = "³"
    INVERSE = "1/"
    TANH = "tanh"
    SIGMOID = "σ"

    @property
    def symbol(self) -> str:
        return self.value

    @property
    def is_arith(self) -> bool:
        return True

    @property
    def is_differentiable(self) -> bool:
        return self not in _NONDIFF_UNARY

    def __str__(self) -> str:
        return self.value


# sign, ceil and floor have zero derivative almost everywhere and no
# derivative at their jumps
_NONDIFF_UNARY = frozenset(
    {UnaryOperatorKind.SIGN, UnaryOperatorKind.CEIL, UnaryOperatorKind.FLOOR}
)


class LinAlgOperatorKind(Enum):
    """Dense linear-algebra operator kinds."""

    MATMUL = "×"
    MATVECMUL = "×ᵥ"
    VECDOT = "·"
    OUTERPROD = "⊗"

    @property
    def symbol(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


class ReductionKind(Enum):
    """Reduction operator kinds."""

    SUM = "Σ"
    MAX = "max"

    @property
    def symbol(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


OperatorKind = Union[
    BinaryOperatorKind, UnaryOperatorKind, LinAlgOperatorKind, ReductionKind
]

K = TypeVar("K", bound=Enum)


def lookup_kind(catalog: Type[K], name: str) -> K:
    """
    Resolve an operator kind by member name (``"ADD"``) or symbol (``"+"``).

    Parameters
    ----------
    catalog : type
        One of the operator kind enumerations.
    name : str
        Member name (case-insensitive) or display symbol.

    Raises
    ------
    UnknownOperatorError
        If ``name`` is not part of ``catalog``.
    """
    member = catalog.__members__.get(str(name).upper())
    if member is not None:
        return member
    for member in catalog:
        if member.value == name:
            return member
    raise UnknownOperatorError(f"{name!r} is not a {catalog.__name__}")


def check_kind(kind: object, catalog: Type[K]) -> K:
    """
    Assert that ``kind`` belongs to ``catalog``.

    Raises
    ------
    UnknownOperatorError
        If ``kind`` is not a member of ``catalog``.
    """
    if not isinstance(kind, catalog):
        raise UnknownOperatorError(f"{kind!r} is not a {catalog.__name__}")
    return kind
