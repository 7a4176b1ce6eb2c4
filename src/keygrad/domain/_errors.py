"""
Operator- and differentiation-related exceptions for keygrad.

This module defines the error vocabulary shared by the operator engine. Each
error derives from :class:`KeygradError` and from the closest built-in
exception type, so callers may catch either the library-specific class or the
generic Python category (e.g., ``ValueError`` for shape problems).

The accumulate-with-reroute outcome of incremental evaluation is deliberately
*not* modelled here: it is a normal return value (see
``keygrad.domain._value.Rerouted``), never an exception.
"""

from typing import Any


class KeygradError(Exception):
    """Base class of every error raised by the operator engine."""


class ArityMismatchError(KeygradError, ValueError):
    """
    Raised when an operation receives the wrong number of operands.

    This is a contract violation by the caller; a correct graph builder never
    triggers it.

    Attributes
    ----------
    op : str
        String form of the operation.
    expected : int
        Number of operands the operation requires.
    got : int
        Number of operands actually supplied.
    """

    def __init__(self, op: Any, expected: int, got: int) -> None:
        super().__init__(f"{op} expects {expected} input(s). Got {got} instead.")
        self.op = str(op)
        self.expected = expected
        self.got = got


class TypeMismatchError(KeygradError, TypeError):
    """
    Raised when operand dtypes or value kinds differ from what an operation
    declared (e.g., a float32 scalar handed to a float64 operator, or a scalar
    where a tensor buffer was required).
    """


class NotYetImplementedError(KeygradError, NotImplementedError):
    """
    Raised when a (dtype, kind) or (kind, mode) combination has no registered
    implementation.

    This distinguishes genuine gaps in the engine from erroneous input.

    Attributes
    ----------
    where : str
        The component that lacked an implementation.
    what : tuple
        The missing combination, e.g. ``(Dtype.FLOAT64, BinaryOperatorKind.POW)``.
    """

    def __init__(self, where: str, *what: Any) -> None:
        rendered = ", ".join(str(w) for w in what)
        super().__init__(f"{where}: not yet implemented for ({rendered})")
        self.where = where
        self.what = what


class NotDifferentiableError(KeygradError, ArithmeticError):
    """Raised when differentiation is requested on a non-differentiable kind."""

    def __init__(self, kind: Any) -> None:
        super().__init__(f"{kind} is not differentiable")
        self.kind = kind


class ShapeMismatchError(KeygradError, ValueError):
    """
    Raised when operand shapes are incompatible, or a reduction axis falls
    outside the input rank.

    Attributes
    ----------
    shape_a, shape_b : tuple
        The two offending shapes (for axis errors, the axes and the shape).
    """

    def __init__(self, shape_a: Any, shape_b: Any, reason: str = "") -> None:
        msg = f"Shape mismatch: {tuple(shape_a)} and {tuple(shape_b)}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)
        self.shape_a = tuple(shape_a)
        self.shape_b = tuple(shape_b)


class ExternalComputeError(KeygradError, RuntimeError):
    """
    Raised when the dense linear-algebra primitive reports a failure.

    The original exception is chained via ``__cause__``; the engine never
    retries.
    """


class UnknownOperatorError(KeygradError, LookupError):
    """
    Raised when an operator kind outside the closed catalog is looked up.

    The catalog is exhaustive by construction, so this indicates a programming
    error or version skew. Library code never catches it.
    """
