"""
Binary operator over two bare scalars.
"""

from __future__ import annotations

import math
import operator
from dataclasses import dataclass
from typing import Any, Callable, Dict

import numpy as np

from ...domain._dtype import Dtype
from ...domain._errors import (
    ArityMismatchError,
    NotYetImplementedError,
    TypeMismatchError,
)
from ...domain._value import ScalarValue, Value
from ._catalog import BinaryOperatorKind


def _pow(a: Any, b: Any) -> Any:
    # computed in float64, narrowed back to the operand dtype by the caller
    return math.pow(float(a), float(b))


_SCALAR_FNS: Dict[BinaryOperatorKind, Callable[[Any, Any], Any]] = {
    BinaryOperatorKind.ADD: operator.add,
    BinaryOperatorKind.SUB: operator.sub,
    BinaryOperatorKind.MUL: operator.mul,
    BinaryOperatorKind.DIV: operator.truediv,
    BinaryOperatorKind.POW: _pow,
    BinaryOperatorKind.LT: operator.lt,
    BinaryOperatorKind.GT: operator.gt,
    BinaryOperatorKind.LTE: operator.le,
    BinaryOperatorKind.GTE: operator.ge,
    BinaryOperatorKind.EQ: operator.eq,
    BinaryOperatorKind.NE: operator.ne,
}

_SCALAR_DTYPES = {Dtype.FLOAT32: np.float32, Dtype.FLOAT64: np.float64}


@dataclass(frozen=True)
class ScalarBinaryOperator:
    """
    Executes a binary operator on two scalars of the declared dtype.

    Attributes
    ----------
    kind : BinaryOperatorKind
        The operator.
    dtype : Dtype
        The dtype both operands must have.
    """

    kind: BinaryOperatorKind
    dtype: Dtype

    def is_arith(self) -> bool:
        return self.kind.is_arith

    def do(self, same: bool, *values: Value) -> ScalarValue:
        """
        Evaluate ``values[0] <kind> values[1]``.

        Parameters
        ----------
        same : bool
            For comparison kinds, return ``1``/``0`` of the operand dtype
            instead of a boolean. Ignored by arithmetic kinds.
        *values : Value
            Exactly two :class:`ScalarValue` operands.

        Raises
        ------
        ArityMismatchError
            If not exactly two operands are given.
        TypeMismatchError
            If an operand is not a scalar or its dtype differs from
            ``self.dtype``.
        NotYetImplementedError
            If no implementation exists for ``(dtype, kind)``.
        """
        if len(values) != 2:
            raise ArityMismatchError(self, 2, len(values))

        a, b = values
        if not isinstance(a, ScalarValue) or not isinstance(b, ScalarValue):
            raise TypeMismatchError(
                f"Expected both inputs to binOp {self} to be scalars. "
                f"Got {a!r} and {b!r} instead"
            )
        if a.dtype is not self.dtype:
            raise TypeMismatchError(
                f"Type mismatch for a. Expected {self.dtype}. Got {a.dtype} instead"
            )
        if b.dtype is not self.dtype:
            raise TypeMismatchError(
                f"Type mismatch for b. Expected {self.dtype}. Got {b.dtype} instead"
            )

        ctor = _SCALAR_DTYPES.get(self.dtype)
        fn = _SCALAR_FNS.get(self.kind)
        if ctor is None or fn is None:
            raise NotYetImplementedError("ScalarBinaryOperator.do", self.dtype, self.kind)

        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            try:
                r = fn(ctor(a.v), ctor(b.v))
            except (OverflowError, ValueError, ZeroDivisionError):
                # math.pow raises where IEEE arithmetic yields inf/nan
                r = np.power(np.float64(a.v), np.float64(b.v))

        if self.kind.is_arith:
            return ScalarValue(self.dtype, ctor(r))
        if same:
            return ScalarValue(self.dtype, ctor(1 if r else 0))
        return ScalarValue(Dtype.BOOL, np.bool_(r))

    def __str__(self) -> str:
        return str(self.kind)
