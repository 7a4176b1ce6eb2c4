"""
Per-dtype unary numeric functions.

``UNARY_FUNCTIONS`` maps ``(Dtype, UnaryOperatorKind)`` to a function
``fn(x, out=None)`` that accepts either a NumPy scalar or an array and
preserves its dtype. When ``out`` is given the result is written there (this
is how unsafe unary evaluation overwrites its operand).
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Tuple

import numpy as np

from ...domain._constants import OPERAND_DTYPES
from ...domain._dtype import Dtype
from ...domain._errors import NotYetImplementedError
from ._catalog import UnaryOperatorKind

UnaryFunction = Callable[..., Any]


def _finish(x: Any, r: Any, out: Optional[np.ndarray]) -> Any:
    if out is not None:
        np.copyto(out, r, casting="unsafe")
        return out
    if isinstance(x, np.ndarray):
        return np.asarray(r).astype(x.dtype, copy=False)
    return x.dtype.type(r)


def _cube(x: Any, out: Optional[np.ndarray] = None) -> Any:
    return _finish(x, x * x * x, out)


def _sigmoid(x: Any, out: Optional[np.ndarray] = None) -> Any:
    with np.errstate(over="ignore"):
        r = 1.0 / (1.0 + np.exp(-np.asarray(x, dtype=np.float64)))
    return _finish(x, r, out)


def _inverse(x: Any, out: Optional[np.ndarray] = None) -> Any:
    with np.errstate(divide="ignore"):
        return np.reciprocal(x, out=out) if out is not None else np.reciprocal(x)


def _ufunc(ufunc: np.ufunc) -> UnaryFunction:
    def fn(x: Any, out: Optional[np.ndarray] = None) -> Any:
        with np.errstate(divide="ignore", invalid="ignore"):
            if out is not None:
                return ufunc(x, out=out)
            return ufunc(x)

    fn.__name__ = ufunc.__name__
    return fn


_GENERIC = {
    UnaryOperatorKind.NEG: _ufunc(np.negative),
    UnaryOperatorKind.ABS: _ufunc(np.abs),
    UnaryOperatorKind.SIGN: _ufunc(np.sign),
    UnaryOperatorKind.CEIL: _ufunc(np.ceil),
    UnaryOperatorKind.FLOOR: _ufunc(np.floor),
    UnaryOperatorKind.SIN: _ufunc(np.sin),
    UnaryOperatorKind.COS: _ufunc(np.cos),
    UnaryOperatorKind.EXP: _ufunc(np.exp),
    UnaryOperatorKind.LN: _ufunc(np.log),
    UnaryOperatorKind.SQRT: _ufunc(np.sqrt),
    UnaryOperatorKind.SQUARE: _ufunc(np.square),
    UnaryOperatorKind.CUBE: _cube,
    UnaryOperatorKind.INVERSE: _inverse,
    UnaryOperatorKind.TANH: _ufunc(np.tanh),
    UnaryOperatorKind.SIGMOID: _sigmoid,
}

UNARY_FUNCTIONS: Mapping[Tuple[Dtype, UnaryOperatorKind], UnaryFunction] = (
    MappingProxyType(
        {(dt, kind): fn for dt in OPERAND_DTYPES for kind, fn in _GENERIC.items()}
    )
)


def lookup_unary_function(dtype: Dtype, kind: UnaryOperatorKind) -> UnaryFunction:
    """
    Fetch the unary function registered for ``(dtype, kind)``.

    Raises
    ------
    NotYetImplementedError
        If no function is registered for the pair.
    """
    fn = UNARY_FUNCTIONS.get((dtype, kind))
    if fn is None:
        raise NotYetImplementedError("unary function", dtype, kind)
    return fn
