"""
Constructors converting between NumPy data and engine values.
"""

from __future__ import annotations

from typing import Any, Optional, Union

import numpy as np

from ...domain._dtype import Dtype
from ...domain._errors import TypeMismatchError
from ...domain._shape import Shape
from ...domain._types import Type
from ...domain._value import ScalarValue, TensorValue, Value
from ._dense_storage import DenseStorage

DtypeLike = Union[Dtype, str, np.dtype, type, None]


def _np_dtype(dtype: DtypeLike) -> Optional[np.dtype]:
    if dtype is None:
        return None
    if isinstance(dtype, Dtype):
        return np.dtype(dtype.value)
    return np.dtype(dtype)


def new_scalar_value(x: Any, dtype: DtypeLike = Dtype.FLOAT64) -> ScalarValue:
    """
    Wrap a Python or NumPy number as a :class:`ScalarValue`.

    Parameters
    ----------
    x : Any
        The number. Booleans are accepted when ``dtype`` is ``Dtype.BOOL``.
    dtype : Dtype | str | np.dtype
        Target dtype; the number is cast to it. Defaults to float64.
    """
    np_dt = _np_dtype(dtype)
    raw = np_dt.type(x)
    return ScalarValue(Dtype.of(np_dt), raw)


def new_tensor_value(data: Any, dtype: DtypeLike = None) -> TensorValue:
    """
    Wrap array-like data as a :class:`TensorValue`.

    The data is copied into a fresh C-contiguous array so the returned value
    exclusively owns its buffer.
    """
    arr = np.array(data, dtype=_np_dtype(dtype), copy=True)
    if arr.dtype == np.float16 or arr.dtype.kind in ("i", "u"):
        arr = arr.astype(np.float64)
    return TensorValue(DenseStorage(np.ascontiguousarray(arr)))


def any_to_value(r: Any) -> Value:
    """
    Convert a raw kernel result to a value.

    NumPy arrays of rank >= 1 become tensors; NumPy scalars and 0-d arrays
    become scalars.

    Raises
    ------
    TypeMismatchError
        If ``r`` has no supported dtype.
    """
    if isinstance(r, (ScalarValue, TensorValue)):
        return r
    if isinstance(r, np.ndarray) and r.ndim > 0:
        try:
            return TensorValue(DenseStorage(r))
        except ValueError as err:
            raise TypeMismatchError(f"Unsupported tensor dtype {r.dtype}") from err
    if isinstance(r, np.ndarray):
        r = r[()]
    if isinstance(r, (bool, np.bool_)):
        return ScalarValue(Dtype.BOOL, np.bool_(r))
    if isinstance(r, (np.floating, float)):
        dt = np.asarray(r).dtype
        try:
            return ScalarValue(Dtype.of(dt), dt.type(r))
        except ValueError as err:
            raise TypeMismatchError(f"Unsupported scalar dtype {dt}") from err
    raise TypeMismatchError(f"Cannot convert {r!r} of {type(r)!r} to a value")


def value_type(v: Value) -> Type:
    """The type of a value: its dtype for scalars, a tensor type otherwise."""
    return v.type


def value_to_array(v: Value) -> np.ndarray:
    """Return a NumPy view (tensors) or 0-d array (scalars) of a value."""
    if isinstance(v, TensorValue):
        return v.materialize()
    return np.asarray(v.v)


def scalar_shaped(v: Value) -> bool:
    """Whether a value is a bare scalar or a tensor with scalar shape."""
    return isinstance(v, ScalarValue) or Shape(v.shape).is_scalar()
