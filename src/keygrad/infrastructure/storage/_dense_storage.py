"""
NumPy-backed dense tensor storage.

This module is the CPU boundary of the engine: it owns an ``np.ndarray`` and
exposes it through the :class:`~keygrad.domain._value.ITensorStorage`
contract. Transposition is a reversible view flag, not a copy, so linear
algebra operations can transiently transpose an operand and restore it.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from ...domain._dtype import Dtype


class DenseStorage:
    """
    Contiguous host storage for a tensor value.

    Parameters
    ----------
    data : np.ndarray
        Backing array. It is adopted, not copied.

    Notes
    -----
    - ``materialize()`` returns ``data`` or its transposed view depending on
      the transpose flag; writes through either view mutate ``data``.
    - Only float32, float64 and bool arrays are accepted.
    """

    __slots__ = ("_data", "_transposed")

    def __init__(self, data: np.ndarray) -> None:
        if not isinstance(data, np.ndarray):
            raise TypeError(f"DenseStorage expects an np.ndarray, got {type(data)!r}")
        Dtype.of(data.dtype)
        self._data = data
        self._transposed = False

    @property
    def shape(self) -> Tuple[int, ...]:
        return self.materialize().shape

    @property
    def dtype(self) -> Dtype:
        return Dtype.of(self._data.dtype)

    @property
    def transposed(self) -> bool:
        return self._transposed

    def materialize(self) -> np.ndarray:
        return self._data.T if self._transposed else self._data

    def transpose_in_place(self) -> None:
        self._transposed = not self._transposed

    def __repr__(self) -> str:
        flag = ", transposed" if self._transposed else ""
        return f"DenseStorage(shape={self.shape}, dtype={self.dtype}{flag})"
