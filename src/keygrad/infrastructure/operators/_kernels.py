"""
Per-dtype NumPy kernels for binary elementwise operators.

Two immutable registries map ``(Dtype, BinaryOperatorKind)`` to a kernel:

- ``ARITH_KERNELS`` for arithmetic kinds (result has the operand dtype),
- ``CMP_KERNELS`` for comparison kinds (result is bool, or the operand dtype
  when ``ExecutionOptions.as_same_type`` is set).

A kernel has the signature ``kernel(a, b, opts) -> np.ndarray`` where ``a``
and ``b`` are arrays or NumPy scalars of the same dtype. Kernels honour the
execution options: they write into ``opts.incr`` / ``opts.reuse`` when given,
or into the tensor operand when ``opts.unsafe`` is set, and return the array
that holds the result.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Callable, Mapping, Tuple

import numpy as np

from ...domain._constants import OPERAND_DTYPES
from ...domain._dtype import Dtype
from ...domain._errors import NotYetImplementedError
from ._catalog import BinaryOperatorKind
from ._options import ExecutionOptions

Kernel = Callable[[Any, Any, ExecutionOptions], np.ndarray]

_ARITH_UFUNCS = {
    BinaryOperatorKind.ADD: np.add,
    BinaryOperatorKind.SUB: np.subtract,
    BinaryOperatorKind.MUL: np.multiply,
    BinaryOperatorKind.DIV: np.true_divide,
    BinaryOperatorKind.POW: np.power,
}

_CMP_UFUNCS = {
    BinaryOperatorKind.LT: np.less,
    BinaryOperatorKind.GT: np.greater,
    BinaryOperatorKind.LTE: np.less_equal,
    BinaryOperatorKind.GTE: np.greater_equal,
    BinaryOperatorKind.EQ: np.equal,
    BinaryOperatorKind.NE: np.not_equal,
}


def _unsafe_target(a: Any, b: Any) -> np.ndarray:
    # the left operand wins when both are tensors
    return a if isinstance(a, np.ndarray) else b


def _arith_kernel(ufunc: np.ufunc) -> Kernel:
    def kernel(a: Any, b: Any, opts: ExecutionOptions) -> np.ndarray:
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            if opts.incr is not None:
                np.add(opts.incr, ufunc(a, b), out=opts.incr, casting="unsafe")
                return opts.incr
            if opts.reuse is not None:
                return ufunc(a, b, out=opts.reuse, casting="unsafe")
            if opts.unsafe:
                target = _unsafe_target(a, b)
                if target.shape == np.broadcast_shapes(np.shape(a), np.shape(b)):
                    return ufunc(a, b, out=target)
            return np.asarray(ufunc(a, b))

    kernel.__name__ = f"{ufunc.__name__}_kernel"
    return kernel


def _cmp_kernel(ufunc: np.ufunc, dtype: Dtype) -> Kernel:
    same_dtype = np.dtype(dtype.value)

    def kernel(a: Any, b: Any, opts: ExecutionOptions) -> np.ndarray:
        r = np.asarray(ufunc(a, b))
        if opts.as_same_type:
            r = r.astype(same_dtype)
        if opts.incr is not None:
            np.add(opts.incr, r, out=opts.incr, casting="unsafe")
            return opts.incr
        if opts.reuse is not None:
            np.copyto(opts.reuse, r, casting="unsafe")
            return opts.reuse
        if opts.unsafe and opts.as_same_type:
            target = _unsafe_target(a, b)
            if target.shape == r.shape:
                np.copyto(target, r)
                return target
        return r

    kernel.__name__ = f"{ufunc.__name__}_{dtype.value}_kernel"
    return kernel


ARITH_KERNELS: Mapping[Tuple[Dtype, BinaryOperatorKind], Kernel] = MappingProxyType(
    {
        (dt, kind): _arith_kernel(ufunc)
        for dt in OPERAND_DTYPES
        for kind, ufunc in _ARITH_UFUNCS.items()
    }
)

CMP_KERNELS: Mapping[Tuple[Dtype, BinaryOperatorKind], Kernel] = MappingProxyType(
    {
        (dt, kind): _cmp_kernel(ufunc, dt)
        for dt in OPERAND_DTYPES
        for kind, ufunc in _CMP_UFUNCS.items()
    }
)


def lookup_kernel(dtype: Dtype, kind: BinaryOperatorKind) -> Kernel:
    """
    Fetch the kernel registered for ``(dtype, kind)``.

    Raises
    ------
    NotYetImplementedError
        If no kernel is registered for the pair.
    """
    registry = ARITH_KERNELS if kind.is_arith else CMP_KERNELS
    fn = registry.get((dtype, kind))
    if fn is None:
        raise NotYetImplementedError("tensor kernel", dtype, kind)
    return fn
