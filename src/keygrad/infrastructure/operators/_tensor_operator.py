"""
Binary operator where at least one operand is a tensor.

The operator resolves a per-dtype kernel from the registries in
:mod:`._kernels` and runs it under one of four evaluation strategies:

- ``do``: fresh allocation, operands untouched,
- ``unsafe_do``: the tensor operand is overwritten in place,
- ``use_prealloc_do``: the result is written into a caller tensor,
- ``incr_do``: the result is added into a caller accumulator. A tensor
  accumulator is updated in place (``Accumulated``), a scalar-shaped one
  taking the sum of a broadcast result; any other accumulator is left
  untouched and the new value is handed back as ``Rerouted``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

import numpy as np

from ...domain._errors import (
    ArityMismatchError,
    NotYetImplementedError,
    ShapeMismatchError,
    TypeMismatchError,
)
from ...domain._shape import Shape
from ...domain._value import Accumulated, IncrResult, ScalarValue, TensorValue, Value
from ..storage._values import any_to_value, value_to_array
from ._catalog import BinaryOperatorKind
from ._kernels import lookup_kernel
from ._options import EvaluationStrategy, ExecutionOptions


@dataclass(frozen=True)
class TensorBinaryOperator:
    """
    Attributes
    ----------
    kind : BinaryOperatorKind
        The operator.
    tensor_left : bool
        Whether the left operand is the (guaranteed) tensor. The other operand
        may be a tensor or a scalar.
    """

    kind: BinaryOperatorKind
    tensor_left: bool

    def is_arith(self) -> bool:
        return self.kind.is_arith

    def do(self, same: bool, *values: Value) -> Value:
        return self._do(values, ExecutionOptions(as_same_type=same))

    def unsafe_do(self, *values: Value, same: bool = False) -> Value:
        return self._do(values, ExecutionOptions(unsafe=True, as_same_type=same))

    def use_prealloc_do(
        self, prealloc: Value, *values: Value, same: bool = False
    ) -> Value:
        """
        Evaluate into ``prealloc``.

        Raises
        ------
        TypeMismatchError
            If ``prealloc`` is not a :class:`TensorValue`.
        """
        if not isinstance(prealloc, TensorValue):
            raise TypeMismatchError(
                f"Expected Tensor as preallocated value. Got {prealloc!r} instead"
            )
        buf = prealloc.materialize()
        opts = ExecutionOptions(reuse=buf, as_same_type=same)
        return self._do(values, opts, ((prealloc, buf),))

    def incr_do(self, incr: Value, *values: Value, same: bool = False) -> IncrResult:
        """
        Evaluate and add the result into ``incr``.

        Returns
        -------
        Accumulated | Rerouted
            ``Accumulated(incr)`` when ``incr`` is a tensor updated in place
            (a scalar-shaped ``incr`` receives the summed result); otherwise ``Rerouted`` carrying ``incr + result``. A non-tensor
            accumulator is never mutated.
        """
        if isinstance(incr, TensorValue):
            buf = incr.materialize()
            out_shape = self._result_shape(values)
            if (
                out_shape is not None
                and incr.shape.is_scalar()
                and not out_shape.is_scalar()
            ):
                # a scalar-shaped accumulator (e.g. a [1] bias) takes the sum
                r = value_to_array(self.do(same, *values))
                np.add(buf, np.sum(r), out=buf, casting="unsafe")
                return Accumulated(incr)

            opts = ExecutionOptions(incr=buf, as_same_type=same)
            self._do(values, opts, ((incr, buf),))
            return Accumulated(incr)

        from ..operations._helpers import reroute

        return reroute(incr, self.do(same, *values))

    def evaluate(
        self,
        strategy: EvaluationStrategy,
        *values: Value,
        buffer: Optional[Value] = None,
        same: bool = False,
    ) -> Any:
        """
        Dispatch to the entry point matching ``strategy``.

        ``buffer`` is the destination for ``USE_PREALLOC_DO`` and the
        accumulator for ``INCR_DO``; it is ignored otherwise.
        """
        if strategy is EvaluationStrategy.DO:
            return self.do(same, *values)
        if strategy is EvaluationStrategy.UNSAFE_DO:
            return self.unsafe_do(*values, same=same)
        if strategy is EvaluationStrategy.USE_PREALLOC_DO:
            return self.use_prealloc_do(buffer, *values, same=same)
        if strategy is EvaluationStrategy.INCR_DO:
            return self.incr_do(buffer, *values, same=same)
        raise NotYetImplementedError("TensorBinaryOperator.evaluate", self.kind, strategy)

    def _do(
        self,
        values: Sequence[Value],
        opts: ExecutionOptions,
        owners: Tuple[Tuple[TensorValue, np.ndarray], ...] = (),
    ) -> Value:
        if len(values) != 2:
            raise ArityMismatchError(self, 2, len(values))

        a_val, b_val = values
        if a_val.dtype is not b_val.dtype:
            raise TypeMismatchError(
                f"Dtype mismatch for bin op: {a_val.dtype} and {b_val.dtype}"
            )

        side = "left" if self.tensor_left else "right"
        if not isinstance(a_val if self.tensor_left else b_val, TensorValue):
            raise TypeMismatchError(
                f"Expected {side} value to be a Tensor. Got {a_val!r}, {b_val!r}"
            )

        a, b = self._operands(a_val, b_val)
        fn = lookup_kernel(a_val.dtype, self.kind)
        try:
            r = fn(a, b, opts)
        except ValueError as err:
            dest = opts.incr if opts.incr is not None else opts.reuse
            if dest is None:
                left, right = a_val.shape, b_val.shape
            else:
                out_shape = self._result_shape(values)
                right = b_val.shape if out_shape is None else out_shape
                left = dest.shape
            raise ShapeMismatchError(
                left, right, f"{self.kind} kernel failed: {err}"
            ) from err

        candidates = (*owners, (a_val, a), (b_val, b))
        for owner, arr in candidates:
            if isinstance(owner, TensorValue) and r is arr:
                return owner
        return any_to_value(r)

    @classmethod
    def _operands(cls, a_val: Value, b_val: Value) -> Tuple[Any, Any]:
        """
        Raw operands for the kernel.

        A scalar-shaped tensor (``[1]``, ``[1, 1]``, ...) facing a non-scalar
        operand is viewed as 0-d so the result takes the other operand's shape
        instead of NumPy's rank-extended broadcast.
        """
        a, b = cls._raw(a_val), cls._raw(b_val)
        a_scalar, b_scalar = a_val.shape.is_scalar(), b_val.shape.is_scalar()
        if a_scalar and not b_scalar and isinstance(a_val, TensorValue):
            a = a.reshape(())
        elif b_scalar and not a_scalar and isinstance(b_val, TensorValue):
            b = b.reshape(())
        return a, b

    @classmethod
    def _result_shape(cls, values: Sequence[Value]) -> Optional[Shape]:
        if len(values) != 2:
            return None
        a, b = cls._operands(*values)
        try:
            return Shape(np.broadcast_shapes(np.shape(a), np.shape(b)))
        except ValueError:
            return None

    @staticmethod
    def _raw(v: Value) -> Any:
        if isinstance(v, TensorValue):
            return v.materialize()
        if isinstance(v, ScalarValue):
            return v.v
        raise NotYetImplementedError("TensorBinaryOperator.do", type(v).__name__)

    def __str__(self) -> str:
        return str(self.kind)
