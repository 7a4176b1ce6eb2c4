"""
Dense linear-algebra operations.

:class:`LinAlgOperation` covers matrix-matrix multiply, matrix-vector
multiply, vector dot product and outer product. Transpose flags are applied
by transiently toggling the operand storage's transpose view and are always
restored on exit, including when the NumPy primitive fails. Two operands
backed by one storage are read through array views instead.

Shape rules (after applying transposes)::

    MATMUL     [m, k] × [k, n]  → [m, n]
    MATVECMUL  [m, k] × [k]     → [m, 1]   (forward yields the 1-D [m])
    VECDOT     [k]    · [k]     → ()
    OUTERPROD  [m]    ⊗ [n]     → [m, n]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np

from ...domain._constants import GRADIENT_GROUP
from ...domain._errors import (
    ArityMismatchError,
    ExternalComputeError,
    NotYetImplementedError,
    ShapeMismatchError,
    TypeMismatchError,
)
from ...domain._graph import INode
from ...domain._operation import Operation
from ...domain._shape import SCALAR_SHAPE, Shape, transpose_shape
from ...domain._types import FLOATS, FunctionType, TensorType, TypeVariable, new_function_type
from ...domain._value import Accumulated, IncrResult, TensorValue, Value
from ..operators._catalog import LinAlgOperatorKind
from ..storage._values import any_to_value
from ._helpers import check_arity, reroute

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinAlgOperation(Operation):
    """
    A dense linear-algebra operation.

    Attributes
    ----------
    kind : LinAlgOperatorKind
        Which primitive to run.
    transpose_a, transpose_b : bool
        Whether the left/right operand is used transposed.
    """

    kind: LinAlgOperatorKind
    transpose_a: bool = False
    transpose_b: bool = False

    def arity(self) -> int:
        return 2

    def result_type(self) -> FunctionType:
        a = TypeVariable("a", FLOATS)
        vec, mat = TensorType(1, a), TensorType(2, a)
        if self.kind is LinAlgOperatorKind.MATMUL:
            return new_function_type(mat, mat, mat)
        if self.kind is LinAlgOperatorKind.MATVECMUL:
            return new_function_type(mat, vec, vec)
        if self.kind is LinAlgOperatorKind.VECDOT:
            return new_function_type(vec, vec, a)
        return new_function_type(vec, vec, mat)

    def infer_shape(self, *shapes: Sequence[int]) -> Shape:
        """
        Infer the result shape.

        Raises
        ------
        NotYetImplementedError
            If a shape is unknown (``None``).
        ShapeMismatchError
            If the contracted extents differ or an operand has the wrong rank.
        """
        if len(shapes) != 2:
            raise ArityMismatchError(self, 2, len(shapes))
        if shapes[0] is None or shapes[1] is None:
            raise NotYetImplementedError("LinAlgOperation.infer_shape", "runtime impl")

        x, y = Shape(shapes[0]), Shape(shapes[1])
        logger.debug("inferring shape of %s from %r and %r", self, x, y)

        if self.kind is LinAlgOperatorKind.MATMUL:
            if len(x) != 2 or len(y) != 2:
                raise ShapeMismatchError(x, y, "matrix multiply expects two matrices")
            if self.transpose_a:
                x = transpose_shape(x)
            if self.transpose_b:
                y = transpose_shape(y)
            if x[1] != y[0]:
                raise ShapeMismatchError(x, y, "inner dimensions differ")
            return Shape((x[0], y[1]))

        if self.kind is LinAlgOperatorKind.MATVECMUL:
            if len(x) != 2 or len(y) == 0:
                raise ShapeMismatchError(x, y, "expects a matrix and a vector")
            if self.transpose_a:
                x = transpose_shape(x)
            if x[1] != y[0]:
                raise ShapeMismatchError(x, y, "inner dimensions differ")
            return Shape((x[0], 1))

        if self.kind is LinAlgOperatorKind.VECDOT:
            if x.total_size() != y.total_size():
                raise ShapeMismatchError(x, y, "vector lengths differ")
            return SCALAR_SHAPE

        return Shape((x.total_size(), y.total_size()))

    def differentiable_inputs(self, inputs: int) -> list[bool]:
        if inputs != 2:
            raise ArityMismatchError(self, 2, inputs)
        return [True, True]

    def symbolic_differentiate(
        self, inputs: Sequence[INode], output: INode, grad: INode
    ) -> list[INode]:
        check_arity(self, len(inputs))
        from ..autodiff._linalg_rules import LINALG_DIFF_EXPRS

        logger.debug("symbolic differentiation of %s", self)
        rule = LINALG_DIFF_EXPRS[self.kind]
        grads = list(
            rule(self.transpose_a, self.transpose_b, inputs[0], inputs[1], output, grad)
        )
        for node in grads:
            node.set_group(GRADIENT_GROUP)
        return grads

    def numeric_differentiate(self, inputs: Sequence[INode], output: INode) -> None:
        check_arity(self, len(inputs))
        from ..autodiff._linalg_rules import LINALG_DIFF_FNS

        logger.debug("numeric differentiation of %s", self)
        rule = LINALG_DIFF_FNS[self.kind]
        rule(self.transpose_a, self.transpose_b, inputs[0], inputs[1], output)

    def forward(self, *values: Value) -> Value:
        return self._run(values)

    def preallocated_forward(self, dest: Value, *values: Value) -> Value:
        """
        Evaluate into ``dest``.

        Raises
        ------
        TypeMismatchError
            If ``dest`` is not a :class:`TensorValue`.
        """
        if not isinstance(dest, TensorValue):
            raise TypeMismatchError(
                f"Expected Tensor as preallocated value. Got {dest!r} instead"
            )
        return self._run(values, reuse=dest)

    def accumulating_forward(self, incr: Value, *values: Value) -> IncrResult:
        if isinstance(incr, TensorValue):
            self._run(values, incr=incr)
            return Accumulated(incr)
        return reroute(incr, self._run(values))

    def returns_owned_buffer(self) -> bool:
        return True

    def overwrite_candidate_operand_index(self) -> Optional[int]:
        return None

    def calls_external_compute(self) -> bool:
        return self.kind is not LinAlgOperatorKind.VECDOT

    def identity(self) -> Tuple[object, ...]:
        return ("linalg", self.kind.name, self.transpose_a, self.transpose_b)

    def _run(
        self,
        values: Sequence[Value],
        reuse: Optional[TensorValue] = None,
        incr: Optional[TensorValue] = None,
    ) -> Value:
        check_arity(self, len(values))
        a, b = values
        if not isinstance(a, TensorValue) or not isinstance(b, TensorValue):
            raise TypeMismatchError(
                f"{self} expects two Tensors. Got {a!r} and {b!r} instead"
            )
        if a.dtype is not b.dtype:
            raise TypeMismatchError(
                f"Dtype mismatch for {self}: {a.dtype} and {b.dtype}"
            )

        if a.storage is b.storage:
            # one storage cannot be both transposed and not; view it directly
            arr = a.materialize()
            r = self._compute(
                arr.T if self.transpose_a else arr,
                arr.T if self.transpose_b else arr,
            )
        else:
            toggled: List[TensorValue] = []
            try:
                if self.transpose_a:
                    a.storage.transpose_in_place()
                    toggled.append(a)
                if self.transpose_b:
                    b.storage.transpose_in_place()
                    toggled.append(b)
                r = self._compute(a.materialize(), b.materialize())
            finally:
                for v in reversed(toggled):
                    v.storage.transpose_in_place()

        dest = incr if incr is not None else reuse
        if dest is None:
            return any_to_value(r)

        buf = dest.materialize()
        if incr is not None and r.size != buf.size and dest.shape.is_scalar():
            r = np.sum(r)
        elif r.size == buf.size:
            r = r.reshape(buf.shape)
        try:
            if incr is not None:
                np.add(buf, r, out=buf, casting="unsafe")
            else:
                np.copyto(buf, r, casting="unsafe")
        except ValueError as err:
            raise ShapeMismatchError(buf.shape, r.shape, str(err)) from err
        return dest

    def _compute(self, a: np.ndarray, b: np.ndarray) -> Any:
        try:
            if self.kind is LinAlgOperatorKind.MATMUL:
                if a.ndim != 2 or b.ndim != 2:
                    raise ValueError(f"matmul expects matrices, got {a.shape} and {b.shape}")
                return np.matmul(a, b)
            if self.kind is LinAlgOperatorKind.MATVECMUL:
                return np.matmul(a, b.reshape(-1))
            if self.kind is LinAlgOperatorKind.VECDOT:
                return np.asarray(np.inner(a.reshape(-1), b.reshape(-1)))
            return np.outer(a, b)
        except (ValueError, np.linalg.LinAlgError) as err:
            raise ExternalComputeError(f"Failed to carry out {self}: {err}") from err

    def __str__(self) -> str:
        mat = self.kind in (LinAlgOperatorKind.MATMUL, LinAlgOperatorKind.MATVECMUL)
        left = "A" if mat else "a"
        right = "B" if self.kind is LinAlgOperatorKind.MATMUL else "b"
        ta = "ᵀ" if self.transpose_a else ""
        tb = "ᵀ" if self.transpose_b else ""
        return f"{left}{ta} {self.kind} {right}{tb}"
