"""
Backend-agnostic contracts of the keygrad operator engine.

Nothing in this package imports NumPy; concrete storage, kernels and
operations live in :mod:`keygrad.infrastructure`.
"""

from ._constants import GRADIENT_GROUP, HASH_DIGEST_SIZE, OPERAND_DTYPES
from ._dtype import Dtype
from ._errors import (
    ArityMismatchError,
    ExternalComputeError,
    KeygradError,
    NotDifferentiableError,
    NotYetImplementedError,
    ShapeMismatchError,
    TypeMismatchError,
    UnknownOperatorError,
)
from ._graph import IDualValue, IExprGraph, INode
from ._operation import Operation
from ._shape import SCALAR_SHAPE, Shape, transpose_shape
from ._types import (
    ARITHABLE,
    FLOATS,
    SUMMABLE,
    FunctionType,
    TensorType,
    Type,
    TypeVariable,
    dtype_of,
    from_tensor_type,
    is_scalar_type,
    new_function_type,
    prune,
)
from ._value import (
    Accumulated,
    IncrResult,
    ITensorStorage,
    Rerouted,
    ScalarValue,
    TensorValue,
    Value,
)

__all__ = [
    "GRADIENT_GROUP",
    "HASH_DIGEST_SIZE",
    "OPERAND_DTYPES",
    Dtype.__name__,
    KeygradError.__name__,
    ArityMismatchError.__name__,
    TypeMismatchError.__name__,
    NotYetImplementedError.__name__,
    NotDifferentiableError.__name__,
    ShapeMismatchError.__name__,
    ExternalComputeError.__name__,
    UnknownOperatorError.__name__,
    "IDualValue",
    "IExprGraph",
    "INode",
    Operation.__name__,
    "SCALAR_SHAPE",
    Shape.__name__,
    "transpose_shape",
    "ARITHABLE",
    "FLOATS",
    "SUMMABLE",
    FunctionType.__name__,
    TensorType.__name__,
    "Type",
    TypeVariable.__name__,
    "dtype_of",
    "from_tensor_type",
    "is_scalar_type",
    "new_function_type",
    "prune",
    Accumulated.__name__,
    "IncrResult",
    "ITensorStorage",
    Rerouted.__name__,
    ScalarValue.__name__,
    TensorValue.__name__,
    "Value",
]
