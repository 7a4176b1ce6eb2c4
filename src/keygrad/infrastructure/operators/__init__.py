from ._catalog import (
    BinaryOperatorKind,
    LinAlgOperatorKind,
    OperatorKind,
    ReductionKind,
    UnaryOperatorKind,
    check_kind,
    lookup_kind,
)
from ._kernels import ARITH_KERNELS, CMP_KERNELS, lookup_kernel
from ._options import EvaluationStrategy, ExecutionOptions
from ._scalar_operator import ScalarBinaryOperator
from ._tensor_operator import TensorBinaryOperator
from ._unary_functions import UNARY_FUNCTIONS, lookup_unary_function

__all__ = [
    BinaryOperatorKind.__name__,
    LinAlgOperatorKind.__name__,
    "OperatorKind",
    ReductionKind.__name__,
    UnaryOperatorKind.__name__,
    check_kind.__name__,
    lookup_kind.__name__,
    "ARITH_KERNELS",
    "CMP_KERNELS",
    lookup_kernel.__name__,
    EvaluationStrategy.__name__,
    ExecutionOptions.__name__,
    ScalarBinaryOperator.__name__,
    TensorBinaryOperator.__name__,
    "UNARY_FUNCTIONS",
    lookup_unary_function.__name__,
]
