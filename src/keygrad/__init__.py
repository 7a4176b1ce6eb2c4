"""
keygrad: the operator and automatic-differentiation engine of a
computation-graph numeric library.

The public surface re-exported here is what a graph builder or evaluator
needs: value constructors, the operator catalogs, the operation factory and
the error vocabulary.
"""

from .domain import (
    Accumulated,
    ArityMismatchError,
    Dtype,
    ExternalComputeError,
    KeygradError,
    NotDifferentiableError,
    NotYetImplementedError,
    Operation,
    Rerouted,
    ScalarValue,
    Shape,
    ShapeMismatchError,
    TensorType,
    TensorValue,
    TypeMismatchError,
    UnknownOperatorError,
)
from .infrastructure.operations import (
    ElemBinaryOperation,
    ElemUnaryOperation,
    LinAlgOperation,
    MaxOperation,
    RepeatOperation,
    SumOperation,
    make_operation,
    new_ebo_by_type,
    new_elem_bin_op,
    new_elem_unary_op,
    new_linalg_op,
    new_max_op,
    new_repeat_op,
    new_sum_op,
    new_unary_op_by_type,
)
from .infrastructure.operators import (
    BinaryOperatorKind,
    EvaluationStrategy,
    LinAlgOperatorKind,
    ReductionKind,
    UnaryOperatorKind,
)
from .infrastructure.storage import (
    any_to_value,
    new_scalar_value,
    new_tensor_value,
    value_type,
)

__version__ = "0.1.0a0"

__all__ = [
    "Accumulated",
    "ArityMismatchError",
    "Dtype",
    "ExternalComputeError",
    "KeygradError",
    "NotDifferentiableError",
    "NotYetImplementedError",
    "Operation",
    "Rerouted",
    "ScalarValue",
    "Shape",
    "ShapeMismatchError",
    "TensorType",
    "TensorValue",
    "TypeMismatchError",
    "UnknownOperatorError",
    "ElemBinaryOperation",
    "ElemUnaryOperation",
    "LinAlgOperation",
    "MaxOperation",
    "RepeatOperation",
    "SumOperation",
    "make_operation",
    "new_ebo_by_type",
    "new_elem_bin_op",
    "new_elem_unary_op",
    "new_linalg_op",
    "new_max_op",
    "new_repeat_op",
    "new_sum_op",
    "new_unary_op_by_type",
    "BinaryOperatorKind",
    "EvaluationStrategy",
    "LinAlgOperatorKind",
    "ReductionKind",
    "UnaryOperatorKind",
    "any_to_value",
    "new_scalar_value",
    "new_tensor_value",
    "value_type",
]
