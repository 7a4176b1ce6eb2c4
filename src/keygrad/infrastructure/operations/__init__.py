from ._elementwise_binary import ElemBinaryOperation
from ._elementwise_unary import ElemUnaryOperation
from ._factory import (
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
from ._helpers import accumulate_gradient, reroute
from ._linalg import LinAlgOperation
from ._reduction import MaxOperation, RepeatOperation, SumOperation

__all__ = [
    ElemBinaryOperation.__name__,
    ElemUnaryOperation.__name__,
    LinAlgOperation.__name__,
    MaxOperation.__name__,
    RepeatOperation.__name__,
    SumOperation.__name__,
    make_operation.__name__,
    new_ebo_by_type.__name__,
    new_elem_bin_op.__name__,
    new_elem_unary_op.__name__,
    new_linalg_op.__name__,
    new_max_op.__name__,
    new_repeat_op.__name__,
    new_sum_op.__name__,
    new_unary_op_by_type.__name__,
    accumulate_gradient.__name__,
    reroute.__name__,
]
