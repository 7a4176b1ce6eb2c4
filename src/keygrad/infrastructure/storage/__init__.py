from ._dense_storage import DenseStorage
from ._values import (
    any_to_value,
    new_scalar_value,
    new_tensor_value,
    scalar_shaped,
    value_to_array,
    value_type,
)

__all__ = [
    DenseStorage.__name__,
    any_to_value.__name__,
    new_scalar_value.__name__,
    new_tensor_value.__name__,
    scalar_shaped.__name__,
    value_to_array.__name__,
    value_type.__name__,
]
