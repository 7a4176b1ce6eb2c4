"""
Element type catalog.

The engine computes on two floating-point element types. ``BOOL`` exists only
as the result dtype of plain (non ``ret_same``) comparisons and is never a
valid operand dtype for arithmetic.

Enum values are NumPy-compatible dtype names so infrastructure code can call
``np.dtype(dtype.value)`` without a lookup table, while this module stays free
of any NumPy import.
"""

from enum import Enum


class Dtype(Enum):
    """
    Supported element types.

    Attributes
    ----------
    FLOAT32 : Dtype
        32-bit IEEE-754 floating point.
    FLOAT64 : Dtype
        64-bit IEEE-754 floating point.
    BOOL : Dtype
        Boolean comparison result (not an operand dtype).
    """

    FLOAT32 = "float32"
    FLOAT64 = "float64"
    BOOL = "bool"

    @property
    def is_float(self) -> bool:
        return self in (Dtype.FLOAT32, Dtype.FLOAT64)

    @classmethod
    def of(cls, name: object) -> "Dtype":
        """
        Resolve a dtype from any object whose ``str()`` is a dtype name.

        NumPy dtypes (``np.dtype("float32")``) and plain strings both work.

        Raises
        ------
        ValueError
            If the name does not denote a supported dtype.
        """
        text = str(name)
        for member in cls:
            if member.value == text:
                return member
        raise ValueError(f"Unsupported dtype {name!r}")

    def __str__(self) -> str:
        return self.value
