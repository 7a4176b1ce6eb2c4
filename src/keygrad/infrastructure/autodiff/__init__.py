from ._binary_rules import BINARY_DIFF_EXPRS, BINARY_DIFF_FNS
from ._linalg_rules import LINALG_DIFF_EXPRS, LINALG_DIFF_FNS
from ._unary_rules import UNARY_DIFF_EXPRS, UNARY_DIFF_FNS

__all__ = [
    "BINARY_DIFF_EXPRS",
    "BINARY_DIFF_FNS",
    "LINALG_DIFF_EXPRS",
    "LINALG_DIFF_FNS",
    "UNARY_DIFF_EXPRS",
    "UNARY_DIFF_FNS",
]
