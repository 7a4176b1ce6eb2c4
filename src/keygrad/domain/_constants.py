"""
Process-wide constants of the operator engine.
"""

from ._dtype import Dtype

GRADIENT_GROUP = "gradients"
"""Group tag attached to every node produced by symbolic differentiation."""

HASH_DIGEST_SIZE = 4
"""Byte width of structural hashes (32-bit digests)."""

OPERAND_DTYPES = (Dtype.FLOAT32, Dtype.FLOAT64)
"""Dtypes that may appear as operands of arithmetic and comparisons."""
